"""Unit tests for TokenEstimator."""

import pytest

from ember.config import Settings, TokenEstimatorMode
from ember.wake.estimator import TokenEstimator


class TestHeuristic:
    @pytest.mark.parametrize(
        "text,expected",
        [("", 0), ("abcd", 1), ("abcde", 2), ("x" * 400, 100)],
    )
    def test_ceil_of_chars_over_four(self, text, expected) -> None:
        assert TokenEstimator().estimate(text) == expected

    def test_deterministic(self) -> None:
        estimator = TokenEstimator()
        text = "User says their dog Max turned 5 today."
        assert estimator.estimate(text) == estimator.estimate(text) == TokenEstimator().estimate(text)


class TestTiktoken:
    def test_counts_encoded_tokens(self, mocker) -> None:
        encoding = mocker.Mock()
        encoding.encode.return_value = [1, 2, 3]
        get_encoding = mocker.patch("tiktoken.get_encoding", return_value=encoding)

        estimator = TokenEstimator(mode=TokenEstimatorMode.TIKTOKEN, encoding_name="o200k_base")

        assert estimator.estimate("hello there world") == 3
        get_encoding.assert_called_once_with("o200k_base")

    def test_from_settings(self, mocker) -> None:
        mocker.patch("tiktoken.get_encoding")
        config = Settings(_env_file=None, token_estimator="tiktoken", tiktoken_encoding="p50k_base")

        estimator = TokenEstimator.from_settings(config)

        assert estimator.mode == TokenEstimatorMode.TIKTOKEN
