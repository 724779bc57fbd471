"""Unit tests for the server entry point."""

import logging

from ember.api.deps import CorrelationIdFilter
from ember.llm.errors import correlation_id_var
from ember.main import build_log_config, main


class TestLogConfig:
    def test_levels_upper_cased(self) -> None:
        config = build_log_config("debug")
        assert config["loggers"]["ember"]["level"] == "DEBUG"
        assert config["loggers"]["uvicorn.access"]["level"] == "DEBUG"

    def test_application_lines_carry_correlation_id(self) -> None:
        config = build_log_config("info")

        assert config["filters"]["correlation_id"]["()"] == "ember.api.deps.CorrelationIdFilter"
        assert config["handlers"]["default"]["filters"] == ["correlation_id"]
        assert "%(correlation_id)s" in config["formatters"]["default"]["format"]

    def test_filter_reads_context(self) -> None:
        record = logging.LogRecord("ember.test", logging.INFO, __file__, 1, "hello", None, None)
        token = correlation_id_var.set("req-7")
        try:
            assert CorrelationIdFilter().filter(record) is True
        finally:
            correlation_id_var.reset(token)

        assert record.correlation_id == "req-7"


def test_main_runs_uvicorn(mocker) -> None:
    run = mocker.patch("ember.main.uvicorn.run")

    main()

    args, kwargs = run.call_args
    assert args == ("ember.api.app:app",)
    assert kwargs["reload"] is False
    assert "correlation_id" in kwargs["log_config"]["filters"]
