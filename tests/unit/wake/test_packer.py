"""Unit tests for budget packing."""

import random

from ember.enums import CATEGORY_ORDER, MemoryCategory
from ember.wake.packer import pack

ALL = list(CATEGORY_ORDER)


class TestPack:
    def test_greedy_prefix(self, make_record) -> None:
        small = make_record(verbatim_tokens=100, importance=5)
        medium = make_record(verbatim_tokens=200, importance=3)
        large = make_record(verbatim_tokens=500, importance=4)

        result = pack([small, medium, large], ALL, budget=350)

        assert result.selected == [small]
        assert result.total_tokens == 100
        assert result.remainder == [large, medium]

    def test_never_exceeds_budget(self, make_record) -> None:
        memories = [make_record(verbatim_tokens=cost) for cost in (30, 30, 30, 30)]

        result = pack(memories, ALL, budget=100)

        assert result.total_tokens == 90
        assert len(result.selected) == 3
        assert len(result.remainder) == 1

    def test_zero_budget(self, make_record) -> None:
        memories = [make_record(), make_record()]

        result = pack(memories, ALL, budget=0)

        assert result.selected == []
        assert result.total_tokens == 0
        assert len(result.remainder) == 2

    def test_negative_budget_behaves_like_zero(self, make_record) -> None:
        assert pack([make_record()], ALL, budget=-10).selected == []

    def test_ties_break_by_recency_then_id(self, make_record) -> None:
        older = make_record(importance=3)
        newer = make_record(importance=3)
        twin_a = make_record(importance=2, id="mem-a", created_at=older.created_at)
        twin_b = make_record(importance=2, id="mem-b", created_at=older.created_at)

        result = pack([twin_b, older, twin_a, newer], ALL, budget=1000)

        assert [m.id for m in result.selected] == [newer.id, older.id, "mem-a", "mem-b"]

    def test_deterministic_under_input_order(self, make_record) -> None:
        memories = [
            make_record(importance=(n % 5) + 1, verbatim_tokens=10 + n * 7) for n in range(20)
        ]
        expected = pack(memories, ALL, budget=400)

        rng = random.Random(7)
        for _ in range(5):
            shuffled = memories[:]
            rng.shuffle(shuffled)
            assert pack(shuffled, ALL, budget=400) == expected

    def test_category_filter(self, make_record) -> None:
        work = make_record(category="work")
        hobby = make_record(category="hobbies")

        result = pack([work, hobby], [MemoryCategory.WORK], budget=1000)

        assert result.selected == [work]
        assert result.remainder == []

    def test_uses_summary_cost_unless_verbatim_preferred(self, make_record) -> None:
        summarized = make_record(summary_text="short", summary_tokens=2, verbatim_tokens=50)
        verbatim = make_record(
            summary_text="short", summary_tokens=2, verbatim_tokens=50, prefer_verbatim=True
        )

        result = pack([summarized, verbatim], ALL, budget=1000)

        assert result.total_tokens == 52
