"""Unit tests for the Memory Store repositories."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ember.db.exceptions import (
    CaptureNotFoundError,
    DuplicateCaptureError,
    InvalidCursorError,
    MemoryNotFoundError,
    ProfileNotFoundError,
)
from ember.db.models import Capture, Memory, Profile
from ember.db.repository import (
    AccountRepository,
    CaptureRepository,
    MemoryRepository,
    ProfileRepository,
    decode_cursor,
    encode_cursor,
)
from ember.enums import CaptureStatus

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


async def new_account(session, external_id: str = "acct") -> str:
    account = await AccountRepository(session).create(external_id)
    return account.id


def memory(profile_id: str, minutes: int, **overrides) -> Memory:
    values = {
        "profile_id": profile_id,
        "category": "work",
        "factual_content": f"Fact at minute {minutes}",
        "importance": 3,
        "verbatim_text": f"said at minute {minutes}",
        "verbatim_tokens": 5,
        "created_at": T0 + timedelta(minutes=minutes),
    }
    values.update(overrides)
    return Memory(**values)


@pytest.fixture
async def scope(session_factory):
    """An account with one profile: (account_id, profile_id)."""
    async with session_factory() as session:
        account_id = await new_account(session)
        profile = await ProfileRepository(session).create(account_id, "Default")
        await session.commit()
        return account_id, profile.id


class TestProfileRepository:
    """Default-profile invariants and ownership."""

    async def test_first_profile_becomes_default(self, session_factory) -> None:
        async with session_factory() as session:
            account_id = await new_account(session)

            profile = await ProfileRepository(session).create(account_id, "Work")

            assert profile.is_default is True

    async def test_new_default_clears_previous(self, session_factory, scope) -> None:
        account_id, first_id = scope
        async with session_factory() as session:
            repo = ProfileRepository(session)
            second = await repo.create(account_id, "Personal", is_default=True)
            await session.commit()

            profiles = await repo.list_for_account(account_id)

        assert [p.id for p in profiles if p.is_default] == [second.id]
        assert profiles[0].id == second.id

    async def test_set_default(self, session_factory, scope) -> None:
        account_id, first_id = scope
        async with session_factory() as session:
            repo = ProfileRepository(session)
            second = await repo.create(account_id, "Personal")
            await repo.set_default(account_id, second.id)
            await session.commit()

        async with session_factory() as session:
            first = await session.get(Profile, first_id)
            assert first.is_default is False

    async def test_get_other_accounts_profile(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            intruder = await new_account(session, "intruder")

            with pytest.raises(ProfileNotFoundError):
                await ProfileRepository(session).get(intruder, profile_id)

    async def test_delete_cascades_and_promotes(self, session_factory, scope) -> None:
        account_id, default_id = scope
        async with session_factory() as session:
            repo = ProfileRepository(session)
            second = await repo.create(account_id, "Second")
            third = await repo.create(account_id, "Third")
            third.created_at = second.created_at + timedelta(seconds=1)
            capture = await CaptureRepository(session).create(
                default_id, "direct_text", "text", "hash-1"
            )
            session.add(memory(default_id, 1, capture_id=capture.id))
            await session.commit()

            await repo.delete(account_id, default_id)
            await session.commit()

        async with session_factory() as session:
            assert (await session.execute(select(Memory))).scalars().all() == []
            assert (await session.execute(select(Capture))).scalars().all() == []
            promoted = await session.get(Profile, second.id)
            assert promoted.is_default is True
            assert (await session.get(Profile, third.id)).is_default is False


class TestCaptureRepository:
    """Status transitions are conditional updates."""

    async def test_fingerprint_unique_per_profile(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            await repo.create(profile_id, "direct_text", "text", "same-hash")

            with pytest.raises(IntegrityError):
                await repo.create(profile_id, "direct_text", "text", "same-hash")

    async def test_claim_once(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")

            assert await repo.claim(capture.id) is True
            assert await repo.claim(capture.id) is False
            row = await repo.get_for_worker(capture.id)
            assert row.status == CaptureStatus.PROCESSING.value
            assert row.attempt_count == 1
            assert row.started_at is not None

    async def test_complete_requires_processing(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")

            assert await repo.complete(capture.id, 3) is False
            await repo.claim(capture.id)
            assert await repo.complete(capture.id, 3) is True
            row = await repo.get_for_worker(capture.id)
            assert row.memory_count == 3

    async def test_requeue_only_from_terminal_states(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")

            assert await repo.requeue(capture.id) is False
            await repo.claim(capture.id)
            assert await repo.requeue(capture.id) is False
            await repo.fail(capture.id, "failed")
            assert await repo.requeue(capture.id) is True
            row = await repo.get_for_worker(capture.id)
            assert row.status == CaptureStatus.QUEUED.value
            assert row.error_message is None

    async def test_get_scoped_to_account(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            intruder = await new_account(session, "intruder")
            capture = await CaptureRepository(session).create(profile_id, "direct_text", "t", "h")

            with pytest.raises(CaptureNotFoundError):
                await CaptureRepository(session).get(intruder, capture.id)

    async def test_list_ids_by_status(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            first = await repo.create(profile_id, "direct_text", "a", "h1")
            second = await repo.create(profile_id, "direct_text", "b", "h2")
            await repo.claim(second.id)

            assert await repo.list_ids_by_status(CaptureStatus.QUEUED) == [first.id]
            assert await repo.list_ids_by_status(CaptureStatus.PROCESSING) == [second.id]


class TestCaptureSoftDelete:
    """Deleted captures drop out of reads and transitions until restored or purged."""

    async def test_deleted_capture_hidden(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")
            await repo.delete(account_id, capture.id)

            with pytest.raises(CaptureNotFoundError):
                await repo.get(account_id, capture.id)
            assert await repo.find_by_fingerprint(profile_id, "h") is None
            assert await repo.list_ids_by_status(CaptureStatus.QUEUED) == []
            assert await repo.claim(capture.id) is False

    async def test_deleted_capture_cannot_complete(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")
            await repo.claim(capture.id)
            await repo.delete(account_id, capture.id)

            assert await repo.complete(capture.id, 2) is False
            assert await repo.fail(capture.id, "interrupted") is True

    async def test_fingerprint_reusable_after_delete(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            first = await repo.create(profile_id, "direct_text", "text", "same-hash")
            await repo.delete(account_id, first.id)

            second = await repo.create(profile_id, "direct_text", "text", "same-hash")

            assert (await repo.find_by_fingerprint(profile_id, "same-hash")).id == second.id

    async def test_restore_within_window(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")
            await repo.delete(account_id, capture.id)
            capture.deleted_at = T0
            await session.flush()

            restored = await repo.restore(account_id, capture.id, T0 - timedelta(days=1))

            assert restored.deleted_at is None
            assert (await repo.get(account_id, capture.id)).id == capture.id

    async def test_restore_outside_window(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")
            capture.deleted_at = T0
            await session.flush()

            with pytest.raises(CaptureNotFoundError):
                await repo.restore(account_id, capture.id, T0 + timedelta(days=1))

    async def test_restore_active_capture(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            capture = await repo.create(profile_id, "direct_text", "text", "h")

            with pytest.raises(CaptureNotFoundError):
                await repo.restore(account_id, capture.id, T0)

    async def test_restore_conflicts_with_resubmission(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            first = await repo.create(profile_id, "direct_text", "text", "same-hash")
            await repo.delete(account_id, first.id)
            second = await repo.create(profile_id, "direct_text", "text", "same-hash")

            with pytest.raises(DuplicateCaptureError) as exc_info:
                await repo.restore(account_id, first.id, T0)

        assert exc_info.value.existing_id == second.id

    async def test_purge_keeps_memories(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            repo = CaptureRepository(session)
            old = await repo.create(profile_id, "direct_text", "old", "h1")
            recent = await repo.create(profile_id, "direct_text", "recent", "h2")
            kept = memory(profile_id, 1, capture_id=old.id)
            session.add(kept)
            old.deleted_at = T0
            recent.deleted_at = T0 + timedelta(days=10)
            await session.commit()

            purged = await repo.purge_deleted(T0 + timedelta(days=1))
            await session.commit()

        assert purged == 1
        async with session_factory() as session:
            assert await session.get(Capture, old.id) is None
            assert await session.get(Capture, recent.id) is not None
            row = await MemoryRepository(session).get(account_id, kept.id)
            assert row.capture_id is None


class TestMemorySoftDelete:
    """Deleted memories stay restorable until purged."""

    async def test_deleted_memory_hidden(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            capture = await CaptureRepository(session).create(profile_id, "direct_text", "t", "h")
            row = memory(profile_id, 1, capture_id=capture.id)
            session.add_all([row, memory(profile_id, 2, capture_id=capture.id)])
            await session.flush()
            repo = MemoryRepository(session)

            await repo.delete(account_id, row.id)

            with pytest.raises(MemoryNotFoundError):
                await repo.get(account_id, row.id)
            assert len(await repo.list_for_profile(account_id, profile_id)) == 1
            items, _ = await repo.list_page(account_id, profile_id)
            assert row.id not in [m.id for m in items]
            assert await repo.search(account_id, profile_id, "minute 1") == []
            assert await repo.count_for_capture(capture.id) == 1

    async def test_restore(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            row = memory(profile_id, 1, deleted_at=T0)
            session.add(row)
            await session.flush()
            repo = MemoryRepository(session)

            with pytest.raises(MemoryNotFoundError):
                await repo.restore(account_id, row.id, T0 + timedelta(days=1))
            restored = await repo.restore(account_id, row.id, T0 - timedelta(days=1))

            assert restored.deleted_at is None
            assert (await repo.get(account_id, row.id)).id == row.id

    async def test_restore_other_account(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            intruder = await new_account(session, "intruder")
            row = memory(profile_id, 1, deleted_at=T0)
            session.add(row)
            await session.flush()

            with pytest.raises(MemoryNotFoundError):
                await MemoryRepository(session).restore(intruder, row.id, T0 - timedelta(days=1))

    async def test_purge_deleted(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            session.add_all(
                [
                    memory(profile_id, 1, deleted_at=T0),
                    memory(profile_id, 2, deleted_at=T0 + timedelta(days=10)),
                    memory(profile_id, 3),
                ]
            )
            await session.commit()

            purged = await MemoryRepository(session).purge_deleted(T0 + timedelta(days=1))
            await session.commit()

        assert purged == 1
        async with session_factory() as session:
            remaining = (await session.execute(select(Memory))).scalars().all()
            assert sorted(m.factual_content for m in remaining) == [
                "Fact at minute 2",
                "Fact at minute 3",
            ]


class TestMemoryRepository:
    """Replacement, pagination and search."""

    async def test_replace_for_capture(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            capture = await CaptureRepository(session).create(profile_id, "direct_text", "t", "h")
            repo = MemoryRepository(session)
            await repo.replace_for_capture(
                capture.id, profile_id, [memory(profile_id, 1), memory(profile_id, 2)]
            )

            removed = await repo.replace_for_capture(capture.id, profile_id, [memory(profile_id, 3)])

            assert removed == 2
            assert await repo.count_for_capture(capture.id) == 1

    async def test_pagination_walks_every_memory_once(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            # Two memories share a timestamp to exercise the id tiebreak
            session.add_all([memory(profile_id, m) for m in (1, 2, 3, 3, 4)])
            await session.commit()

            repo = MemoryRepository(session)
            seen: list[str] = []
            cursor = None
            pages = 0
            while True:
                items, cursor = await repo.list_page(account_id, profile_id, cursor=cursor, limit=2)
                seen.extend(m.id for m in items)
                pages += 1
                if cursor is None:
                    break

        assert pages == 3
        assert len(seen) == len(set(seen)) == 5

    async def test_pagination_newest_first(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            session.add_all([memory(profile_id, m) for m in (1, 5, 3)])
            await session.commit()

            items, cursor = await MemoryRepository(session).list_page(account_id, profile_id)

        assert [m.factual_content for m in items] == [
            "Fact at minute 5",
            "Fact at minute 3",
            "Fact at minute 1",
        ]
        assert cursor is None

    async def test_category_filter(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            session.add_all(
                [memory(profile_id, 1), memory(profile_id, 2, category="hobbies")]
            )
            await session.commit()

            items, _ = await MemoryRepository(session).list_page(
                account_id, profile_id, category="hobbies"
            )

        assert [m.category for m in items] == ["hobbies"]

    async def test_invalid_cursor(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            with pytest.raises(InvalidCursorError):
                await MemoryRepository(session).list_page(
                    account_id, profile_id, cursor="not-a-cursor"
                )

    def test_cursor_roundtrip(self) -> None:
        assert decode_cursor(encode_cursor(T0, "mem-1")) == (T0, "mem-1")

    async def test_search_case_insensitive_ordered(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            session.add_all(
                [
                    memory(profile_id, 1, factual_content="Plays GUITAR in a band", importance=2),
                    memory(profile_id, 2, factual_content="Bought a new guitar", importance=4),
                    memory(profile_id, 3, factual_content="Likes tea"),
                    memory(
                        profile_id,
                        4,
                        factual_content="Practices daily",
                        verbatim_text="guitar practice every day",
                        importance=2,
                    ),
                ]
            )
            await session.commit()

            results = await MemoryRepository(session).search(account_id, profile_id, "Guitar")

        assert [m.factual_content for m in results] == [
            "Bought a new guitar",
            "Practices daily",
            "Plays GUITAR in a band",
        ]

    async def test_search_escapes_wildcards(self, session_factory, scope) -> None:
        account_id, profile_id = scope
        async with session_factory() as session:
            session.add_all(
                [
                    memory(profile_id, 1, factual_content="Saves 100% of bonuses"),
                    memory(profile_id, 2, factual_content="Saves 100 dollars"),
                ]
            )
            await session.commit()

            results = await MemoryRepository(session).search(account_id, profile_id, "100%")

        assert [m.factual_content for m in results] == ["Saves 100% of bonuses"]

    async def test_memory_scoped_to_account(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            intruder = await new_account(session, "intruder")
            row = memory(profile_id, 1)
            session.add(row)
            await session.flush()
            repo = MemoryRepository(session)

            with pytest.raises(MemoryNotFoundError):
                await repo.get(intruder, row.id)
            with pytest.raises(MemoryNotFoundError):
                await repo.delete(intruder, row.id)
            assert await repo.list_for_profile(intruder, profile_id) == []

    async def test_importance_check_constraint(self, session_factory, scope) -> None:
        _, profile_id = scope
        async with session_factory() as session:
            session.add(memory(profile_id, 1, importance=7))

            with pytest.raises(IntegrityError):
                await session.flush()
