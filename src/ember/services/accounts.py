"""Account and profile management."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ember.db.models import ProfileRecord
from ember.db.repository import AccountRepository, ProfileRepository
from ember.enums import AccountTier, Platform
from ember.llm.factory import ExtractionRoute

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_NAME = "Default"


class AccountService:
    """Creates accounts and manages their profiles."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], default_token_budget: int = 8000
    ):
        self.session_factory = session_factory
        self.default_token_budget = default_token_budget

    async def create_account(
        self,
        external_id: str,
        tier: AccountTier = AccountTier.FREE,
        extraction_route: ExtractionRoute = ExtractionRoute.SERVER,
        byok_api_key: str | None = None,
    ) -> tuple[str, ProfileRecord]:
        """Create an account together with its default profile.

        Idempotent on external_id: an existing account is returned with its
        current default profile.

        Returns:
            (account id, default profile)
        """
        async with self.session_factory() as session:
            accounts = AccountRepository(session)
            profiles = ProfileRepository(session)

            existing = await accounts.get_by_external_id(external_id)
            if existing is not None:
                current = await profiles.list_for_account(existing.id)
                if current:
                    return existing.id, ProfileRecord.model_validate(current[0])
                profile = await profiles.create(existing.id, DEFAULT_PROFILE_NAME, is_default=True)
                await session.commit()
                return existing.id, ProfileRecord.model_validate(profile)

            account = await accounts.create(
                external_id,
                tier=tier,
                token_budget=self.default_token_budget,
                extraction_route=ExtractionRoute(extraction_route).value,
                byok_api_key=byok_api_key,
            )
            profile = await profiles.create(account.id, DEFAULT_PROFILE_NAME, is_default=True)
            await session.commit()
            return account.id, ProfileRecord.model_validate(profile)

    async def create_profile(
        self,
        account_id: str,
        name: str,
        platform: Platform | None = None,
        is_default: bool = False,
    ) -> ProfileRecord:
        async with self.session_factory() as session:
            await AccountRepository(session).get(account_id)
            profile = await ProfileRepository(session).create(
                account_id,
                name,
                platform=platform.value if platform else None,
                is_default=is_default,
            )
            await session.commit()
            return ProfileRecord.model_validate(profile)

    async def list_profiles(self, account_id: str) -> list[ProfileRecord]:
        async with self.session_factory() as session:
            rows = await ProfileRepository(session).list_for_account(account_id)
            return [ProfileRecord.model_validate(row) for row in rows]

    async def set_default_profile(self, account_id: str, profile_id: str) -> ProfileRecord:
        async with self.session_factory() as session:
            profile = await ProfileRepository(session).set_default(account_id, profile_id)
            await session.commit()
            return ProfileRecord.model_validate(profile)

    async def delete_profile(self, account_id: str, profile_id: str) -> None:
        async with self.session_factory() as session:
            await ProfileRepository(session).delete(account_id, profile_id)
            await session.commit()
