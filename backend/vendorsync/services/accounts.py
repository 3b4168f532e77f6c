"""Vendor account lookup and per-account client resolution."""

from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorsync.config import Settings, get_settings
from vendorsync.models import VendorAccount
from vendorsync.services.vendor_client import (
    MissingCredentialsError,
    VendorClient,
    build_vendor_client,
)

ClientFactory = Callable[[VendorAccount], VendorClient]


async def get_active_accounts(db: AsyncSession) -> list[VendorAccount]:
    """Authorized, non-archived accounts in creation order."""
    result = await db.execute(
        select(VendorAccount)
        .where(VendorAccount.is_authorized.is_(True), VendorAccount.archived.is_(False))
        .order_by(VendorAccount.created_at, VendorAccount.id)
    )
    return list(result.scalars().all())


class AccountClients:
    """Builds vendor clients for accounts looked up by stream id."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.client_factory = client_factory or (
            lambda account: build_vendor_client(account, self.settings)
        )

    async def get_account(self, stream_id: str) -> VendorAccount:
        """
        Load an active account.

        Raises:
            MissingCredentialsError: account missing, archived or not authorized
        """
        account = await self.db.get(VendorAccount, stream_id)
        if account is None or not account.is_authorized or account.archived:
            raise MissingCredentialsError(f"Account {stream_id} is missing or not authorized")
        return account

    def client_for_account(self, account: VendorAccount) -> VendorClient:
        return self.client_factory(account)

    async def client_for(self, stream_id: str) -> VendorClient:
        """Resolve the client for a stream id (raises MissingCredentialsError)."""
        account = await self.get_account(stream_id)
        return self.client_factory(account)
