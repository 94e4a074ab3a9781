"""Balance provider protocols — wallet holdings and push subscriptions."""
from typing import Protocol

from ..models import TokenBalance


class BalanceProvider(Protocol):
    """Abstract interface for reading a wallet's token balances."""

    async def get_balances(self, wallet_id: str) -> list[TokenBalance]: ...


class SubscriptionProvider(Protocol):
    """Registers and removes push notifications for wallet activity."""

    async def create_webhook(self, wallet_id: str) -> str: ...

    async def delete_webhook(self, webhook_id: str) -> None: ...
