"""Swap provider protocol — quoting and transaction building."""
from typing import Protocol

from ..models import BuiltTransaction, Quote, SwapMode


class SwapProvider(Protocol):
    """Abstract interface for quoting and building swap transactions.

    Both calls raise ``ExecutionError`` on failure.
    """

    async def quote(
        self, input_asset: str, output_asset: str, amount: int, mode: SwapMode
    ) -> Quote: ...

    async def build(self, quote: Quote, wallet_id: str) -> BuiltTransaction: ...
