"""Per-wallet position ledger refreshed from a balance provider."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Mapping

from ..config import RiskConfig
from ..errors import DataUnavailableError
from ..interfaces.balance_provider import BalanceProvider
from ..models import Portfolio, Position, TokenBalance

logger = logging.getLogger(__name__)


class PositionLedger:
    """Tracks asset → position for each wallet.

    Each refresh builds a complete new mapping and swaps it in, so readers
    holding a snapshot never observe a half-applied refresh. Refreshes for
    the same wallet are serialized; different wallets never contend.
    """

    def __init__(self, provider: BalanceProvider, config: RiskConfig) -> None:
        self._provider = provider
        self._config = config
        self._books: dict[str, Mapping[str, Position]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, wallet_id: str) -> asyncio.Lock:
        lock = self._locks.get(wallet_id)
        if lock is None:
            lock = self._locks[wallet_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    async def refresh(self, wallet_id: str) -> Portfolio:
        """Pull balances and rebuild the wallet's positions.

        Raises:
            DataUnavailableError: The balance provider failed outright.
        """
        async with self._lock(wallet_id):
            try:
                balances = await self._provider.get_balances(wallet_id)
            except DataUnavailableError:
                raise
            except Exception as e:
                raise DataUnavailableError(
                    f"Balance fetch failed for {wallet_id}: {e}"
                ) from e

            current = self._books.get(wallet_id, {})
            book: dict[str, Position] = {}

            for balance in balances:
                position = self._apply_balance(wallet_id, current.get(balance.asset_id), balance)
                if position is not None:
                    book[balance.asset_id] = position

            for asset_id in set(current) - set(book):
                logger.info("Position closed — %s · %s", wallet_id, asset_id)

            self._books[wallet_id] = MappingProxyType(book)
            logger.debug("Ledger refreshed — %s · %d positions", wallet_id, len(book))

        return self.snapshot(wallet_id)

    def _apply_balance(
        self, wallet_id: str, existing: Position | None, balance: TokenBalance
    ) -> Position | None:
        if balance.ui_amount <= 0:
            return None

        price = _resolve_price(balance)
        if price is None:
            if existing is None:
                logger.warning(
                    "No price for %s in %s — position not tracked yet",
                    balance.asset_id,
                    wallet_id,
                )
                return None
            price = existing.current_price

        if existing is not None:
            position = existing.repriced(price, balance.ui_amount)
            if balance.decimals is not None and balance.decimals != position.decimals:
                position = replace(position, decimals=balance.decimals)
            return position

        stop_loss, take_profit = self._default_thresholds(price)
        return Position(
            id=f"{wallet_id}:{balance.asset_id}",
            asset_id=balance.asset_id,
            symbol=balance.symbol or balance.asset_id[:6],
            entry_price=price,
            current_price=price,
            amount=balance.ui_amount,
            value=balance.ui_amount * price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            decimals=balance.decimals,
        )

    def _default_thresholds(self, entry_price: float) -> tuple[float | None, float | None]:
        if entry_price <= 0:
            return None, None
        stop_loss = None
        take_profit = None
        if self._config.default_stop_loss_pct > 0:
            stop_loss = entry_price * (1 - self._config.default_stop_loss_pct / 100)
        if self._config.default_take_profit_pct > 0:
            take_profit = entry_price * (1 + self._config.default_take_profit_pct / 100)
        return stop_loss, take_profit

    def set_thresholds(
        self,
        wallet_id: str,
        asset_id: str,
        stop_loss: float | None,
        take_profit: float | None,
    ) -> Position:
        """Override stop-loss/take-profit for one tracked position.

        Raises:
            KeyError: The asset is not tracked for this wallet.
            ValueError: The thresholds do not bracket the entry price.
        """
        book = dict(self._books.get(wallet_id, {}))
        position = book[asset_id]
        updated = replace(position, stop_loss=stop_loss, take_profit=take_profit)
        book[asset_id] = updated
        self._books[wallet_id] = MappingProxyType(book)
        return updated

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def positions(self, wallet_id: str) -> tuple[Position, ...]:
        return tuple(self._books.get(wallet_id, {}).values())

    def snapshot(self, wallet_id: str) -> Portfolio:
        """Return an immutable portfolio view of the wallet's current book."""
        positions = self.positions(wallet_id)
        total = sum(p.value for p in positions)
        cash = sum(
            p.value for p in positions if self._config.is_cash(p.asset_id, p.symbol)
        )
        return Portfolio(
            wallet_id=wallet_id,
            total_value=total,
            positions=positions,
            cash_balance=cash,
        )


def _resolve_price(balance: TokenBalance) -> float | None:
    if balance.price_usd is not None and balance.price_usd > 0:
        return balance.price_usd
    if balance.value_usd is not None and balance.ui_amount > 0:
        return balance.value_usd / balance.ui_amount
    return None
