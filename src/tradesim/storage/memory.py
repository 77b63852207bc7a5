"""
In-memory document store.

Implements the Repository protocol with plain dicts keyed by record id.
Records go in and come out as deep copies so no caller ever holds a
reference to stored state.
"""

import copy
from collections.abc import Callable, Iterable
from typing import TypeVar

from tradesim.core.types import Account, Arbitrage, Bot, Holding, Trade


R = TypeVar("R")


def _newest_first(records: Iterable[R], key: Callable[[R], int]) -> list[R]:
    # Reverse insertion order first so ties on timestamp stay newest-first
    return sorted(reversed(list(records)), key=key, reverse=True)


class InMemoryRepository:
    """Process-local Repository implementation."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._trades: dict[str, Trade] = {}
        self._holdings: dict[str, Holding] = {}
        self._bots: dict[str, Bot] = {}
        self._arbitrages: dict[str, Arbitrage] = {}

    # =========================================================================
    # Accounts
    # =========================================================================

    async def save_account(self, account: Account) -> None:
        self._accounts[account.id] = copy.deepcopy(account)

    async def get_account(self, account_id: str) -> Account | None:
        return copy.deepcopy(self._accounts.get(account_id))

    async def find_account_by_email(self, email: str) -> Account | None:
        for account in self._accounts.values():
            if account.email == email:
                return copy.deepcopy(account)
        return None

    async def find_account_by_username(self, username: str) -> Account | None:
        for account in self._accounts.values():
            if account.username == username:
                return copy.deepcopy(account)
        return None

    async def top_accounts_by_profit(self, limit: int) -> list[Account]:
        ranked = sorted(self._accounts.values(), key=lambda a: a.total_profit, reverse=True)
        return copy.deepcopy(ranked[:limit])

    # =========================================================================
    # Trades
    # =========================================================================

    async def save_trade(self, trade: Trade) -> None:
        self._trades[trade.id] = copy.deepcopy(trade)

    async def list_trades(self, user_id: str, limit: int | None = None) -> list[Trade]:
        trades = _newest_first(
            (t for t in self._trades.values() if t.user_id == user_id),
            key=lambda t: t.created_at,
        )
        if limit is not None:
            trades = trades[:limit]
        return copy.deepcopy(trades)

    # =========================================================================
    # Holdings
    # =========================================================================

    async def save_holding(self, holding: Holding) -> None:
        self._holdings[holding.id] = copy.deepcopy(holding)

    async def get_holding(self, user_id: str, symbol: str) -> Holding | None:
        for holding in self._holdings.values():
            if holding.user_id == user_id and holding.symbol == symbol:
                return copy.deepcopy(holding)
        return None

    async def delete_holding(self, holding_id: str) -> None:
        self._holdings.pop(holding_id, None)

    async def list_holdings(self, user_id: str) -> list[Holding]:
        return copy.deepcopy([h for h in self._holdings.values() if h.user_id == user_id])

    # =========================================================================
    # Bots
    # =========================================================================

    async def save_bot(self, bot: Bot) -> None:
        self._bots[bot.id] = copy.deepcopy(bot)

    async def get_bot(self, user_id: str, bot_id: str) -> Bot | None:
        bot = self._bots.get(bot_id)
        if bot is None or bot.user_id != user_id:
            return None
        return copy.deepcopy(bot)

    async def find_active_bot(self, user_id: str) -> Bot | None:
        for bot in self._bots.values():
            if bot.user_id == user_id and bot.is_active:
                return copy.deepcopy(bot)
        return None

    async def list_bots(self, user_id: str) -> list[Bot]:
        return copy.deepcopy(
            _newest_first(
                (b for b in self._bots.values() if b.user_id == user_id),
                key=lambda b: b.created_at,
            )
        )

    async def list_active_bots(self) -> list[Bot]:
        return copy.deepcopy([b for b in self._bots.values() if b.is_active])

    # =========================================================================
    # Arbitrages
    # =========================================================================

    async def save_arbitrage(self, arbitrage: Arbitrage) -> None:
        self._arbitrages[arbitrage.id] = copy.deepcopy(arbitrage)

    async def get_arbitrage(self, user_id: str, arbitrage_id: str) -> Arbitrage | None:
        arbitrage = self._arbitrages.get(arbitrage_id)
        if arbitrage is None or arbitrage.user_id != user_id:
            return None
        return copy.deepcopy(arbitrage)

    async def find_active_arbitrage(self, user_id: str) -> Arbitrage | None:
        for arbitrage in self._arbitrages.values():
            if arbitrage.user_id == user_id and arbitrage.is_active:
                return copy.deepcopy(arbitrage)
        return None

    async def list_arbitrages(self, user_id: str) -> list[Arbitrage]:
        return copy.deepcopy(
            _newest_first(
                (a for a in self._arbitrages.values() if a.user_id == user_id),
                key=lambda a: a.created_at,
            )
        )

    async def list_active_arbitrages(self) -> list[Arbitrage]:
        return copy.deepcopy([a for a in self._arbitrages.values() if a.is_active])

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def account_count(self) -> int:
        return len(self._accounts)
