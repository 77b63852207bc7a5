"""
Repository interface.

Async CRUD over the five record kinds the platform persists. Queries
are simple equality filters (owner, email, active status). Returned
records are private copies: mutate them and call the matching ``save_*``
to persist.
"""

from typing import Protocol

from tradesim.core.types import Account, Arbitrage, Bot, Holding, Trade


class Repository(Protocol):
    """Document store used by the trading service and the simulator."""

    # Accounts
    async def save_account(self, account: Account) -> None: ...

    async def get_account(self, account_id: str) -> Account | None: ...

    async def find_account_by_email(self, email: str) -> Account | None: ...

    async def find_account_by_username(self, username: str) -> Account | None: ...

    async def top_accounts_by_profit(self, limit: int) -> list[Account]: ...

    # Trades
    async def save_trade(self, trade: Trade) -> None: ...

    async def list_trades(self, user_id: str, limit: int | None = None) -> list[Trade]: ...

    # Holdings
    async def save_holding(self, holding: Holding) -> None: ...

    async def get_holding(self, user_id: str, symbol: str) -> Holding | None: ...

    async def delete_holding(self, holding_id: str) -> None: ...

    async def list_holdings(self, user_id: str) -> list[Holding]: ...

    # Bots
    async def save_bot(self, bot: Bot) -> None: ...

    async def get_bot(self, user_id: str, bot_id: str) -> Bot | None: ...

    async def find_active_bot(self, user_id: str) -> Bot | None: ...

    async def list_bots(self, user_id: str) -> list[Bot]: ...

    async def list_active_bots(self) -> list[Bot]: ...

    # Arbitrages
    async def save_arbitrage(self, arbitrage: Arbitrage) -> None: ...

    async def get_arbitrage(self, user_id: str, arbitrage_id: str) -> Arbitrage | None: ...

    async def find_active_arbitrage(self, user_id: str) -> Arbitrage | None: ...

    async def list_arbitrages(self, user_id: str) -> list[Arbitrage]: ...

    async def list_active_arbitrages(self) -> list[Arbitrage]: ...
