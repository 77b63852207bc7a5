"""
Trading service.

Owner-facing operations: accounts, spot trades, bots, arbitrage
positions and the leaderboard. Every operation is a read-modify-write
against the repository; rejections raise ActionRejectedError subclasses
that the API maps to HTTP responses.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tradesim.auth.security import PasswordHasher, TokenService
from tradesim.config.constants import (
    DEFAULT_STARTING_BALANCE,
    HOLDING_DUST,
    LEADERBOARD_SIZE,
    RECENT_TRADES_LIMIT,
)
from tradesim.core.types import Account, Arbitrage, Bot, Holding, Trade, TradeSide
from tradesim.simulation.settlement import settle_arbitrage, settle_bot
from tradesim.simulation.strategies import get_arbitrage_strategy, get_bot_strategy
from tradesim.storage.repository import Repository
from tradesim.trading.errors import (
    ActionRejectedError,
    BelowMinimumInvestmentError,
    DuplicateActivePositionError,
    InsufficientBalanceError,
    InsufficientHoldingsError,
    InvalidCredentialsError,
    PositionNotActiveError,
    PositionNotFoundError,
    UnknownStrategyError,
    UserExistsError,
    UserNotFoundError,
)
from tradesim.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


@dataclass
class AccountProfile:
    """Everything the profile page shows for one account."""

    account: Account
    trades: list[Trade]
    portfolio: list[Holding]
    arbitrages: list[Arbitrage]
    bots: list[Bot]

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.account.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "portfolio": [h.to_dict() for h in self.portfolio],
            "arbitrages": [a.to_dict() for a in self.arbitrages],
            "bots": [b.to_dict() for b in self.bots],
        }


class TradingService:
    """
    Account and position operations.

    Features:
    - Registration and login with hashed passwords and session tokens
    - Spot trades with weighted-average holdings and realized profit
    - One active bot and one active arbitrage per account
    - Settlement shared with the position simulator
    """

    def __init__(
        self,
        repository: Repository,
        tokens: TokenService,
        hasher: PasswordHasher | None = None,
        starting_balance: float = DEFAULT_STARTING_BALANCE,
        clock: Callable[[], int] = get_timestamp_ms,
    ) -> None:
        """
        Initialize the service.

        Args:
            repository: Record store.
            tokens: Session token issuer and verifier.
            hasher: Password hasher.
            starting_balance: Balance credited on registration.
            clock: Millisecond clock.
        """
        self._repository = repository
        self._tokens = tokens
        self._hasher = hasher or PasswordHasher()
        self._starting_balance = starting_balance
        self._clock = clock

    # =========================================================================
    # Accounts
    # =========================================================================

    async def register(self, username: str, email: str, password: str) -> tuple[str, Account]:
        """
        Create an account.

        Returns:
            (token, account)

        Raises:
            UserExistsError: Email or username already taken.
        """
        if await self._repository.find_account_by_email(email) is not None:
            raise UserExistsError()
        if await self._repository.find_account_by_username(username) is not None:
            raise UserExistsError()

        # PBKDF2 is CPU bound; keep it off the event loop
        password_hash = await asyncio.to_thread(self._hasher.hash, password)

        account = Account(
            username=username,
            email=email,
            password_hash=password_hash,
            balance=self._starting_balance,
            created_at=self._clock(),
        )
        await self._repository.save_account(account)

        logger.info(f"Registered account {account.id} ({username})")
        return self._tokens.issue(account.id), account

    async def login(self, email: str, password: str) -> tuple[str, Account]:
        """
        Check credentials and issue a token.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
        """
        account = await self._repository.find_account_by_email(email)
        if account is None:
            raise InvalidCredentialsError()

        if not await asyncio.to_thread(self._hasher.verify, password, account.password_hash):
            raise InvalidCredentialsError()

        return self._tokens.issue(account.id), account

    def authenticate(self, token: str) -> str:
        """Verify a session token and return its account id."""
        return self._tokens.verify(token)

    async def get_account(self, user_id: str) -> Account:
        account = await self._repository.get_account(user_id)
        if account is None:
            raise UserNotFoundError()
        return account

    async def profile(self, user_id: str) -> AccountProfile:
        """Account with recent trades, holdings and positions."""
        account = await self.get_account(user_id)
        return AccountProfile(
            account=account,
            trades=await self._repository.list_trades(user_id, limit=RECENT_TRADES_LIMIT),
            portfolio=await self._repository.list_holdings(user_id),
            arbitrages=await self._repository.list_arbitrages(user_id),
            bots=await self._repository.list_bots(user_id),
        )

    async def leaderboard(self, limit: int = LEADERBOARD_SIZE) -> list[dict[str, Any]]:
        """Top accounts by total profit."""
        return [
            {
                "id": a.id,
                "username": a.username,
                "totalProfit": a.total_profit,
                "totalTrades": a.total_trades,
            }
            for a in await self._repository.top_accounts_by_profit(limit)
        ]

    # =========================================================================
    # Spot Trades
    # =========================================================================

    async def execute_trade(
        self,
        user_id: str,
        symbol: str,
        side: TradeSide,
        amount: float,
        price: float,
    ) -> tuple[Trade, float]:
        """
        Execute a buy or sell at the given price.

        Returns:
            (trade, balance after the trade)

        Raises:
            InsufficientBalanceError: Buy costs more than the balance.
            InsufficientHoldingsError: Sell exceeds the holding.
        """
        if amount <= 0 or price <= 0:
            raise ActionRejectedError("Amount and price must be positive")

        account = await self.get_account(user_id)
        total = amount * price
        now = self._clock()
        profit = 0.0

        holding = await self._repository.get_holding(user_id, symbol)

        if side == TradeSide.BUY:
            if account.balance < total:
                raise InsufficientBalanceError()

            account.balance -= total
            if holding is None:
                holding = Holding(
                    user_id=user_id,
                    symbol=symbol,
                    amount=amount,
                    avg_price=price,
                    updated_at=now,
                )
            else:
                new_amount = holding.amount + amount
                holding.avg_price = (holding.avg_price * holding.amount + price * amount) / new_amount
                holding.amount = new_amount
                holding.updated_at = now
            await self._repository.save_holding(holding)

        else:
            if holding is None or holding.amount < amount:
                raise InsufficientHoldingsError()

            # Realized against the average cost before the holding shrinks
            profit = (price - holding.avg_price) * amount
            account.balance += total
            account.total_profit += profit

            holding.amount -= amount
            holding.updated_at = now
            if holding.amount <= HOLDING_DUST:
                await self._repository.delete_holding(holding.id)
            else:
                await self._repository.save_holding(holding)

        account.total_trades += 1
        await self._repository.save_account(account)

        trade = Trade(
            user_id=user_id,
            symbol=symbol,
            type=side,
            amount=amount,
            price=price,
            total=total,
            profit=profit,
            created_at=now,
        )
        await self._repository.save_trade(trade)

        logger.info(
            f"Trade {trade.id}: {side.value} {amount} {symbol} @ {price} "
            f"(profit {profit:.2f}, balance {account.balance:.2f})"
        )
        return trade, account.balance

    # =========================================================================
    # Bots
    # =========================================================================

    async def create_bot(
        self,
        user_id: str,
        name: str,
        strategy: str,
        investment: float,
    ) -> tuple[Bot, float]:
        """
        Fund and start a bot.

        Raises:
            UnknownStrategyError: Strategy not in the catalog.
            DuplicateActivePositionError: Owner already runs a bot.
            InsufficientBalanceError: Investment exceeds the balance.
        """
        if get_bot_strategy(strategy) is None:
            raise UnknownStrategyError(strategy)
        if investment <= 0:
            raise ActionRejectedError("Investment must be positive")

        if await self._repository.find_active_bot(user_id) is not None:
            raise DuplicateActivePositionError("You can only have one active bot at a time")

        account = await self.get_account(user_id)
        if account.balance < investment:
            raise InsufficientBalanceError()

        account.balance -= investment
        await self._repository.save_account(account)

        bot = Bot(
            user_id=user_id,
            name=name,
            strategy=strategy,
            investment=investment,
            current_value=investment,
            created_at=self._clock(),
        )
        await self._repository.save_bot(bot)

        logger.info(f"Bot {bot.id} ({strategy}) started for {user_id} with {investment}")
        return bot, account.balance

    async def list_bots(self, user_id: str) -> list[Bot]:
        """Owner's bots, newest first."""
        return await self._repository.list_bots(user_id)

    async def stop_bot(self, user_id: str, bot_id: str) -> tuple[Bot, float]:
        """
        Stop a bot and return its current value to the owner.

        Raises:
            PositionNotFoundError: No such bot for this owner.
            PositionNotActiveError: Bot already stopped.
        """
        bot = await self._repository.get_bot(user_id, bot_id)
        if bot is None:
            raise PositionNotFoundError("Bot not found")
        if not bot.is_active:
            raise PositionNotActiveError("Bot is already stopped")

        account = await settle_bot(self._repository, bot, self._clock())
        if account is None:
            raise UserNotFoundError()

        logger.info(f"Bot {bot.id} stopped, returned {bot.current_value:.2f}")
        return bot, account.balance

    # =========================================================================
    # Arbitrage
    # =========================================================================

    async def create_arbitrage(
        self,
        user_id: str,
        strategy: str,
        amount: float,
    ) -> tuple[Arbitrage, float]:
        """
        Fund an arbitrage position.

        Raises:
            UnknownStrategyError: Strategy not in the catalog.
            BelowMinimumInvestmentError: Amount under the strategy minimum.
            DuplicateActivePositionError: Owner already has an active position.
            InsufficientBalanceError: Amount exceeds the balance.
        """
        descriptor = get_arbitrage_strategy(strategy)
        if descriptor is None:
            raise UnknownStrategyError(strategy)
        if amount < descriptor.min_investment:
            raise BelowMinimumInvestmentError(descriptor.name, descriptor.min_investment)

        if await self._repository.find_active_arbitrage(user_id) is not None:
            raise DuplicateActivePositionError(
                "You can only have one active arbitrage strategy at a time"
            )

        account = await self.get_account(user_id)
        if account.balance < amount:
            raise InsufficientBalanceError()

        account.balance -= amount
        await self._repository.save_account(account)

        arbitrage = Arbitrage(
            user_id=user_id,
            strategy=strategy,
            amount=amount,
            created_at=self._clock(),
        )
        await self._repository.save_arbitrage(arbitrage)

        logger.info(f"Arbitrage {arbitrage.id} ({strategy}) opened for {user_id} with {amount}")
        return arbitrage, account.balance

    async def list_arbitrages(self, user_id: str) -> list[Arbitrage]:
        """Owner's arbitrage positions, newest first."""
        return await self._repository.list_arbitrages(user_id)

    async def stop_arbitrage(self, user_id: str, arbitrage_id: str) -> tuple[Arbitrage, float]:
        """
        Complete an arbitrage position early and settle it.

        Raises:
            PositionNotFoundError: No such position for this owner.
            PositionNotActiveError: Position already completed.
        """
        arbitrage = await self._repository.get_arbitrage(user_id, arbitrage_id)
        if arbitrage is None:
            raise PositionNotFoundError("Arbitrage strategy not found")
        if not arbitrage.is_active:
            raise PositionNotActiveError("Arbitrage strategy is already completed")

        account = await settle_arbitrage(self._repository, arbitrage, self._clock())
        if account is None:
            raise UserNotFoundError()

        logger.info(f"Arbitrage {arbitrage.id} stopped with profit {arbitrage.profit:.2f}")
        return arbitrage, account.balance
