"""
Unit tests for the trading service.

Tests account registration, spot trades with average-cost bookkeeping,
and the bot and arbitrage position lifecycles.
"""

import pytest

from tradesim.core.types import Account, ArbitrageStatus, TradeSide
from tradesim.storage.memory import InMemoryRepository
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
from tradesim.trading.service import TradingService


PASSWORD = "hunter2-but-longer"


class TestAccounts:
    """Tests for registration, login and lookups."""

    @pytest.mark.asyncio
    async def test_register_starts_with_default_balance(
        self, service: TradingService, repository: InMemoryRepository
    ) -> None:
        token, account = await service.register("bob", "bob@example.com", PASSWORD)

        assert account.balance == 1000.0
        assert account.total_profit == 0.0
        assert account.total_trades == 0
        assert account.password_hash != PASSWORD
        assert service.authenticate(token) == account.id
        assert repository.account_count == 1

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, service: TradingService, account: Account) -> None:
        with pytest.raises(UserExistsError):
            await service.register("someone-else", account.email, PASSWORD)

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(
        self, service: TradingService, account: Account
    ) -> None:
        with pytest.raises(UserExistsError) as exc:
            await service.register(account.username, "other@example.com", PASSWORD)

        assert exc.value.reason == "User already exists"
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_login(self, service: TradingService, account: Account) -> None:
        token, logged_in = await service.login(account.email, PASSWORD)

        assert logged_in.id == account.id
        assert service.authenticate(token) == account.id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, service: TradingService, account: Account) -> None:
        with pytest.raises(InvalidCredentialsError):
            await service.login(account.email, "not-the-password")

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, service: TradingService) -> None:
        """Unknown email and wrong password look the same to the caller."""
        with pytest.raises(InvalidCredentialsError) as exc:
            await service.login("nobody@example.com", PASSWORD)

        assert exc.value.reason == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_unknown_account(self, service: TradingService) -> None:
        with pytest.raises(UserNotFoundError) as exc:
            await service.get_account("missing")

        assert exc.value.status_code == 404


class TestSpotTrades:
    """Tests for execute_trade."""

    @pytest.mark.asyncio
    async def test_buy_then_sell_realizes_profit(
        self, service: TradingService, repository: InMemoryRepository, account: Account
    ) -> None:
        """Buy 0.01 at 50000 then sell at 52000 nets 20 and clears the holding."""
        trade, balance = await service.execute_trade(account.id, "bitcoin", TradeSide.BUY, 0.01, 50000)

        assert trade.total == pytest.approx(500.0)
        assert balance == pytest.approx(500.0)
        holding = await repository.get_holding(account.id, "bitcoin")
        assert holding is not None
        assert holding.amount == pytest.approx(0.01)
        assert holding.avg_price == 50000

        trade, balance = await service.execute_trade(account.id, "bitcoin", TradeSide.SELL, 0.01, 52000)

        assert trade.profit == pytest.approx(20.0)
        assert balance == pytest.approx(1020.0)
        assert await repository.get_holding(account.id, "bitcoin") is None

        stored = await repository.get_account(account.id)
        assert stored is not None
        assert stored.total_profit == pytest.approx(20.0)
        assert stored.total_trades == 2

    @pytest.mark.asyncio
    async def test_buys_average_the_cost(
        self, service: TradingService, repository: InMemoryRepository, account: Account
    ) -> None:
        await service.execute_trade(account.id, "ethereum", TradeSide.BUY, 0.1, 2000)
        await service.execute_trade(account.id, "ethereum", TradeSide.BUY, 0.1, 3000)

        holding = await repository.get_holding(account.id, "ethereum")
        assert holding is not None
        assert holding.amount == pytest.approx(0.2)
        assert holding.avg_price == pytest.approx(2500.0)

    @pytest.mark.asyncio
    async def test_partial_sell_keeps_average(
        self, service: TradingService, repository: InMemoryRepository, account: Account
    ) -> None:
        """Profit uses the average cost; the remainder keeps it."""
        await service.execute_trade(account.id, "ethereum", TradeSide.BUY, 0.2, 2500)

        trade, _ = await service.execute_trade(account.id, "ethereum", TradeSide.SELL, 0.05, 2700)

        assert trade.profit == pytest.approx(10.0)
        holding = await repository.get_holding(account.id, "ethereum")
        assert holding is not None
        assert holding.amount == pytest.approx(0.15)
        assert holding.avg_price == 2500

    @pytest.mark.asyncio
    async def test_losing_sell(self, service: TradingService, account: Account) -> None:
        await service.execute_trade(account.id, "solana", TradeSide.BUY, 2, 100)

        trade, balance = await service.execute_trade(account.id, "solana", TradeSide.SELL, 2, 90)

        assert trade.profit == pytest.approx(-20.0)
        assert balance == pytest.approx(980.0)

    @pytest.mark.asyncio
    async def test_buy_over_balance_changes_nothing(
        self, service: TradingService, repository: InMemoryRepository, account: Account
    ) -> None:
        with pytest.raises(InsufficientBalanceError):
            await service.execute_trade(account.id, "bitcoin", TradeSide.BUY, 1, 50000)

        stored = await repository.get_account(account.id)
        assert stored is not None
        assert stored.balance == 1000.0
        assert stored.total_trades == 0
        assert await repository.list_trades(account.id) == []

    @pytest.mark.asyncio
    async def test_sell_without_holding(self, service: TradingService, account: Account) -> None:
        with pytest.raises(InsufficientHoldingsError) as exc:
            await service.execute_trade(account.id, "bitcoin", TradeSide.SELL, 0.1, 50000)

        assert exc.value.reason == "Insufficient crypto holdings"

    @pytest.mark.asyncio
    async def test_sell_more_than_held(self, service: TradingService, account: Account) -> None:
        await service.execute_trade(account.id, "bitcoin", TradeSide.BUY, 0.001, 50000)

        with pytest.raises(InsufficientHoldingsError):
            await service.execute_trade(account.id, "bitcoin", TradeSide.SELL, 0.002, 50000)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,price", [(0, 100), (-1, 100), (1, 0), (1, -5)])
    async def test_non_positive_inputs_rejected(
        self, service: TradingService, account: Account, amount: float, price: float
    ) -> None:
        with pytest.raises(ActionRejectedError):
            await service.execute_trade(account.id, "bitcoin", TradeSide.BUY, amount, price)


class TestBots:
    """Tests for the bot lifecycle."""

    @pytest.mark.asyncio
    async def test_create_debits_investment(self, service: TradingService, account: Account) -> None:
        bot, balance = await service.create_bot(account.id, "Scalper", "scalping", 250)

        assert balance == 750.0
        assert bot.current_value == 250
        assert bot.profit == 0
        assert bot.is_active

    @pytest.mark.asyncio
    async def test_one_active_bot(self, service: TradingService, account: Account) -> None:
        await service.create_bot(account.id, "First", "scalping", 100)

        with pytest.raises(DuplicateActivePositionError) as exc:
            await service.create_bot(account.id, "Second", "momentum", 100)

        assert exc.value.reason == "You can only have one active bot at a time"

    @pytest.mark.asyncio
    async def test_unknown_strategy(self, service: TradingService, account: Account) -> None:
        with pytest.raises(UnknownStrategyError):
            await service.create_bot(account.id, "Bot", "martingale", 100)

    @pytest.mark.asyncio
    async def test_over_balance(self, service: TradingService, account: Account) -> None:
        with pytest.raises(InsufficientBalanceError):
            await service.create_bot(account.id, "Bot", "scalping", 5000)

    @pytest.mark.asyncio
    async def test_stop_credits_current_value_once(
        self, service: TradingService, repository: InMemoryRepository, account: Account
    ) -> None:
        bot, _ = await service.create_bot(account.id, "Bot", "mean_reversion", 400)
        bot.current_value = 420
        bot.profit = 20
        await repository.save_bot(bot)

        stopped, balance = await service.stop_bot(account.id, bot.id)

        assert not stopped.is_active
        assert stopped.stopped_at is not None
        assert balance == pytest.approx(1020.0)

        with pytest.raises(PositionNotActiveError):
            await service.stop_bot(account.id, bot.id)

        stored = await repository.get_account(account.id)
        assert stored is not None
        assert stored.balance == pytest.approx(1020.0)
        assert stored.total_profit == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_new_bot_after_stop(self, service: TradingService, account: Account) -> None:
        bot, _ = await service.create_bot(account.id, "Bot", "scalping", 100)
        await service.stop_bot(account.id, bot.id)

        await service.create_bot(account.id, "Bot 2", "scalping", 100)

        assert len(await service.list_bots(account.id)) == 2

    @pytest.mark.asyncio
    async def test_stop_other_owners_bot(self, service: TradingService, account: Account) -> None:
        """Bots are scoped to their owner."""
        bot, _ = await service.create_bot(account.id, "Bot", "scalping", 100)
        _, other = await service.register("mallory", "mallory@example.com", PASSWORD)

        with pytest.raises(PositionNotFoundError) as exc:
            await service.stop_bot(other.id, bot.id)

        assert exc.value.status_code == 404


class TestArbitrage:
    """Tests for the arbitrage lifecycle."""

    @pytest.mark.asyncio
    async def test_create(self, service: TradingService, account: Account) -> None:
        arbitrage, balance = await service.create_arbitrage(account.id, "Statistical Arbitrage", 50)

        assert balance == 950.0
        assert arbitrage.status == ArbitrageStatus.ACTIVE
        assert arbitrage.profit == 0

    @pytest.mark.asyncio
    async def test_below_minimum(self, service: TradingService, account: Account) -> None:
        with pytest.raises(BelowMinimumInvestmentError) as exc:
            await service.create_arbitrage(account.id, "Pattern-Based Arbitrage", 199)

        assert exc.value.reason == "Minimum investment for Pattern-Based Arbitrage is $200"

    @pytest.mark.asyncio
    async def test_unknown_strategy(self, service: TradingService, account: Account) -> None:
        with pytest.raises(UnknownStrategyError):
            await service.create_arbitrage(account.id, "Temporal Arbitrage", 500)

    @pytest.mark.asyncio
    async def test_one_active_position(self, service: TradingService, account: Account) -> None:
        await service.create_arbitrage(account.id, "Spatial Arbitrage", 100)

        with pytest.raises(DuplicateActivePositionError):
            await service.create_arbitrage(account.id, "Statistical Arbitrage", 100)

    @pytest.mark.asyncio
    async def test_over_balance(self, service: TradingService, account: Account) -> None:
        with pytest.raises(InsufficientBalanceError):
            await service.create_arbitrage(account.id, "Spatial Arbitrage", 1500)

    @pytest.mark.asyncio
    async def test_stop_settles_once(
        self, service: TradingService, repository: InMemoryRepository, account: Account
    ) -> None:
        arbitrage, _ = await service.create_arbitrage(account.id, "Spatial Arbitrage", 200)
        arbitrage.profit = 12.5
        await repository.save_arbitrage(arbitrage)

        stopped, balance = await service.stop_arbitrage(account.id, arbitrage.id)

        assert stopped.status == ArbitrageStatus.COMPLETED
        assert stopped.completed_at is not None
        assert balance == pytest.approx(1012.5)

        with pytest.raises(PositionNotActiveError) as exc:
            await service.stop_arbitrage(account.id, arbitrage.id)

        assert exc.value.reason == "Arbitrage strategy is already completed"
        stored = await repository.get_account(account.id)
        assert stored is not None
        assert stored.balance == pytest.approx(1012.5)

    @pytest.mark.asyncio
    async def test_stop_unknown(self, service: TradingService, account: Account) -> None:
        with pytest.raises(PositionNotFoundError):
            await service.stop_arbitrage(account.id, "missing")


class TestProfileAndLeaderboard:
    """Tests for read-side views."""

    @pytest.mark.asyncio
    async def test_profile_lists_recent_trades(
        self, service: TradingService, account: Account
    ) -> None:
        for _ in range(12):
            await service.execute_trade(account.id, "dogecoin", TradeSide.BUY, 10, 0.1)
        await service.create_bot(account.id, "Bot", "scalping", 100)

        profile = await service.profile(account.id)
        payload = profile.to_dict()

        assert len(profile.trades) == 10
        assert len(profile.portfolio) == 1
        assert len(profile.bots) == 1
        assert payload["user"]["totalTrades"] == 12
        assert "passwordHash" not in payload["user"]
        assert "password_hash" not in payload["user"]

    @pytest.mark.asyncio
    async def test_leaderboard_orders_by_profit(
        self, service: TradingService, repository: InMemoryRepository
    ) -> None:
        for name, profit in (("low", 5.0), ("high", 50.0), ("mid", 20.0)):
            _, account = await service.register(name, f"{name}@example.com", PASSWORD)
            account.total_profit = profit
            await repository.save_account(account)

        board = await service.leaderboard()

        assert [row["username"] for row in board] == ["high", "mid", "low"]
        assert set(board[0]) == {"id", "username", "totalProfit", "totalTrades"}

    @pytest.mark.asyncio
    async def test_leaderboard_limit(self, service: TradingService) -> None:
        for i in range(12):
            await service.register(f"user{i}", f"user{i}@example.com", PASSWORD)

        assert len(await service.leaderboard()) == 10
