"""
Unit tests for the in-memory repository.
"""

import pytest

from tradesim.core.types import Account, Arbitrage, ArbitrageStatus, Bot, Holding, Trade, TradeSide
from tradesim.storage.memory import InMemoryRepository


def make_trade(user_id: str, created_at: int) -> Trade:
    return Trade(
        user_id=user_id,
        symbol="bitcoin",
        type=TradeSide.BUY,
        amount=1,
        price=1,
        total=1,
        created_at=created_at,
    )


class TestIsolation:
    """Stored records are never aliased with caller objects."""

    @pytest.mark.asyncio
    async def test_saved_copy_is_independent(self, repository: InMemoryRepository) -> None:
        account = Account(username="a", email="a@example.com", password_hash="h", balance=100)
        await repository.save_account(account)

        account.balance = 0

        stored = await repository.get_account(account.id)
        assert stored is not None
        assert stored.balance == 100

    @pytest.mark.asyncio
    async def test_returned_copy_is_independent(self, repository: InMemoryRepository) -> None:
        bot = Bot(user_id="u1", name="b", strategy="scalping", investment=10, current_value=10)
        await repository.save_bot(bot)

        fetched = await repository.get_bot("u1", bot.id)
        assert fetched is not None
        fetched.current_value = 999

        again = await repository.get_bot("u1", bot.id)
        assert again is not None
        assert again.current_value == 10


class TestQueries:
    """Tests for ordering and owner scoping."""

    @pytest.mark.asyncio
    async def test_trades_newest_first_with_limit(self, repository: InMemoryRepository) -> None:
        for ts in (1, 3, 2):
            await repository.save_trade(make_trade("u1", ts))
        await repository.save_trade(make_trade("u2", 4))

        trades = await repository.list_trades("u1")
        assert [t.created_at for t in trades] == [3, 2, 1]
        assert len(await repository.list_trades("u1", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_ties_break_by_insertion(self, repository: InMemoryRepository) -> None:
        first = make_trade("u1", 5)
        second = make_trade("u1", 5)
        await repository.save_trade(first)
        await repository.save_trade(second)

        trades = await repository.list_trades("u1")
        assert [t.id for t in trades] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_positions_scoped_to_owner(self, repository: InMemoryRepository) -> None:
        arbitrage = Arbitrage(user_id="u1", strategy="Spatial Arbitrage", amount=100)
        await repository.save_arbitrage(arbitrage)

        assert await repository.get_arbitrage("u2", arbitrage.id) is None
        assert await repository.find_active_arbitrage("u2") is None
        assert await repository.list_arbitrages("u2") == []

    @pytest.mark.asyncio
    async def test_active_filters(self, repository: InMemoryRepository) -> None:
        done = Arbitrage(
            user_id="u1",
            strategy="Spatial Arbitrage",
            amount=100,
            status=ArbitrageStatus.COMPLETED,
        )
        live = Arbitrage(user_id="u1", strategy="Spatial Arbitrage", amount=100)
        await repository.save_arbitrage(done)
        await repository.save_arbitrage(live)

        active = await repository.list_active_arbitrages()
        assert [a.id for a in active] == [live.id]
        found = await repository.find_active_arbitrage("u1")
        assert found is not None
        assert found.id == live.id

    @pytest.mark.asyncio
    async def test_holding_lookup_and_delete(self, repository: InMemoryRepository) -> None:
        holding = Holding(user_id="u1", symbol="ethereum", amount=1, avg_price=2000)
        await repository.save_holding(holding)

        assert await repository.get_holding("u1", "bitcoin") is None
        assert await repository.get_holding("u1", "ethereum") is not None

        await repository.delete_holding(holding.id)

        assert await repository.list_holdings("u1") == []

    @pytest.mark.asyncio
    async def test_lookup_by_email_and_username(self, repository: InMemoryRepository) -> None:
        account = Account(username="carol", email="carol@example.com", password_hash="h", balance=0)
        await repository.save_account(account)

        by_email = await repository.find_account_by_email("carol@example.com")
        by_name = await repository.find_account_by_username("carol")
        assert by_email is not None and by_email.id == account.id
        assert by_name is not None and by_name.id == account.id
        assert await repository.find_account_by_email("CAROL@example.com") is None
