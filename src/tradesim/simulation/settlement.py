"""
Position settlement.

Closing a bot or an arbitrage position returns its funds to the owning
account. Used both by owner-initiated stops and by the simulator's
auto-completion, so both paths settle the same way.
"""

import logging

from tradesim.core.types import Account, Arbitrage, ArbitrageStatus, Bot
from tradesim.storage.repository import Repository
from tradesim.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


async def settle_arbitrage(
    repository: Repository,
    arbitrage: Arbitrage,
    now_ms: int | None = None,
) -> Account | None:
    """
    Complete an active arbitrage and credit ``amount + profit`` to its owner.

    Args:
        repository: Record store.
        arbitrage: Active position (mutated in place and saved).
        now_ms: Completion timestamp, defaults to now.

    Returns:
        The updated owner account, or None if the owner no longer exists.

    Raises:
        ValueError: If the position is already completed.
    """
    if not arbitrage.is_active:
        raise ValueError(f"Arbitrage {arbitrage.id} already completed")

    arbitrage.status = ArbitrageStatus.COMPLETED
    arbitrage.completed_at = now_ms if now_ms is not None else get_timestamp_ms()
    await repository.save_arbitrage(arbitrage)

    account = await repository.get_account(arbitrage.user_id)
    if account is None:
        logger.warning(f"Owner {arbitrage.user_id} of arbitrage {arbitrage.id} not found")
        return None

    account.balance += arbitrage.amount + arbitrage.profit
    account.total_profit += arbitrage.profit
    await repository.save_account(account)
    return account


async def settle_bot(
    repository: Repository,
    bot: Bot,
    now_ms: int | None = None,
) -> Account | None:
    """
    Deactivate a bot and credit its current value to the owner.

    Raises:
        ValueError: If the bot is already stopped.
    """
    if not bot.is_active:
        raise ValueError(f"Bot {bot.id} already stopped")

    bot.is_active = False
    bot.stopped_at = now_ms if now_ms is not None else get_timestamp_ms()
    await repository.save_bot(bot)

    account = await repository.get_account(bot.user_id)
    if account is None:
        logger.warning(f"Owner {bot.user_id} of bot {bot.id} not found")
        return None

    account.balance += bot.current_value
    account.total_profit += bot.profit
    await repository.save_account(account)
    return account
