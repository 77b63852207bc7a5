"""
Position simulator.

Once per tick, moves every active bot and arbitrage position by a small
random return, logs synthetic bot trades, and auto-completes arbitrage
positions that reach their strategy's target. Each position is handled
on its own so one bad record never aborts the rest of the tick.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import asdict, dataclass

from tradesim.config.constants import (
    ARBITRAGE_RATE_RANGE,
    BOT_RATE_RANGE,
    BOT_REFERENCE_ASSET,
    BOT_REFERENCE_FALLBACK_PRICE,
    BOT_TRADE_AMOUNT_RANGE,
    BOT_TRADE_LOG_LIMIT,
    BOT_TRADE_PRICE_JITTER,
    BOT_TRADE_PROBABILITY,
    DEFAULT_SIMULATION_INTERVAL,
    TICK_DAMPING,
)
from tradesim.core.event_bus import Event, EventBus, EventType
from tradesim.core.scheduler import RepeatingTask, SleepFn
from tradesim.core.types import Arbitrage, Bot, BotTrade, TradeSide
from tradesim.simulation.settlement import settle_arbitrage
from tradesim.simulation.strategies import get_arbitrage_strategy
from tradesim.storage.repository import Repository
from tradesim.telemetry.metrics import MetricsCollector
from tradesim.utils.buffers import RollingWindow
from tradesim.utils.time import get_timestamp_ms, get_timestamp_us


logger = logging.getLogger(__name__)

# (asset, default) -> price
PriceLookup = Callable[[str, float], float]


def _no_prices(asset: str, default: float) -> float:
    return default


@dataclass
class SimulatorStats:
    """Running totals across ticks."""

    ticks: int = 0
    bots_updated: int = 0
    arbitrages_updated: int = 0
    arbitrages_completed: int = 0
    bot_trades_logged: int = 0
    errors: int = 0
    last_tick_ms: int | None = None

    def to_dict(self) -> dict[str, int | None]:
        return asdict(self)


class PositionSimulator:
    """
    Applies randomized profit and loss to active positions.

    Bot:       delta = current_value * U(bot range) * damping
    Arbitrage: delta = amount * U(arbitrage range) * damping
    """

    def __init__(
        self,
        repository: Repository,
        price_lookup: PriceLookup | None = None,
        event_bus: EventBus | None = None,
        rng: random.Random | None = None,
        interval_s: float = DEFAULT_SIMULATION_INTERVAL,
        metrics: MetricsCollector | None = None,
        trade_log_limit: int = BOT_TRADE_LOG_LIMIT,
        clock: Callable[[], int] = get_timestamp_ms,
    ) -> None:
        """
        Initialize the simulator.

        Args:
            repository: Record store holding the positions.
            price_lookup: Latest cached price for an asset (feed accessor).
            event_bus: Bus that receives ARBITRAGE_COMPLETED events.
            rng: Random source, seeded in tests.
            interval_s: Seconds between ticks.
            metrics: Metrics collector.
            trade_log_limit: Synthetic trades kept per bot.
            clock: Millisecond clock.
        """
        self._repository = repository
        self._price_lookup = price_lookup or _no_prices
        self._event_bus = event_bus or EventBus()
        self._rng = rng or random.Random()
        self._interval_s = interval_s
        self._metrics = metrics or MetricsCollector()
        self._trade_log_limit = trade_log_limit
        self._clock = clock

        self._stats = SimulatorStats()
        self._task: RepeatingTask | None = None

    # =========================================================================
    # Tick
    # =========================================================================

    async def tick(self) -> SimulatorStats:
        """
        Run one simulation step over all active positions.

        Returns:
            Cumulative stats after this tick.
        """
        start_us = get_timestamp_us()
        completed: list[Arbitrage] = []

        for bot in await self._repository.list_active_bots():
            try:
                await self._process_bot(bot)
            except Exception as e:
                self._stats.errors += 1
                self._metrics.increment_counter("simulator_errors")
                logger.error(f"Error updating bot {bot.id}: {e}", exc_info=True)

        for arbitrage in await self._repository.list_active_arbitrages():
            try:
                settled = await self._process_arbitrage(arbitrage)
                if settled is not None:
                    completed.append(settled)
            except Exception as e:
                self._stats.errors += 1
                self._metrics.increment_counter("simulator_errors")
                logger.error(f"Error updating arbitrage {arbitrage.id}: {e}", exc_info=True)

        # Published once every position is saved
        for arbitrage in completed:
            await self._event_bus.publish(
                Event(
                    type=EventType.ARBITRAGE_COMPLETED,
                    payload=arbitrage,
                    source="position_simulator",
                )
            )

        self._stats.ticks += 1
        self._stats.last_tick_ms = self._clock()
        self._metrics.increment_counter("simulator_ticks")
        self._metrics.record_duration("simulation_tick", get_timestamp_us() - start_us)
        return self._stats

    async def _process_bot(self, bot: Bot) -> None:
        # Skip bots stopped since the tick loaded them
        current = await self._repository.get_bot(bot.user_id, bot.id)
        if current is None or not current.is_active:
            return
        bot = current

        self.advance_bot(bot, self._rng.uniform(*BOT_RATE_RANGE))

        if self._rng.random() < BOT_TRADE_PROBABILITY:
            self._log_bot_trade(bot)

        await self._repository.save_bot(bot)
        self._stats.bots_updated += 1

    async def _process_arbitrage(self, arbitrage: Arbitrage) -> Arbitrage | None:
        """
        Advance one position and settle it at target.

        Positions stopped since the tick loaded them are skipped.

        Returns:
            The settled position if this call completed it.
        """
        current = await self._repository.get_arbitrage(arbitrage.user_id, arbitrage.id)
        if current is None or not current.is_active:
            return None
        arbitrage = current

        self.advance_arbitrage(arbitrage, self._rng.uniform(*ARBITRAGE_RATE_RANGE))
        await self._repository.save_arbitrage(arbitrage)
        self._stats.arbitrages_updated += 1

        strategy = get_arbitrage_strategy(arbitrage.strategy)
        if strategy is None:
            logger.warning(f"Arbitrage {arbitrage.id} has unknown strategy {arbitrage.strategy!r}")
            return None

        if strategy.target_reached(arbitrage.return_pct):
            account = await settle_arbitrage(self._repository, arbitrage, self._clock())
            self._stats.arbitrages_completed += 1
            self._metrics.increment_counter("arbitrages_completed")
            logger.info(
                f"Arbitrage {arbitrage.id} reached {arbitrage.return_pct:.2f}% "
                f"({strategy.name} target {strategy.target_pct:.0f}%), "
                f"balance now {account.balance if account else 'n/a'}"
            )
            return arbitrage

        return None

    def advance_bot(self, bot: Bot, rate: float) -> float:
        """
        Apply one tick's return to a bot.

        Returns:
            The value delta applied.
        """
        delta = bot.current_value * rate * TICK_DAMPING
        bot.current_value += delta
        bot.profit += delta
        return delta

    def advance_arbitrage(self, arbitrage: Arbitrage, rate: float) -> float:
        """
        Apply one tick's return to an arbitrage position.

        Returns:
            The profit delta applied.
        """
        delta = arbitrage.amount * rate * TICK_DAMPING
        arbitrage.profit += delta
        return delta

    def _log_bot_trade(self, bot: Bot) -> None:
        reference = self._price_lookup(BOT_REFERENCE_ASSET, BOT_REFERENCE_FALLBACK_PRICE)
        trade = BotTrade(
            type=TradeSide.BUY if self._rng.random() < 0.5 else TradeSide.SELL,
            amount=self._rng.uniform(*BOT_TRADE_AMOUNT_RANGE),
            price=reference + self._rng.uniform(-BOT_TRADE_PRICE_JITTER, BOT_TRADE_PRICE_JITTER),
            timestamp=self._clock(),
        )

        window = RollingWindow(self._trade_log_limit, bot.trades)
        window.append(trade)
        bot.trades = window.to_list()
        self._stats.bot_trades_logged += 1

    # =========================================================================
    # Scheduling
    # =========================================================================

    def start(self, sleep: SleepFn | None = None) -> RepeatingTask:
        """
        Start ticking at a fixed rate.

        The first tick fires one interval after start.
        """
        if self._task is None:
            self._task = RepeatingTask(
                name="position-simulator",
                callback=self.tick,
                delay=self._interval_s,
                initial_delay=self._interval_s,
                fixed_rate=True,
                sleep=sleep or asyncio.sleep,
            )
        self._task.start()
        return self._task

    async def stop(self) -> None:
        """Stop ticking."""
        if self._task:
            await self._task.stop()
            self._task = None

    @property
    def stats(self) -> SimulatorStats:
        return self._stats

    @property
    def interval_s(self) -> float:
        return self._interval_s
