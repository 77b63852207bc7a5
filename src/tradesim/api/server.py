"""
FastAPI server for the trading platform.

Wires the price feed, the position simulator and the trading service
into one application: REST routes under /api and the price push channel
on /ws.
"""

import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from fastapi import Depends, FastAPI, Request, Security, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tradesim import __version__
from tradesim.api.broadcast import ConnectionManager
from tradesim.api.schemas import (
    CreateArbitrageRequest,
    CreateBotRequest,
    LoginRequest,
    RegisterRequest,
    TradeRequest,
)
from tradesim.auth.security import AuthError, MissingTokenError, PasswordHasher, TokenService
from tradesim.config.settings import Settings
from tradesim.core.event_bus import EventBus
from tradesim.feed.acquirer import PriceFeed
from tradesim.feed.client import CoinGeckoClient, PriceSource
from tradesim.feed.rate_limiter import BackoffPolicy, CallBudget
from tradesim.simulation.simulator import PositionSimulator
from tradesim.simulation.strategies import ARBITRAGE_STRATEGIES, BOT_STRATEGIES
from tradesim.storage.memory import InMemoryRepository
from tradesim.storage.repository import Repository
from tradesim.telemetry.metrics import MetricsCollector
from tradesim.trading.errors import ActionRejectedError
from tradesim.trading.service import TradingService


logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Platform:
    """Long-lived components shared by every request."""

    settings: Settings
    event_bus: EventBus
    metrics: MetricsCollector
    repository: Repository
    feed: PriceFeed
    simulator: PositionSimulator
    service: TradingService
    hub: ConnectionManager
    client: CoinGeckoClient | None = None
    run_background: bool = True


def build_platform(
    settings: Settings,
    price_source: PriceSource | None = None,
    repository: Repository | None = None,
    rng: random.Random | None = None,
    run_background: bool = True,
) -> Platform:
    """
    Assemble the platform from settings.

    Args:
        settings: Application settings.
        price_source: Upstream prices; a CoinGecko client when omitted.
        repository: Record store; in-memory when omitted.
        rng: Random source for the simulator.
        run_background: Start the feed and simulator loops on startup.
    """
    event_bus = EventBus()
    metrics = MetricsCollector()

    client = None
    if price_source is None:
        client = CoinGeckoClient(
            base_url=settings.price_api_url,
            timeout_s=settings.price_api_timeout_s,
        )
        price_source = client

    feed = PriceFeed(
        source=price_source,
        event_bus=event_bus,
        backoff=BackoffPolicy(
            base_interval=settings.fetch_interval_s,
            max_interval=settings.max_fetch_interval_s,
            max_exponent=settings.backoff_max_exponent,
        ),
        cache_duration_s=settings.cache_duration_s,
        call_budget=CallBudget(capacity=settings.max_calls_per_minute),
        metrics=metrics,
    )

    repository = repository or InMemoryRepository()

    simulator = PositionSimulator(
        repository=repository,
        price_lookup=feed.latest_price,
        event_bus=event_bus,
        rng=rng,
        interval_s=settings.simulation_interval_s,
        metrics=metrics,
    )

    service = TradingService(
        repository=repository,
        tokens=TokenService(
            secret=settings.jwt_secret.get_secret_value(),
            ttl=timedelta(days=settings.token_ttl_days),
        ),
        hasher=PasswordHasher(iterations=settings.password_hash_iterations),
        starting_balance=settings.starting_balance,
    )

    hub = ConnectionManager()
    hub.attach(event_bus)

    return Platform(
        settings=settings,
        event_bus=event_bus,
        metrics=metrics,
        repository=repository,
        feed=feed,
        simulator=simulator,
        service=service,
        hub=hub,
        client=client,
        run_background=run_background,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    platform: Platform = app.state.platform

    if platform.run_background:
        platform.feed.start(initial_delay=platform.settings.initial_fetch_delay_s)
        platform.simulator.start()

    try:
        yield
    finally:
        await platform.simulator.stop()
        await platform.feed.stop()
        if platform.client:
            await platform.client.close()


def create_app(
    settings: Settings,
    price_source: PriceSource | None = None,
    repository: Repository | None = None,
    rng: random.Random | None = None,
    run_background: bool = True,
) -> FastAPI:
    """Build the FastAPI application. Arguments as for ``build_platform``."""
    app = FastAPI(
        title="Trading Simulator",
        version=__version__,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.platform = build_platform(
        settings,
        price_source=price_source,
        repository=repository,
        rng=rng,
        run_background=run_background,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ActionRejectedError, handle_rejection)  # type: ignore[arg-type]
    app.add_exception_handler(AuthError, handle_auth_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]

    # Accounts
    app.post("/api/register", status_code=201)(register)
    app.post("/api/login")(login)
    app.get("/api/verify-token")(verify_token)
    app.get("/api/profile")(get_profile)
    app.get("/api/leaderboard")(get_leaderboard)

    # Trading
    app.post("/api/trade")(execute_trade)
    app.get("/api/strategies")(get_strategies)
    app.post("/api/bots")(create_bot)
    app.get("/api/bots")(list_bots)
    app.post("/api/bots/{bot_id}/stop")(stop_bot)
    app.post("/api/arbitrage")(create_arbitrage)
    app.get("/api/arbitrage")(list_arbitrages)
    app.post("/api/arbitrage/{arbitrage_id}/stop")(stop_arbitrage)

    # Market data
    app.get("/api/prices")(get_prices)
    app.get("/api/prices/{symbol}")(get_symbol_price)
    app.get("/api/status")(get_status)
    app.websocket("/ws")(websocket_endpoint)

    return app


# =============================================================================
# Dependencies
# =============================================================================


def get_platform(request: Request) -> Platform:
    return request.app.state.platform  # type: ignore[no-any-return]


def current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    platform: Platform = Depends(get_platform),
) -> str:
    """Account id from the bearer token."""
    if credentials is None:
        raise MissingTokenError()
    return platform.service.authenticate(credentials.credentials)


# =============================================================================
# Error Handlers
# =============================================================================


async def handle_rejection(request: Request, exc: ActionRejectedError) -> ORJSONResponse:
    return ORJSONResponse({"error": exc.reason}, status_code=exc.status_code)


async def handle_auth_error(request: Request, exc: AuthError) -> ORJSONResponse:
    return ORJSONResponse({"error": exc.reason}, status_code=exc.status_code)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    errors = exc.errors()
    if not errors:
        return ORJSONResponse({"error": "Invalid request"}, status_code=400)

    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid value")
    return ORJSONResponse(
        {"error": f"{field}: {message}" if field else message},
        status_code=400,
    )


# =============================================================================
# Account Routes
# =============================================================================


async def register(
    body: RegisterRequest,
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    token, account = await platform.service.register(body.username, body.email, body.password)
    return {"token": token, "user": account.public_view()}


async def login(
    body: LoginRequest,
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    token, account = await platform.service.login(body.email, body.password)
    return {"token": token, "user": account.public_view()}


async def verify_token(
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    account = await platform.service.get_account(user_id)
    return {"user": account.public_view()}


async def get_profile(
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    profile = await platform.service.profile(user_id)
    return profile.to_dict()


async def get_leaderboard(platform: Platform = Depends(get_platform)) -> list[dict[str, Any]]:
    return await platform.service.leaderboard()


# =============================================================================
# Trading Routes
# =============================================================================


async def execute_trade(
    body: TradeRequest,
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    trade, balance = await platform.service.execute_trade(
        user_id, body.symbol, body.type, body.amount, body.price
    )
    return {"trade": trade.to_dict(), "balance": balance}


async def get_strategies() -> dict[str, Any]:
    return {
        "bots": [s.to_dict() for s in BOT_STRATEGIES.values()],
        "arbitrage": [s.to_dict() for s in ARBITRAGE_STRATEGIES.values()],
    }


async def create_bot(
    body: CreateBotRequest,
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    bot, balance = await platform.service.create_bot(
        user_id, body.name, body.strategy, body.investment
    )
    return {"bot": bot.to_dict(), "balance": balance}


async def list_bots(
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> list[dict[str, Any]]:
    return [b.to_dict() for b in await platform.service.list_bots(user_id)]


async def stop_bot(
    bot_id: str,
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    bot, balance = await platform.service.stop_bot(user_id, bot_id)
    return {"bot": bot.to_dict(), "balance": balance}


async def create_arbitrage(
    body: CreateArbitrageRequest,
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    arbitrage, balance = await platform.service.create_arbitrage(user_id, body.strategy, body.amount)
    return {"arbitrage": arbitrage.to_dict(), "balance": balance}


async def list_arbitrages(
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> list[dict[str, Any]]:
    return [a.to_dict() for a in await platform.service.list_arbitrages(user_id)]


async def stop_arbitrage(
    arbitrage_id: str,
    user_id: str = Depends(current_user_id),
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    arbitrage, balance = await platform.service.stop_arbitrage(user_id, arbitrage_id)
    return {"arbitrage": arbitrage.to_dict(), "balance": balance}


# =============================================================================
# Market Data Routes
# =============================================================================


async def get_prices(platform: Platform = Depends(get_platform)) -> dict[str, Any]:
    return platform.feed.snapshot().to_payload()


async def get_symbol_price(
    symbol: str,
    platform: Platform = Depends(get_platform),
) -> dict[str, Any]:
    quote = platform.feed.quote(symbol)
    if quote is None:
        raise ActionRejectedError("Symbol not found", status_code=404)

    return {
        "price": quote.to_dict(),
        "history": [p.to_dict() for p in platform.feed.history(symbol)],
    }


async def get_status(platform: Platform = Depends(get_platform)) -> dict[str, Any]:
    return {
        "version": __version__,
        "feed": {
            **platform.feed.state.to_dict(),
            "assetsQuoted": len(platform.feed.snapshot().prices),
        },
        "simulator": platform.simulator.stats.to_dict(),
        "clients": platform.hub.client_count,
        "failedDeliveries": platform.event_bus.failed_deliveries,
        "metrics": platform.metrics.to_dict(),
    }


async def websocket_endpoint(websocket: WebSocket, token: str | None = None) -> None:
    """
    Price push channel.

    Sends the current snapshot on connect, then every feed publication.
    A ``token`` query parameter ties the socket to an account.
    """
    platform: Platform = websocket.app.state.platform

    user_id = None
    if token:
        try:
            user_id = platform.service.authenticate(token)
        except AuthError as e:
            logger.debug(f"WebSocket token rejected ({e.reason}), connecting anonymously")

    try:
        await platform.hub.connect(websocket, platform.feed.snapshot(), user_id)
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        platform.hub.disconnect(websocket)
