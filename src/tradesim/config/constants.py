"""
Platform constants and configuration values.

This module contains all hardcoded values used throughout the platform.
Values are organized by category for easy maintenance and auditing.
"""

from typing import Final


# =============================================================================
# Price Source (CoinGecko)
# =============================================================================

COINGECKO_API_URL: Final[str] = "https://api.coingecko.com/api/v3"

# API Endpoints
ENDPOINT_SIMPLE_PRICE: Final[str] = "/simple/price"

# Quote currency for every price
REFERENCE_CURRENCY: Final[str] = "usd"

# Supported assets (CoinGecko ids)
SUPPORTED_ASSETS: Final[tuple[str, ...]] = (
    "bitcoin",
    "ethereum",
    "cardano",
    "polkadot",
    "chainlink",
    "litecoin",
    "bitcoin-cash",
    "stellar",
    "dogecoin",
    "polygon",
)

HTTP_TOO_MANY_REQUESTS: Final[int] = 429

# Seconds to wait when a 429 carries no Retry-After header
DEFAULT_RETRY_AFTER: Final[int] = 60


# =============================================================================
# Fetch Cadence & Backoff
# =============================================================================

DEFAULT_FETCH_INTERVAL: Final[float] = 120.0  # seconds
MAX_FETCH_INTERVAL: Final[float] = 900.0  # seconds
DEFAULT_CACHE_DURATION: Final[float] = 120.0  # seconds
DEFAULT_INITIAL_FETCH_DELAY: Final[float] = 2.0  # seconds
DEFAULT_REQUEST_TIMEOUT: Final[float] = 10.0  # seconds

# Exponent cap for the backoff doubling (2^6 = 64x)
BACKOFF_MAX_EXPONENT: Final[int] = 6

# CoinGecko free tier limit
MAX_CALLS_PER_MINUTE: Final[int] = 30


# =============================================================================
# Rolling History
# =============================================================================

PRICE_HISTORY_LIMIT: Final[int] = 100
BOT_TRADE_LOG_LIMIT: Final[int] = 20


# =============================================================================
# Position Simulation
# =============================================================================

DEFAULT_SIMULATION_INTERVAL: Final[float] = 60.0  # seconds

# Scales the nominal rate ranges down to a per-tick move
TICK_DAMPING: Final[float] = 0.01

BOT_RATE_RANGE: Final[tuple[float, float]] = (-0.03, 0.08)
ARBITRAGE_RATE_RANGE: Final[tuple[float, float]] = (-0.02, 0.05)

# Probability that a bot logs a synthetic trade on a tick
BOT_TRADE_PROBABILITY: Final[float] = 0.30
BOT_TRADE_AMOUNT_RANGE: Final[tuple[float, float]] = (0.01, 0.11)
BOT_TRADE_PRICE_JITTER: Final[float] = 10.0

# Bots trade this asset; its cached quote prices synthetic trades
BOT_REFERENCE_ASSET: Final[str] = "ethereum"
BOT_REFERENCE_FALLBACK_PRICE: Final[float] = 2000.0


# =============================================================================
# Accounts & Authentication
# =============================================================================

DEFAULT_STARTING_BALANCE: Final[float] = 1000.0
DEFAULT_TOKEN_TTL_DAYS: Final[int] = 7
JWT_ALGORITHM: Final[str] = "HS256"

PASSWORD_HASH_ALGORITHM: Final[str] = "sha256"
PASSWORD_HASH_ITERATIONS: Final[int] = 260_000
PASSWORD_SALT_BYTES: Final[int] = 16

# Holdings at or below this size are removed after a sell
HOLDING_DUST: Final[float] = 1e-12

RECENT_TRADES_LIMIT: Final[int] = 10
LEADERBOARD_SIZE: Final[int] = 10


# =============================================================================
# Server
# =============================================================================

DEFAULT_HOST: Final[str] = "0.0.0.0"
DEFAULT_PORT: Final[int] = 5000

DEFAULT_CORS_ORIGINS: Final[tuple[str, ...]] = ("http://localhost:5173",)

# WebSocket event name for price publications
PRICE_UPDATE_EVENT: Final[str] = "priceUpdate"


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000

# Samples kept per duration metric
METRICS_WINDOW_SIZE: Final[int] = 500
