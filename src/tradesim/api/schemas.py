"""
Pydantic models for API request bodies.

Field names follow what browser clients send; validation failures are
returned as ``{"error": ...}`` with status 400.
"""

from pydantic import BaseModel, Field

from tradesim.core.types import TradeSide


class RegisterRequest(BaseModel):
    """New account."""

    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=256)


class LoginRequest(BaseModel):
    """Credentials."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TradeRequest(BaseModel):
    """Spot trade at a client-supplied price."""

    symbol: str = Field(min_length=1)
    type: TradeSide
    amount: float = Field(gt=0.0)
    price: float = Field(gt=0.0)


class CreateBotRequest(BaseModel):
    """Bot creation."""

    name: str = Field(min_length=1, max_length=100)
    strategy: str
    investment: float = Field(gt=0.0)


class CreateArbitrageRequest(BaseModel):
    """Arbitrage position creation."""

    strategy: str
    amount: float = Field(gt=0.0)
