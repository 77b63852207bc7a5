"""
Pydantic models for price source responses.

These models provide type-safe parsing of the CoinGecko simple/price
payload with automatic validation.
"""

from pydantic import BaseModel, Field, RootModel, field_validator

from tradesim.core.types import PriceQuote


class SimplePriceEntry(BaseModel):
    """Price and 24h statistics for one asset."""

    usd: float | None = Field(default=None, ge=0.0)
    usd_24h_change: float = 0.0
    usd_24h_vol: float = Field(default=0.0, ge=0.0)
    usd_market_cap: float = Field(default=0.0, ge=0.0)

    model_config = {"extra": "ignore"}

    @field_validator("usd_24h_change", "usd_24h_vol", "usd_market_cap", mode="before")
    @classmethod
    def default_missing(cls, v: object) -> object:
        """Upstream sends null for unknown statistics; treat as zero."""
        return 0.0 if v is None else v


class SimplePriceResponse(RootModel[dict[str, SimplePriceEntry]]):
    """simple/price response keyed by asset id."""

    def to_quotes(self, assets: tuple[str, ...] | None = None) -> dict[str, PriceQuote]:
        """
        Convert to quotes.

        Args:
            assets: Keep only these ids (None = all).

        Returns:
            Quotes for every entry that carries a price.
        """
        quotes: dict[str, PriceQuote] = {}
        for asset, entry in self.root.items():
            if assets is not None and asset not in assets:
                continue
            if entry.usd is None:
                continue
            quotes[asset] = PriceQuote(
                asset=asset,
                usd=entry.usd,
                usd_24h_change=entry.usd_24h_change,
                usd_24h_vol=entry.usd_24h_vol,
                usd_market_cap=entry.usd_market_cap,
            )
        return quotes
