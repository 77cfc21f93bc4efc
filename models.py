# Filename: models.py

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional


class TokenSource(Enum):
    """Data providers feeding the unified store, ranked by trust."""
    JUPITER = "jupiter"          # curated/verified listings
    PUMPPORTAL = "pumpportal"    # pump.fun launches (REST + websocket)
    HELIUS = "helius"            # DAS enriched metadata
    SOLANA_RPC = "solana-rpc"    # raw chain lookups, last-resort fill-in

    @property
    def priority(self) -> int:
        return _SOURCE_PRIORITY[self]


_SOURCE_PRIORITY = {
    TokenSource.JUPITER: 4,
    TokenSource.PUMPPORTAL: 3,
    TokenSource.HELIUS: 2,
    TokenSource.SOLANA_RPC: 1,
}

MARKET_FIELDS = (
    "usd_price",
    "market_cap",
    "fdv",
    "liquidity",
    "volume_24h",
    "price_change_24h",
    "buys_24h",
    "sells_24h",
)

SOCIAL_FIELDS = ("website", "twitter", "telegram")


def now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class TokenRecord:
    """
    TokenRecord is the canonical view of one fungible token, keyed by mint.
    Instances are immutable: the merger builds a new record for every update.
    """
    mint: str                                   # On-chain mint address (unique key)
    symbol: str
    name: str
    decimals: int
    source: TokenSource                         # Source that won priority for identity fields
    last_updated: float = field(default_factory=now_ms)  # epoch milliseconds
    logo_uri: Optional[str] = None

    # Market data, freshest non-empty value wins
    usd_price: Optional[float] = None
    market_cap: Optional[float] = None
    fdv: Optional[float] = None
    liquidity: Optional[float] = None
    volume_24h: Optional[float] = None
    price_change_24h: Optional[float] = None
    buys_24h: Optional[int] = None
    sells_24h: Optional[int] = None

    # Trust data, never shrinks
    is_verified: bool = False
    holder_count: Optional[int] = None
    cexes: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()

    # Social & extended metadata
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None
    description: Optional[str] = None
    supply: Optional[float] = None
    created_at: Optional[str] = None
    creator: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.source, TokenSource):
            object.__setattr__(self, "source", TokenSource(self.source))
        object.__setattr__(self, "cexes", _as_frozenset(self.cexes))
        object.__setattr__(self, "tags", _as_frozenset(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "mint": self.mint,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "logo_uri": self.logo_uri,
            "is_verified": self.is_verified,
            "holder_count": self.holder_count,
            "cexes": sorted(self.cexes),
            "tags": sorted(self.tags),
            "source": self.source.value,
            "last_updated": self.last_updated,
        }
        for name in MARKET_FIELDS + SOCIAL_FIELDS:
            data[name] = getattr(self, name)
        for name in ("description", "supply", "created_at", "creator"):
            data[name] = getattr(self, name)
        return data


def optional_float(value: Any) -> Optional[float]:
    """Lenient numeric parse: anything unusable (junk, bool, inf, oversized) becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def optional_int(value: Any) -> Optional[int]:
    number = optional_float(value)
    return int(number) if number is not None else None


def optional_mint(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def text_or(value: Any, default: str) -> str:
    if value is None or value == "" or value == [] or value == {}:
        return default
    return str(value)


def _as_frozenset(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(str(v) for v in values if v not in (None, ""))
