# Filename: retention.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from models import TokenRecord

logger = logging.getLogger("Retention")

HIGH_IMPORTANCE_SYMBOLS = frozenset({
    "SOL", "USDC", "USDT", "ANUBIS", "JUP", "RAY", "ORCA", "BONK", "WIF", "POPCAT",
})

MIN_HOLDERS = 1000
MIN_MARKET_CAP_USD = 1_000_000

# Only the first few failures/successes are logged one by one
MAX_LOGGED_FAILURES = 5
MAX_LOGGED_SUCCESSES = 10


@dataclass
class PersistenceReport:
    attempted: int = 0
    stored: int = 0
    failed: int = 0
    failed_mints: List[str] = field(default_factory=list)


def is_important(record: TokenRecord) -> bool:
    return (
        record.is_verified
        or (record.holder_count or 0) > MIN_HOLDERS
        or bool(record.cexes)
        or (record.market_cap or 0) > MIN_MARKET_CAP_USD
        or record.symbol in HIGH_IMPORTANCE_SYMBOLS
    )


def select_for_retention(records: Iterable[TokenRecord]) -> List[TokenRecord]:
    return [record for record in records if is_important(record)]


def format_memory_entry(record: TokenRecord) -> str:
    """Flatten a record into the single line stored by the memory system."""
    price = record.usd_price if record.usd_price is not None else "N/A"
    market_cap = f"{record.market_cap / 1e6:.2f}M" if record.market_cap else "N/A"
    holders = record.holder_count if record.holder_count else "N/A"
    exchanges = ", ".join(sorted(record.cexes)) or "None"
    tags = ", ".join(sorted(record.tags))
    return (
        f"Token: {record.symbol} ({record.name}) - Address: {record.mint} - "
        f"Price: ${price} - Market Cap: ${market_cap} - Holders: {holders} - "
        f"Verified: {'Yes' if record.is_verified else 'No'} - Exchanges: {exchanges} - "
        f"Tags: {tags} - Source: {record.source.value.upper()}"
    )


def build_memory_entry(record: TokenRecord) -> Dict[str, Any]:
    return {
        "type": "token_data",
        "text": format_memory_entry(record),
        "mint": record.mint,
        "token": record.to_dict(),
    }


def persist_records(records: Iterable[TokenRecord], sink) -> PersistenceReport:
    """
    Write one entry per record. A failed write is logged and skipped,
    never retried, and never stops the rest of the batch.
    """
    report = PersistenceReport()

    for record in records:
        report.attempted += 1
        try:
            sink.write(build_memory_entry(record))
        except Exception as e:
            report.failed += 1
            report.failed_mints.append(record.mint)
            if report.failed <= MAX_LOGGED_FAILURES:
                logger.warning(f"❌ Failed to store {record.symbol} in memory: {e} (Source: {record.source.value})")
            continue

        report.stored += 1
        if report.stored <= MAX_LOGGED_SUCCESSES:
            logger.info(f"✅ Stored {record.symbol} ({record.source.value}) in memory ({report.stored} total)")

    logger.info(f"🧠 Token memory storage complete: {report.stored} successful, {report.failed} failed")
    return report
