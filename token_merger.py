# Filename: token_merger.py

from dataclasses import replace
from typing import Optional

from models import MARKET_FIELDS, SOCIAL_FIELDS, TokenRecord

# Descriptive extras kept from whichever record has them, base first
EXTENDED_FIELDS = ("description", "supply", "created_at", "creator")


def merge_token_records(existing: Optional[TokenRecord], incoming: TokenRecord) -> TokenRecord:
    """
    Reconcile an incoming record with the stored one for the same mint.

    Identity fields (symbol, name, decimals, logo, source) follow source
    priority. Market and social fields follow freshness: the incoming value
    wins whenever it is present. Trust fields only grow: verified is OR-ed,
    holder count is the max, cexes and tags are unioned.
    """
    if existing is None:
        return incoming

    if existing.mint != incoming.mint:
        raise ValueError(f"Cannot merge records for different mints: {existing.mint} != {incoming.mint}")

    # Equal priority keeps the existing identity
    if incoming.source.priority > existing.source.priority:
        base, other = incoming, existing
    else:
        base, other = existing, incoming

    updates = {}
    for name in MARKET_FIELDS + SOCIAL_FIELDS:
        updates[name] = _first_present(getattr(incoming, name), getattr(existing, name))
    for name in EXTENDED_FIELDS:
        updates[name] = _first_present(getattr(base, name), getattr(other, name))

    if existing.holder_count is None and incoming.holder_count is None:
        updates["holder_count"] = None
    else:
        updates["holder_count"] = max(existing.holder_count or 0, incoming.holder_count or 0)

    return replace(
        base,
        is_verified=existing.is_verified or incoming.is_verified,
        cexes=existing.cexes | incoming.cexes,
        tags=existing.tags | incoming.tags,
        last_updated=max(existing.last_updated, incoming.last_updated),
        **updates,
    )


def _first_present(preferred, fallback):
    return preferred if preferred is not None else fallback
