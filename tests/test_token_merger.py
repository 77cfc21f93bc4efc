"""Tests for the record merge rules."""
import pytest

from models import TokenRecord, TokenSource
from token_merger import merge_token_records


class TestMergeBasics:
    """Merging against nothing, itself, or a different mint."""

    def test_no_existing_returns_incoming(self, make_record):
        incoming = make_record()
        assert merge_token_records(None, incoming) is incoming

    @pytest.mark.parametrize("source", list(TokenSource))
    def test_merge_with_itself_is_noop(self, make_record, source):
        record = make_record(
            source=source,
            usd_price=1.5,
            holder_count=42,
            cexes={"Binance"},
            tags={"meme"},
            website="https://example.org",
            is_verified=True,
        )
        assert merge_token_records(record, record) == record

    def test_different_mints_rejected(self, make_record):
        with pytest.raises(ValueError):
            merge_token_records(make_record(mint="A"), make_record(mint="B"))


class TestPriority:
    """Identity fields follow source priority."""

    def test_primary_beats_chain_rpc_even_when_older(self, make_record):
        existing = make_record(symbol="UNKNOWN", name="Unknown Token",
                               source=TokenSource.SOLANA_RPC, last_updated=500)
        incoming = make_record(symbol="SOL", name="Wrapped SOL",
                               source=TokenSource.JUPITER, last_updated=100)

        merged = merge_token_records(existing, incoming)

        assert merged.symbol == "SOL"
        assert merged.name == "Wrapped SOL"
        assert merged.source is TokenSource.JUPITER
        assert merged.last_updated == 500

    def test_lower_priority_incoming_keeps_existing_identity(self, make_record):
        existing = make_record(symbol="JUP", source=TokenSource.JUPITER, logo_uri="jup.png")
        incoming = make_record(symbol="JUPX", source=TokenSource.HELIUS, logo_uri="other.png")

        merged = merge_token_records(existing, incoming)

        assert merged.symbol == "JUP"
        assert merged.logo_uri == "jup.png"
        assert merged.source is TokenSource.JUPITER

    def test_equal_priority_keeps_existing_identity(self, make_record):
        existing = make_record(symbol="OLD", source=TokenSource.PUMPPORTAL)
        incoming = make_record(symbol="NEW", source=TokenSource.PUMPPORTAL)

        assert merge_token_records(existing, incoming).symbol == "OLD"

    def test_sol_scenario(self, make_record):
        rpc = make_record(mint="A", symbol="SOL", source=TokenSource.SOLANA_RPC,
                          is_verified=False, last_updated=100)
        jupiter = make_record(mint="A", symbol="SOL", source=TokenSource.JUPITER,
                              is_verified=True, usd_price=150.2, last_updated=200)

        merged = merge_token_records(rpc, jupiter)

        assert merged.source is TokenSource.JUPITER
        assert merged.is_verified is True
        assert merged.usd_price == 150.2
        assert merged.last_updated == 200


class TestFreshness:
    """Market and social fields follow the incoming record."""

    def test_incoming_price_wins_regardless_of_source(self, make_record):
        existing = make_record(source=TokenSource.JUPITER, usd_price=1.0, last_updated=1)
        incoming = make_record(source=TokenSource.SOLANA_RPC, usd_price=2.0, last_updated=2)

        assert merge_token_records(existing, incoming).usd_price == 2.0

    def test_missing_incoming_value_falls_back(self, make_record):
        existing = make_record(market_cap=5_000_000.0, liquidity=1000.0, twitter="@old")
        incoming = make_record(source=TokenSource.PUMPPORTAL, market_cap=None)

        merged = merge_token_records(existing, incoming)

        assert merged.market_cap == 5_000_000.0
        assert merged.liquidity == 1000.0
        assert merged.twitter == "@old"

    def test_zero_is_a_present_value(self, make_record):
        existing = make_record(price_change_24h=12.5)
        incoming = make_record(price_change_24h=0.0)

        assert merge_token_records(existing, incoming).price_change_24h == 0.0

    def test_social_links_take_incoming(self, make_record):
        existing = make_record(website="https://old.example", telegram="t.me/old")
        incoming = make_record(source=TokenSource.HELIUS, website="https://new.example")

        merged = merge_token_records(existing, incoming)

        assert merged.website == "https://new.example"
        assert merged.telegram == "t.me/old"

    def test_extended_fields_filled_from_lower_priority(self, make_record):
        existing = make_record(source=TokenSource.JUPITER, description=None)
        incoming = make_record(source=TokenSource.PUMPPORTAL, description="A meme coin",
                               creator="Creator111")

        merged = merge_token_records(existing, incoming)

        assert merged.description == "A meme coin"
        assert merged.creator == "Creator111"


class TestMonotonicTrust:
    """Verified, holders, cexes and tags never shrink."""

    def test_verified_is_sticky(self, make_record):
        verified = make_record(is_verified=True)
        unverified = make_record(source=TokenSource.PUMPPORTAL, is_verified=False)

        assert merge_token_records(verified, unverified).is_verified is True

    def test_holder_count_takes_max(self, make_record):
        existing = make_record(holder_count=5000)
        incoming = make_record(holder_count=10)

        assert merge_token_records(existing, incoming).holder_count == 5000

    def test_holder_count_stays_absent_when_unknown(self, make_record):
        assert merge_token_records(make_record(), make_record()).holder_count is None

    def test_sets_are_unioned(self, make_record):
        existing = make_record(cexes={"Binance"}, tags={"verified"})
        incoming = make_record(source=TokenSource.PUMPPORTAL, cexes={"OKX", "Binance"},
                               tags={"pump.fun", "new"})

        merged = merge_token_records(existing, incoming)

        assert merged.cexes == frozenset({"Binance", "OKX"})
        assert merged.tags == frozenset({"verified", "pump.fun", "new"})

    def test_sequence_of_merges_never_regresses(self, make_record):
        sequence = [
            make_record(source=TokenSource.SOLANA_RPC, last_updated=10),
            make_record(source=TokenSource.HELIUS, tags={"a"}, holder_count=3, last_updated=20),
            make_record(source=TokenSource.JUPITER, is_verified=True, cexes={"Bybit"}, last_updated=5),
            make_record(source=TokenSource.PUMPPORTAL, tags={"b"}, holder_count=1, last_updated=30),
            make_record(source=TokenSource.SOLANA_RPC, last_updated=15),
        ]

        current = None
        for incoming in sequence:
            previous = current
            current = merge_token_records(current, incoming)
            if previous is not None:
                assert current.is_verified >= previous.is_verified
                assert (current.holder_count or 0) >= (previous.holder_count or 0)
                assert previous.cexes <= current.cexes
                assert previous.tags <= current.tags
                assert current.last_updated >= previous.last_updated

        assert current.source is TokenSource.JUPITER
        assert current.tags == frozenset({"a", "b"})
        assert current.last_updated == 30


class TestTokenRecord:
    """Record normalisation."""

    def test_source_tag_is_parsed(self):
        record = TokenRecord(mint="A", symbol="X", name="X", decimals=0, source="helius")
        assert record.source is TokenSource.HELIUS

    def test_unknown_source_rejected(self):
        with pytest.raises(ValueError):
            TokenRecord(mint="A", symbol="X", name="X", decimals=0, source="coingecko")

    def test_lists_become_sets(self, make_record):
        record = make_record(tags=["a", "a", "b"], cexes=["OKX"])
        assert record.tags == frozenset({"a", "b"})
        assert record.cexes == frozenset({"OKX"})

    def test_to_dict_is_json_friendly(self, make_record):
        data = make_record(tags={"b", "a"}, source=TokenSource.SOLANA_RPC).to_dict()
        assert data["tags"] == ["a", "b"]
        assert data["source"] == "solana-rpc"

    def test_priority_order(self):
        ranks = [source.priority for source in (
            TokenSource.JUPITER, TokenSource.PUMPPORTAL, TokenSource.HELIUS, TokenSource.SOLANA_RPC
        )]
        assert ranks == [4, 3, 2, 1]
