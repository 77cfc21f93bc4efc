"""
Module de sources de données pour le service d'agrégation de tokens
Chaque adaptateur récupère un lot de tokens depuis un fournisseur et les
normalise en TokenRecord
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import aiohttp
from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey

from models import TokenRecord, TokenSource, now_ms, optional_float, optional_int, optional_mint, text_or
from websocket_listener import PumpPortalListener

logger = logging.getLogger("data_sources")

# Mints interrogés directement sur la chaîne (complément de dernier recours)
KNOWN_MINTS: Dict[str, Dict[str, str]] = {
    "So11111111111111111111111111111111111111112": {"symbol": "SOL", "name": "Wrapped SOL"},
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": {"symbol": "USDC", "name": "USD Coin"},
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": {"symbol": "USDT", "name": "USDT"},
    "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R": {"symbol": "RAY", "name": "Raydium"},
    "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So": {"symbol": "mSOL", "name": "Marinade staked SOL"},
    "Fu4jQQpUnECSVQrVfeeVPpQpXQffM75LL328EJPtpump": {"symbol": "ANUBIS", "name": "Anubis"},
}

PUMP_FUN_DECIMALS = 6


class SourceFetchError(Exception):
    """Échec réseau, statut HTTP inattendu ou réponse mal formée"""


class TokenSourceAdapter:
    """
    Adaptateur de base pour une source de tokens

    Les sous-classes implémentent fetch_batch() sous forme de générateur
    asynchrone. Chaque appel refait la requête.
    """

    name = "base"
    source: TokenSource = None
    fill_only = False

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.timeout = float(config.get("FETCH_TIMEOUT_SECONDS", 20))

    def is_enabled(self) -> bool:
        return True

    async def fetch_batch(self) -> AsyncIterator[TokenRecord]:
        raise NotImplementedError
        yield  # pragma: no cover

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, params=params) as response:
                return await self._read_json(response)

    async def _post_json(self, url: str, payload: Dict[str, Any],
                         params: Optional[Dict[str, Any]] = None) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, params=params) as response:
                return await self._read_json(response)

    async def _read_json(self, response: aiohttp.ClientResponse) -> Any:
        if response.status != 200:
            raise SourceFetchError(f"{self.name} API error: {response.status}")
        try:
            return await response.json(content_type=None)
        except ValueError as e:
            raise SourceFetchError(f"{self.name} returned invalid JSON: {e}") from e


class JupiterSource(TokenSourceAdapter):
    """Liste vérifiée de Jupiter (source prioritaire)"""

    name = "jupiter"
    source = TokenSource.JUPITER

    async def fetch_batch(self) -> AsyncIterator[TokenRecord]:
        data = await self._get_json(self.config["JUPITER_TOKENS_URL"])
        if not isinstance(data, list):
            raise SourceFetchError("Invalid response format from Jupiter")

        for token_data in data:
            record = parse_jupiter_token(token_data)
            if record:
                yield record


class PumpPortalSource(TokenSourceAdapter):
    """
    Tokens pump.fun en tendance via l'API REST, plus le flux websocket
    PumpPortal pour les nouveaux lancements
    """

    name = "pumpportal"
    source = TokenSource.PUMPPORTAL

    async def fetch_batch(self) -> AsyncIterator[TokenRecord]:
        data = await self._get_json(self.config["PUMPFUN_TRENDING_URL"])
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise SourceFetchError("Invalid response format from pump.fun")

        for coin in data:
            record = parse_pumpfun_coin(coin)
            if record:
                yield record

    def create_listener(self, on_record: Callable[[TokenRecord], None]) -> PumpPortalListener:
        return PumpPortalListener(
            on_record=on_record,
            url=self.config.get("PUMPPORTAL_WS_URL", "wss://pumpportal.fun/api/data"),
            reconnect_delay=float(self.config.get("RECONNECT_DELAY_SECONDS", 30)),
        )


class HeliusSource(TokenSourceAdapter):
    """Métadonnées enrichies via l'API DAS de Helius (searchAssets paginé)"""

    name = "helius"
    source = TokenSource.HELIUS

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.api_key = config.get("HELIUS_API_KEY") or ""
        self.page_limit = int(config.get("HELIUS_PAGE_LIMIT", 1000))
        self.max_pages = int(config.get("HELIUS_MAX_PAGES", 3))

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    async def fetch_batch(self) -> AsyncIterator[TokenRecord]:
        if not self.api_key:
            logger.warning("⚠️ Helius API key not provided, skipping Helius token data")
            return

        for page in range(1, self.max_pages + 1):
            items = await self._search_assets(page)
            for asset in items:
                record = parse_helius_asset(asset)
                if record:
                    yield record
            if len(items) < self.page_limit:
                break

    async def _search_assets(self, page: int) -> List[Dict[str, Any]]:
        payload = {
            "jsonrpc": "2.0",
            "id": "unified-token-service",
            "method": "searchAssets",
            "params": {
                "tokenType": "fungible",
                "displayOptions": {"showNativeBalance": False},
                "limit": self.page_limit,
                "page": page,
            },
        }
        data = await self._post_json(self.config["HELIUS_RPC_URL"], payload,
                                     params={"api-key": self.api_key})
        if not isinstance(data, dict):
            raise SourceFetchError("Invalid response format from Helius")
        if data.get("error"):
            raise SourceFetchError(f"Helius RPC error: {data['error']}")

        items = (data.get("result") or {}).get("items") or []
        if not isinstance(items, list):
            raise SourceFetchError("Invalid asset list from Helius")
        return items


class SolanaRpcSource(TokenSourceAdapter):
    """
    Lecture directe des comptes mint connus sur le RPC Solana
    Sert uniquement à combler les trous : n'écrase jamais un token existant
    """

    name = "solana-rpc"
    source = TokenSource.SOLANA_RPC
    fill_only = True

    def __init__(self, config: Dict[str, Any], known_mints: Optional[Dict[str, Dict[str, str]]] = None):
        super().__init__(config)
        self.rpc_url = config.get("SOLANA_RPC_URL") or "https://api.mainnet-beta.solana.com"
        self.known_mints = known_mints if known_mints is not None else KNOWN_MINTS

    async def fetch_batch(self) -> AsyncIterator[TokenRecord]:
        async with AsyncClient(self.rpc_url, timeout=self.timeout) as client:
            for mint, labels in self.known_mints.items():
                try:
                    info = await self._fetch_mint_info(client, mint)
                except Exception as e:
                    logger.debug(f"Skipping mint {mint} on RPC: {e}")
                    continue
                if not info:
                    continue

                yield TokenRecord(
                    mint=mint,
                    symbol=labels.get("symbol", "UNKNOWN"),
                    name=labels.get("name", "Unknown Token"),
                    decimals=int(info.get("decimals", 0)),
                    supply=optional_float(info.get("supply")),
                    source=TokenSource.SOLANA_RPC,
                    last_updated=now_ms(),
                )

    async def _fetch_mint_info(self, client: AsyncClient, mint: str) -> Optional[Dict[str, Any]]:
        resp = await client.get_account_info_json_parsed(Pubkey.from_string(mint))
        account = resp.value
        if account is None:
            return None
        parsed = getattr(account.data, "parsed", None)
        if not isinstance(parsed, dict):
            return None
        return parsed.get("info")


def build_default_adapters(config: Dict[str, Any]) -> List[TokenSourceAdapter]:
    return [
        JupiterSource(config),
        PumpPortalSource(config),
        HeliusSource(config),
        SolanaRpcSource(config),
    ]


# Parsers

def parse_jupiter_token(token_data: Any) -> Optional[TokenRecord]:
    if not isinstance(token_data, dict):
        return None
    mint = optional_mint(token_data.get("id"))
    if not mint:
        return None

    stats = token_data.get("stats24h") or {}
    buy_volume = optional_float(stats.get("buyVolume"))
    sell_volume = optional_float(stats.get("sellVolume"))
    volume_24h = None
    if buy_volume is not None and sell_volume is not None:
        volume_24h = buy_volume + sell_volume

    return TokenRecord(
        mint=mint,
        symbol=text_or(token_data.get("symbol"), "UNKNOWN"),
        name=text_or(token_data.get("name"), "Unknown Token"),
        decimals=optional_int(token_data.get("decimals")) or 0,
        logo_uri=token_data.get("icon"),
        usd_price=optional_float(token_data.get("usdPrice")),
        market_cap=optional_float(token_data.get("mcap")),
        fdv=optional_float(token_data.get("fdv")),
        liquidity=optional_float(token_data.get("liquidity")),
        volume_24h=volume_24h,
        price_change_24h=optional_float(stats.get("priceChange")),
        buys_24h=optional_int(stats.get("numBuys")),
        sells_24h=optional_int(stats.get("numSells")),
        is_verified=bool(token_data.get("isVerified")),
        holder_count=optional_int(token_data.get("holderCount")),
        cexes=token_data.get("cexes") or [],
        tags=token_data.get("tags") or [],
        website=token_data.get("website"),
        twitter=token_data.get("twitter"),
        supply=optional_float(token_data.get("circSupply")),
        source=TokenSource.JUPITER,
        last_updated=now_ms(),
    )


def parse_pumpfun_coin(coin: Any) -> Optional[TokenRecord]:
    if not isinstance(coin, dict):
        return None
    mint = optional_mint(coin.get("mint"))
    if not mint:
        return None

    return TokenRecord(
        mint=mint,
        symbol=text_or(coin.get("symbol"), "UNKNOWN"),
        name=text_or(coin.get("name"), "Unknown Token"),
        decimals=PUMP_FUN_DECIMALS,
        logo_uri=coin.get("image_uri"),
        market_cap=optional_float(coin.get("usd_market_cap") or coin.get("market_cap")),
        is_verified=False,
        tags=["pump.fun"],
        website=coin.get("website"),
        twitter=coin.get("twitter"),
        telegram=coin.get("telegram"),
        description=coin.get("description"),
        supply=optional_float(coin.get("total_supply")),
        created_at=timestamp_to_iso(coin.get("created_timestamp")),
        creator=coin.get("creator"),
        source=TokenSource.PUMPPORTAL,
        last_updated=now_ms(),
    )


def parse_helius_asset(asset: Any) -> Optional[TokenRecord]:
    if not isinstance(asset, dict):
        return None
    mint = optional_mint(asset.get("id"))
    if not mint:
        return None

    content = asset.get("content") or {}
    metadata = content.get("metadata") or {}
    token_info = asset.get("token_info") or {}
    price_info = token_info.get("price_info") or {}

    logo = (content.get("links") or {}).get("image")
    if not logo:
        files = content.get("files") or []
        if files and isinstance(files[0], dict):
            logo = files[0].get("uri")

    verified = any(
        "verified" in (auth.get("scopes") or [])
        for auth in asset.get("authorities") or []
        if isinstance(auth, dict)
    )
    decimals = optional_int(token_info.get("decimals"))

    return TokenRecord(
        mint=mint,
        symbol=text_or(metadata.get("symbol"), "UNKNOWN"),
        name=text_or(metadata.get("name"), "Unknown Token"),
        decimals=decimals if decimals is not None else 9,
        logo_uri=logo,
        usd_price=optional_float(price_info.get("price_per_token")),
        is_verified=verified,
        tags=[g.get("group_value") for g in asset.get("grouping") or [] if isinstance(g, dict)],
        description=metadata.get("description"),
        supply=optional_float(token_info.get("supply")),
        source=TokenSource.HELIUS,
        last_updated=now_ms(),
    )


def timestamp_to_iso(value: Any) -> Optional[str]:
    """Convertit un timestamp pump.fun (secondes ou millisecondes) en ISO-8601 UTC"""
    ts = optional_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > 1e12:
        ts /= 1000
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
    except (OverflowError, ValueError, OSError):
        return None


async def collect_batch(adapter: TokenSourceAdapter) -> List[TokenRecord]:
    """Consomme entièrement fetch_batch() avec le délai de l'adaptateur"""
    async def _drain():
        return [record async for record in adapter.fetch_batch()]
    return await asyncio.wait_for(_drain(), timeout=adapter.timeout)
