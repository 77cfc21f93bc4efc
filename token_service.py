# Filename: token_service.py

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Union

from config import load_config
from data_sources import TokenSourceAdapter, build_default_adapters, collect_batch
from memory_sink import build_memory_sink
from models import TokenRecord, TokenSource
from retention import PersistenceReport, persist_records, select_for_retention
from token_store import TokenStore
from websocket_listener import PumpPortalListener

logger = logging.getLogger("TokenService")


class UnifiedTokenService:
    """
    Owns the unified token store. Bulk-loads every source in parallel,
    keeps the PumpPortal feed running, and answers read-only queries.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 adapters: Optional[List[TokenSourceAdapter]] = None,
                 store: Optional[TokenStore] = None,
                 sink=None,
                 listener: Optional[PumpPortalListener] = None):
        self.config = config if config is not None else load_config()
        self.adapters = adapters if adapters is not None else build_default_adapters(self.config)
        self.store = store if store is not None else TokenStore()
        self.sink = sink if sink is not None else build_memory_sink(self.config)
        self.listener = listener
        self.search_limit = int(self.config.get("SEARCH_RESULT_LIMIT", 50))
        self.refresh_interval = float(self.config.get("REFRESH_INTERVAL_SECONDS", 0))

        self.is_initialized = False
        self.last_refresh: Optional[float] = None
        self.last_persistence: Optional[PersistenceReport] = None
        self._cycle_running = False
        self._refresh_task: Optional[asyncio.Task] = None

    # Lifecycle

    async def start(self):
        await self.initialize()

        if self.config.get("ENABLE_PUMPPORTAL_WS", True):
            if self.listener is None:
                self.listener = self._create_listener()
            if self.listener is not None:
                self.listener.start()

        if self.refresh_interval > 0 and self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def initialize(self) -> Optional[Dict[str, int]]:
        logger.info("🚀 Initializing Unified Token Service...")
        if self._cycle_running:
            logger.info("Token load already in progress, skipping initialize")
            return None

        self._cycle_running = True
        try:
            counts = await self._load_all_sources()
            logger.info(f"📊 Unified Token Service initialized with {len(self.store)} unique tokens")
            await self.persist_important_tokens()
            self.is_initialized = True
            self.last_refresh = time.time()
            return counts
        except Exception as e:
            logger.error(f"❌ Failed to initialize Unified Token Service: {e}")
            raise
        finally:
            self._cycle_running = False

    async def refresh(self) -> Optional[Dict[str, int]]:
        if not self.is_initialized:
            logger.warning("Refresh requested before initialization, ignoring")
            return None
        if self._cycle_running:
            logger.info("🔄 Refresh already in progress, skipping")
            return None

        self._cycle_running = True
        try:
            logger.info("🔄 Refreshing token data from all sources...")
            counts = await self._load_all_sources()
            await self.persist_important_tokens()
            self.last_refresh = time.time()
            return counts
        finally:
            self._cycle_running = False

    async def stop(self):
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.listener is not None:
            await self.listener.stop()
        logger.info("🛑 Unified Token Service stopped")

    async def _refresh_loop(self):
        while True:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"[Refresh Error] {e}")

    def _create_listener(self) -> Optional[PumpPortalListener]:
        for adapter in self.adapters:
            factory = getattr(adapter, "create_listener", None)
            if factory is not None:
                return factory(self.ingest)
        return None

    # Ingestion

    async def _load_all_sources(self) -> Dict[str, int]:
        adapters = []
        for adapter in self.adapters:
            if adapter.is_enabled():
                adapters.append(adapter)
            else:
                logger.warning(f"⚠️ {adapter.name} disabled, skipping")

        results = await asyncio.gather(
            *(self._load_from_adapter(adapter) for adapter in adapters),
            return_exceptions=True,
        )

        counts = {}
        for adapter, result in zip(adapters, results):
            if isinstance(result, BaseException):
                logger.warning(f"⚠️ {adapter.name} token loading failed: {result!r}")
                counts[adapter.name] = 0
            else:
                counts[adapter.name] = result
        return counts

    async def _load_from_adapter(self, adapter: TokenSourceAdapter) -> int:
        logger.info(f"📡 Loading tokens from {adapter.name}...")
        records = await collect_batch(adapter)

        if adapter.fill_only:
            loaded = sum(1 for record in records if self.store.insert_if_absent(record))
        else:
            loaded = self.store.upsert_many(records)

        logger.info(f"✅ {adapter.name}: Loaded {loaded} tokens")
        return loaded

    def ingest(self, record: TokenRecord) -> TokenRecord:
        return self.store.upsert(record)

    def ingest_many(self, records: Iterable[TokenRecord]) -> int:
        return self.store.upsert_many(records)

    async def persist_important_tokens(self) -> Optional[PersistenceReport]:
        if self.sink is None:
            logger.info("🧠 No memory sink configured, skipping token persistence")
            return None

        important = select_for_retention(self.store.snapshot())
        logger.info(f"📊 Storing {len(important)} important tokens out of {len(self.store)} total")

        loop = asyncio.get_running_loop()
        report = await loop.run_in_executor(None, persist_records, important, self.sink)
        self.last_persistence = report
        return report

    # Queries

    def get_token(self, mint: str) -> Optional[TokenRecord]:
        return self.store.get(mint)

    def search_tokens(self, term: str) -> List[TokenRecord]:
        """
        Case-insensitive substring match on symbol, name and mint.
        Most recently updated first, capped at SEARCH_RESULT_LIMIT.
        A blank term returns []; a non-string term raises TypeError.
        """
        if not isinstance(term, str):
            raise TypeError(f"search term must be a string, got {type(term).__name__}")
        needle = term.strip().lower()
        if not needle:
            return []

        matches = [
            record for record in self.store.snapshot()
            if needle in record.symbol.lower()
            or needle in record.name.lower()
            or needle in record.mint.lower()
        ]
        matches.sort(key=lambda record: record.last_updated, reverse=True)
        return matches[:self.search_limit]

    def get_tokens_by_source(self, source: Union[TokenSource, str]) -> List[TokenRecord]:
        source = source if isinstance(source, TokenSource) else TokenSource(source)
        return [record for record in self.store.snapshot() if record.source is source]

    def get_verified_tokens(self) -> List[TokenRecord]:
        return [record for record in self.store.snapshot() if record.is_verified]

    @property
    def size(self) -> int:
        return len(self.store)

    def __len__(self) -> int:
        return self.size

    def get_statistics(self) -> Dict[str, Any]:
        records = self.store.snapshot()
        by_source = {source.value: 0 for source in TokenSource}
        for record in records:
            by_source[record.source.value] += 1

        return {
            "total": len(records),
            "verified": sum(1 for record in records if record.is_verified),
            "by_source": by_source,
            "last_refresh": self.last_refresh,
            "live": self.listener.state.value if self.listener is not None else None,
        }
