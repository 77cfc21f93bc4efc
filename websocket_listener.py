# Filename: websocket_listener.py

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

import websockets

from models import TokenRecord, TokenSource, now_ms, optional_float

logger = logging.getLogger("PumpPortalListener")

NEW_TOKEN_EVENT = "new_token"


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class PumpPortalListener:
    """
    Persistent PumpPortal websocket feeding new pump.fun launches into the store.

    Any failure moves the listener to DISCONNECTED; after reconnect_delay it
    tries again, with no retry cap, until stop() is called.
    """

    def __init__(self, on_record: Callable[[TokenRecord], None],
                 url: str = "wss://pumpportal.fun/api/data",
                 reconnect_delay: float = 30.0,
                 connect: Callable[..., Any] = websockets.connect):
        self.url = url
        self.on_record = on_record
        self.reconnect_delay = reconnect_delay
        self._connect = connect
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self.messages_dropped = 0
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.is_running:
            return self._task
        self._stopped = False
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        self._stopped = True
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"[WS] Error while closing socket: {e}")
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self.state = ConnectionState.DISCONNECTED
        logger.info("🛑 PumpPortal listener stopped")

    async def run(self):
        while not self._stopped:
            try:
                await self._connect_and_listen()
                if not self._stopped:
                    logger.info(f"PumpPortal WebSocket closed, will reconnect in {self.reconnect_delay:.0f}s")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"PumpPortal WebSocket error: {e}")
            finally:
                self._ws = None
                self.state = ConnectionState.DISCONNECTED

            if self._stopped:
                break
            self.reconnect_attempts += 1
            await asyncio.sleep(self.reconnect_delay)

    async def _connect_and_listen(self):
        self.state = ConnectionState.CONNECTING
        async with self._connect(self.url) as ws:
            self._ws = ws
            await ws.send(json.dumps({"method": "subscribeNewToken"}))
            self.state = ConnectionState.CONNECTED
            logger.info("🔥 Connected to PumpPortal WebSocket")
            async for raw_msg in ws:
                if self._stopped:
                    break
                self.handle_message(raw_msg)

    def handle_message(self, raw_msg: Any) -> Optional[TokenRecord]:
        try:
            msg = json.loads(raw_msg)
        except (TypeError, ValueError) as e:
            self.messages_dropped += 1
            logger.warning(f"Failed to process PumpPortal WebSocket message: {e}")
            return None

        if not isinstance(msg, dict):
            self.messages_dropped += 1
            return None

        if msg.get("type") == NEW_TOKEN_EVENT:
            payload = msg.get("data")
        elif msg.get("txType") == "create":
            payload = msg
        else:
            # Subscription acks and other event kinds
            return None

        try:
            record = parse_pumpportal_event(payload)
        except (TypeError, ValueError, OverflowError) as e:
            record = None
            logger.warning(f"Malformed PumpPortal event: {e}")
        if record is None:
            self.messages_dropped += 1
            return None

        self.on_record(record)
        logger.info(f"🔥 New pump.fun token detected: {record.symbol}")
        return record


def parse_pumpportal_event(data: Dict[str, Any]) -> Optional[TokenRecord]:
    if not isinstance(data, dict):
        return None
    mint = data.get("mint")
    if not isinstance(mint, str) or not mint:
        return None

    raw_market_cap = data.get("usd_market_cap", data.get("market_cap"))
    market_cap = optional_float(raw_market_cap)
    if raw_market_cap is not None and market_cap is None:
        raise ValueError(f"unusable market cap {raw_market_cap!r}")

    return TokenRecord(
        mint=mint,
        symbol=str(data.get("symbol") or "UNKNOWN"),
        name=str(data.get("name") or "Unknown Token"),
        decimals=6,
        logo_uri=data.get("image_uri"),
        market_cap=market_cap,
        is_verified=False,
        tags=["pump.fun", "new"],
        website=data.get("website"),
        twitter=data.get("twitter"),
        telegram=data.get("telegram"),
        description=data.get("description"),
        creator=data.get("creator") or data.get("traderPublicKey"),
        source=TokenSource.PUMPPORTAL,
        last_updated=now_ms(),
    )
