# Filename: memory_sink.py

import json
import logging
import threading
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger("MemorySink")


class MemorySinkError(Exception):
    pass


class FileMemorySink:
    """Appends one JSON line per memory entry."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def write(self, entry: Dict[str, Any]):
        line = json.dumps(entry, ensure_ascii=False)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class HttpMemorySink:
    """
    Posts memory entries to an external memory/log service.
    Any non-2xx answer is raised so the caller can count and skip it.
    """

    def __init__(self, url: str, timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def write(self, entry: Dict[str, Any]):
        try:
            response = requests.post(self.url, json=entry, timeout=self.timeout)
        except requests.RequestException as e:
            raise MemorySinkError(f"Request exception: {e}") from e
        if not 200 <= response.status_code < 300:
            raise MemorySinkError(f"Failed: {response.status_code} - {response.text[:200]}")


def build_memory_sink(config: Dict[str, Any]) -> Optional[Any]:
    url = config.get("MEMORY_SINK_URL")
    if url:
        logger.info(f"[MemorySink] Using HTTP sink at {url}")
        return HttpMemorySink(url, timeout=float(config.get("MEMORY_SINK_TIMEOUT_SECONDS", 10)))

    path = config.get("MEMORY_SINK_FILE")
    if path:
        logger.info(f"[MemorySink] Appending to {path}")
        return FileMemorySink(path)

    return None
