# Filename: token_store.py

import threading
from typing import Dict, Iterable, List, Optional

from models import TokenRecord
from token_merger import merge_token_records


class TokenStore:
    """
    Mint-keyed map of TokenRecord. The only way in is through the merger.

    One lock serialises each read-modify-write. Records are immutable, so
    readers copy references under the lock and work on them freely.
    """

    def __init__(self):
        self._records: Dict[str, TokenRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, record: TokenRecord) -> TokenRecord:
        with self._lock:
            merged = merge_token_records(self._records.get(record.mint), record)
            self._records[record.mint] = merged
            return merged

    def upsert_many(self, records: Iterable[TokenRecord]) -> int:
        count = 0
        for record in records:
            self.upsert(record)
            count += 1
        return count

    def insert_if_absent(self, record: TokenRecord) -> bool:
        """Fill-in path: only stores the record when the mint is unknown."""
        with self._lock:
            if record.mint in self._records:
                return False
            self._records[record.mint] = record
            return True

    def get(self, mint: str) -> Optional[TokenRecord]:
        with self._lock:
            return self._records.get(mint)

    def snapshot(self) -> List[TokenRecord]:
        with self._lock:
            return list(self._records.values())

    def __contains__(self, mint: str) -> bool:
        with self._lock:
            return mint in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
