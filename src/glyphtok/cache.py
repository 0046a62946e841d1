"""Memoization of chunk -> merged token strings for the encode path."""

from collections import OrderedDict
import logging
import threading

from .types import TokenStr

log = logging.getLogger(__name__)


class BPECache:
    """
    Thread-safe cache of fully merged chunks.

    The cache is an optimization only: a miss simply recomputes the merge, so
    clearing it never changes tokenizer output. With ``maxsize`` set the
    least recently used chunk is evicted first.
    """

    def __init__(self, maxsize: int | None = None) -> None:
        if maxsize is not None and maxsize <= 0:
            raise ValueError(f"maxsize must be positive or None, got {maxsize}")
        self.maxsize = maxsize
        self._data: OrderedDict[str, tuple[TokenStr, ...]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, chunk: str) -> tuple[TokenStr, ...] | None:
        with self._lock:
            value = self._data.get(chunk)
            if value is None:
                self.misses += 1
                return None
            self.hits += 1
            if self.maxsize is not None:
                self._data.move_to_end(chunk)
            return value

    def put(self, chunk: str, tokens: tuple[TokenStr, ...]) -> None:
        with self._lock:
            self._data[chunk] = tokens
            if self.maxsize is not None:
                self._data.move_to_end(chunk)
                while len(self._data) > self.maxsize:
                    self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            n = len(self._data)
            self._data.clear()
            self.hits = 0
            self.misses = 0
        log.debug(f"cleared {n} cached chunks")

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, chunk: object) -> bool:
        return chunk in self._data


class NullCache(BPECache):
    """Cache that never stores anything, every lookup recomputes."""

    def get(self, chunk: str) -> tuple[TokenStr, ...] | None:
        self.misses += 1
        return None

    def put(self, chunk: str, tokens: tuple[TokenStr, ...]) -> None:
        pass


__all__ = ["BPECache", "NullCache"]
