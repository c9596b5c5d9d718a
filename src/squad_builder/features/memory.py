from __future__ import annotations

import threading
from collections import deque
from typing import Iterable, List, Optional

from ..utils.cache import load_json, save_json
from ..utils.rules import MEMORY_SIZE


class ProposalMemory:
    """
    The last few squad signatures handed out, newest first.

    Shared across builds (one per process or session). All access goes
    through one lock; `claim` is the only way the builder writes, so the
    "already seen?" check and the push cannot interleave between callers.
    """

    def __init__(self, capacity: int = MEMORY_SIZE, signatures: Optional[Iterable[str]] = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._lock = threading.Lock()
        self._sigs: deque = deque(maxlen=capacity)
        # oldest first so the newest ends at the front
        for sig in reversed(list(signatures or [])[:capacity]):
            self._sigs.appendleft(sig)

    @property
    def capacity(self) -> int:
        return self._sigs.maxlen

    def __contains__(self, signature: str) -> bool:
        with self._lock:
            return signature in self._sigs

    def __len__(self) -> int:
        with self._lock:
            return len(self._sigs)

    def claim(self, signature: str) -> bool:
        """Push `signature` unless already known. True if this call pushed it."""
        with self._lock:
            if signature in self._sigs:
                return False
            self._sigs.appendleft(signature)
            return True

    def clear(self) -> None:
        with self._lock:
            self._sigs.clear()

    def to_list(self) -> List[str]:
        with self._lock:
            return list(self._sigs)

    @classmethod
    def from_list(cls, signatures: Iterable[str], capacity: int = MEMORY_SIZE) -> "ProposalMemory":
        return cls(capacity=capacity, signatures=signatures)


def load_memory(path: str, capacity: int = MEMORY_SIZE) -> ProposalMemory:
    """ProposalMemory from a JSON list of signatures (empty if the file is missing)."""
    sigs = load_json(path, default=[])
    if not isinstance(sigs, list):
        raise ValueError(f"{path}: expected a JSON list of signatures")
    return ProposalMemory.from_list([str(s) for s in sigs], capacity=capacity)


def save_memory(path: str, memory: ProposalMemory) -> None:
    save_json(path, memory.to_list())
