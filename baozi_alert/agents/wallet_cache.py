"""
Wallet State Cache: per-wallet snapshot of the last-seen positions and odds.

Backend: an in-memory dict owned by each cache instance. Nothing survives a
restart; the first check after startup has no previous snapshot.
"""
from __future__ import annotations

import asyncio
import logging

from baozi_alert.models import CachedWalletState

log = logging.getLogger(__name__)


class WalletStateCache:
    def __init__(self) -> None:
        self._entries: dict[str, CachedWalletState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, wallet: str) -> CachedWalletState | None:
        """
        Retrieve the last snapshot for *wallet*.

        Returns None if the wallet has never been checked successfully.
        """
        return self._entries.get(wallet)

    def put(self, wallet: str, state: CachedWalletState) -> None:
        """Replace the whole snapshot for *wallet* (no merging with the previous one)."""
        self._entries[wallet] = state
        log.debug(
            "Cached %d position(s) and %d odds snapshot(s) for %s",
            len(state.positions), len(state.odds), wallet,
        )

    def has(self, wallet: str) -> bool:
        return wallet in self._entries

    def lock(self, wallet: str) -> asyncio.Lock:
        """Lock guarding the read-then-replace of *wallet*'s entry across overlapping cycles."""
        lock = self._locks.get(wallet)
        if lock is None:
            lock = self._locks[wallet] = asyncio.Lock()
        return lock

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
