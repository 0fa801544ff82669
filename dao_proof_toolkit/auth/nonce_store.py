"""
Nonce bookkeeping for session challenges.

A store records which ``(address, nonce)`` pairs have been consumed. The
session engine only ever calls ``consume``, which must check and mark in one
atomic step; two concurrent authorizations of the same challenge must not
both succeed.

A consumed pair stays consumed for the lifetime of the store. The expiration
of the challenge that used it is no bound: another challenge may carry the
same nonce with a later expiration time.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Tuple


class NonceStore(ABC):
    """Interface for replay protection backends."""

    @abstractmethod
    def consume(self, address: str, nonce: str, expires_at: datetime) -> bool:
        """
        Mark ``(address, nonce)`` as used.

        Args:
            address: Signer address (compared case-insensitively)
            nonce: Challenge nonce
            expires_at: Expiration of the challenge being authorized,
                recorded alongside the pair

        Returns:
            bool: True if the pair was fresh, False if already consumed
        """


class InMemoryNonceStore(NonceStore):
    """Thread-safe process-local nonce store."""

    def __init__(self):
        self._lock = threading.Lock()
        self._consumed: Dict[Tuple[str, str], datetime] = {}

    def consume(self, address: str, nonce: str, expires_at: datetime) -> bool:
        key = (address.lower(), nonce)
        with self._lock:
            if key in self._consumed:
                return False
            self._consumed[key] = expires_at
            return True

    def is_consumed(self, address: str, nonce: str) -> bool:
        with self._lock:
            return (address.lower(), nonce) in self._consumed

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)
