"""Pending sealing operations keyed by session token.

Carries the sealing flow across the OAuth redirect. Values are JSON; the
redis store expires them after ``PENDING_TTL_SEC``.
"""
from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, Dict, Optional, Protocol

import redis
from pydantic import BaseModel, Field

from ..attestation.model import Identity
from ..config import PENDING_TTL_SEC, REDIS_URL


class SealState(str, Enum):
    IDLE = "Idle"
    AWAITING_AUTH = "AwaitingAuth"
    SEALING = "Sealing"
    SEALED = "Sealed"
    FAILED = "Failed"


class PendingOperation(BaseModel):
    state: SealState = SealState.IDLE
    document_ref: Optional[str] = None
    identity: Optional[Identity] = None
    attestation: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    updated_at: str = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")
    )


class PendingOperationStore(Protocol):
    def get(self, token: str) -> Optional[PendingOperation]: ...
    def put(self, token: str, op: PendingOperation) -> None: ...
    def delete(self, token: str) -> None: ...


class InMemoryPendingStore:
    def __init__(self):
        self._ops: Dict[str, str] = {}

    def get(self, token: str) -> Optional[PendingOperation]:
        raw = self._ops.get(token)
        return PendingOperation.model_validate_json(raw) if raw else None

    def put(self, token: str, op: PendingOperation) -> None:
        self._ops[token] = op.model_dump_json()

    def delete(self, token: str) -> None:
        self._ops.pop(token, None)


class RedisPendingStore:
    def __init__(self, url: Optional[str] = None, ttl: Optional[int] = None, client: Any = None):
        self.r = client or redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl or PENDING_TTL_SEC

    @staticmethod
    def _key(token: str) -> str:
        return f"sealcodes:pending:{token}"

    def get(self, token: str) -> Optional[PendingOperation]:
        raw = self.r.get(self._key(token))
        return PendingOperation.model_validate_json(raw) if raw else None

    def put(self, token: str, op: PendingOperation) -> None:
        self.r.set(self._key(token), op.model_dump_json(), ex=self.ttl)

    def delete(self, token: str) -> None:
        self.r.delete(self._key(token))


__all__ = ["SealState", "PendingOperation", "PendingOperationStore", "InMemoryPendingStore", "RedisPendingStore"]
