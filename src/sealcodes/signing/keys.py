"""Signing key records and the key registry.

Records are created out-of-band by an operator (``sealcodes keygen``), never
mutated except for retirement through ``expires_at``, and looked up on every
request so retirement takes effect immediately.
"""
from __future__ import annotations

import datetime
import hmac
import os
import sqlite3
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from ..config import KEY_REGISTRY_DB

ED25519 = "Ed25519"


def utc_now() -> datetime.datetime:
    now = datetime.datetime.now(datetime.timezone.utc)
    # attestation timestamps carry millisecond precision
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_timestamp(when: datetime.datetime) -> str:
    return when.astimezone(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime.datetime:
    if not isinstance(value, str) or not value:
        raise ValueError("timestamp missing")
    v = value.strip()
    if v.endswith("Z") or v.endswith("z"):
        v = v[:-1] + "+00:00"
    dt = datetime.datetime.fromisoformat(v)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


@dataclass(frozen=True)
class SigningKey:
    key_id: str
    public_key: str  # SPKI PEM
    created_at: str
    algorithm: str = ED25519
    expires_at: Optional[str] = None

    def valid_at(self, when: datetime.datetime) -> bool:
        if when < parse_timestamp(self.created_at):
            return False
        if self.expires_at and when > parse_timestamp(self.expires_at):
            return False
        return True


class KeyRegistry(Protocol):
    def get(self, key_id: str) -> Optional[SigningKey]: ...


# Key material helpers

def generate_private_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


def private_key_pem(sk: Ed25519PrivateKey) -> str:
    return sk.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def public_key_pem(pk: Ed25519PublicKey) -> str:
    return pk.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


def load_private_key(pem: str) -> Ed25519PrivateKey:
    sk = serialization.load_pem_private_key(pem.encode(), password=None)
    if not isinstance(sk, Ed25519PrivateKey):
        raise ValueError("expected Ed25519 private key")
    return sk


def load_public_key(pem: str) -> Ed25519PublicKey:
    pk = serialization.load_pem_public_key(pem.encode())
    if not isinstance(pk, Ed25519PublicKey):
        raise ValueError("expected Ed25519 public key")
    return pk


def raw_public_bytes(pk: Ed25519PublicKey) -> bytes:
    return pk.public_bytes(encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw)


def public_key_matches(record: SigningKey, raw_public: bytes) -> bool:
    """True when ``raw_public`` is the Ed25519 key registered in ``record``."""
    try:
        registered = raw_public_bytes(load_public_key(record.public_key))
    except ValueError:
        return False
    return hmac.compare_digest(registered, raw_public)


def record_for(key_id: str, sk: Ed25519PrivateKey, created_at: Optional[str] = None,
               expires_at: Optional[str] = None) -> SigningKey:
    return SigningKey(
        key_id=key_id,
        public_key=public_key_pem(sk.public_key()),
        created_at=created_at or format_timestamp(utc_now()),
        expires_at=expires_at,
    )


# Registries

class InMemoryKeyRegistry:
    def __init__(self, keys: Optional[List[SigningKey]] = None):
        self._keys: Dict[str, SigningKey] = {k.key_id: k for k in (keys or [])}

    def add(self, key: SigningKey) -> None:
        if key.key_id in self._keys:
            raise ValueError(f"key already registered: {key.key_id}")
        self._keys[key.key_id] = key

    def retire(self, key_id: str, when: Optional[str] = None) -> SigningKey:
        key = self._keys[key_id]
        retired = replace(key, expires_at=when or format_timestamp(utc_now()))
        self._keys[key_id] = retired
        return retired

    def get(self, key_id: str) -> Optional[SigningKey]:
        return self._keys.get(key_id)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS signing_keys(
  key_id TEXT PRIMARY KEY,
  public_key TEXT NOT NULL,
  algorithm TEXT NOT NULL,
  created_at TEXT NOT NULL,
  expires_at TEXT
)
"""


class SqliteKeyRegistry:
    """``signing_keys`` table in a local SQLite file (connection per call)."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or KEY_REGISTRY_DB
        self._lock = threading.Lock()
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(_SCHEMA)
            finally:
                conn.close()

    def _connect(self) -> sqlite3.Connection:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        conn = sqlite3.connect(self.path, timeout=5, isolation_level=None)
        conn.execute("PRAGMA journal_mode=WAL;")
        return conn

    def add(self, key: SigningKey) -> None:
        with self._lock:
            c = self._connect()
            try:
                c.execute(
                    "INSERT INTO signing_keys(key_id, public_key, algorithm, created_at, expires_at) VALUES (?,?,?,?,?)",
                    (key.key_id, key.public_key, key.algorithm, key.created_at, key.expires_at),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"key already registered: {key.key_id}") from e
            finally:
                c.close()

    def retire(self, key_id: str, when: Optional[str] = None) -> SigningKey:
        stamp = when or format_timestamp(utc_now())
        with self._lock:
            c = self._connect()
            try:
                cur = c.execute("UPDATE signing_keys SET expires_at=? WHERE key_id=?", (stamp, key_id))
                if cur.rowcount == 0:
                    raise KeyError(key_id)
            finally:
                c.close()
        key = self.get(key_id)
        if key is None:
            raise KeyError(key_id)
        return key

    def get(self, key_id: str) -> Optional[SigningKey]:
        with self._lock:
            c = self._connect()
            try:
                row = c.execute(
                    "SELECT key_id, public_key, algorithm, created_at, expires_at FROM signing_keys WHERE key_id=?",
                    (key_id,),
                ).fetchone()
            finally:
                c.close()
        if not row:
            return None
        kid, pub, alg, created, expires = row
        return SigningKey(key_id=kid, public_key=pub, algorithm=alg, created_at=created, expires_at=expires)

    def list(self) -> List[SigningKey]:
        with self._lock:
            c = self._connect()
            try:
                rows = c.execute(
                    "SELECT key_id, public_key, algorithm, created_at, expires_at FROM signing_keys ORDER BY created_at"
                ).fetchall()
            finally:
                c.close()
        return [SigningKey(key_id=r[0], public_key=r[1], algorithm=r[2], created_at=r[3], expires_at=r[4]) for r in rows]
