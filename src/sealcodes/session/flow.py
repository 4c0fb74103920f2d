"""Sealing flow state machine and pipeline.

States::

    Idle --begin--> AwaitingAuth --auth_completed--> Sealing --complete--> Sealed
      ^                  |                             |
      |                  +-----------fail--------------+--> Failed
      +------------------------- reset ---------------------------+

Auth callbacks drive ``auth_completed``; ``SealingPipeline`` drives the rest.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from ..attestation.builder import build_package, finalize
from ..attestation.compact import CompactAttestationData
from ..attestation.model import FullAttestationPackage, Identity, SignatureEnvelope
from ..client import SigningClient
from ..config import SERVICE_NAME
from ..errors import SealError
from ..fingerprint.engine import FingerprintEngine, default_engine
from ..fingerprint.geometry import SealPlacement
from ..fingerprint.raster import Document
from ..utils.logging import get_logger
from .store import PendingOperation, PendingOperationStore, SealState

log = get_logger(__name__)


class InvalidTransition(Exception):
    def __init__(self, token: str, current: SealState, action: str):
        super().__init__(f"cannot {action} from state {current.value}")
        self.token = token
        self.current = current
        self.action = action


_ALLOWED = {
    "begin": {SealState.IDLE},
    "auth_completed": {SealState.AWAITING_AUTH},
    "complete": {SealState.SEALING},
    "fail": {SealState.IDLE, SealState.AWAITING_AUTH, SealState.SEALING},
}


class SealingFlow:
    def __init__(self, store: PendingOperationStore):
        self.store = store

    def state(self, token: str) -> SealState:
        op = self.store.get(token)
        return op.state if op else SealState.IDLE

    def get(self, token: str) -> PendingOperation:
        return self.store.get(token) or PendingOperation()

    def _advance(self, token: str, action: str, **changes) -> PendingOperation:
        op = self.get(token)
        if op.state not in _ALLOWED[action]:
            raise InvalidTransition(token, op.state, action)
        nxt = PendingOperation(**{**op.model_dump(exclude={"updated_at"}), **changes})
        self.store.put(token, nxt)
        log.info(f"sealing flow {token[:8]}: {op.state.value} -> {nxt.state.value}")
        return nxt

    def begin(self, token: str, document_ref: str) -> PendingOperation:
        return self._advance(token, "begin", state=SealState.AWAITING_AUTH, document_ref=document_ref)

    def auth_completed(self, token: str, identity: Identity) -> PendingOperation:
        return self._advance(token, "auth_completed", state=SealState.SEALING, identity=identity)

    def complete(self, token: str, attestation: CompactAttestationData) -> PendingOperation:
        return self._advance(token, "complete", state=SealState.SEALED, attestation=attestation.wire())

    def fail(self, token: str, reason: str) -> PendingOperation:
        return self._advance(token, "fail", state=SealState.FAILED, error=reason)

    def reset(self, token: str) -> None:
        self.store.delete(token)


@dataclass(frozen=True)
class SealResult:
    package: FullAttestationPackage
    attestation: CompactAttestationData
    envelope: SignatureEnvelope
    placement: SealPlacement


class SealingPipeline:
    """fingerprint -> build -> sign -> combine -> compact, recorded on the flow."""

    def __init__(
        self,
        flow: SealingFlow,
        signing_client: SigningClient,
        engine: Optional[FingerprintEngine] = None,
        service_name: Optional[str] = SERVICE_NAME,
    ):
        self.flow = flow
        self.signing_client = signing_client
        self.engine = engine or default_engine
        self.service_name = service_name

    def run(
        self,
        token: str,
        document: Document,
        placement: SealPlacement,
        access_token: str,
        user_url: Optional[str] = None,
    ) -> SealResult:
        op = self.flow.get(token)
        if op.state is not SealState.SEALING or op.identity is None:
            raise InvalidTransition(token, op.state, "seal")
        try:
            hashes = self.engine.compute_hashes(document, placement.exclusion_zone)
            unsigned = build_package(hashes, op.identity, placement.exclusion_zone, user_url)
            envelope = self.signing_client.sign(unsigned, access_token)
            full, attestation = finalize(unsigned, envelope, service_name=self.service_name)
        except (SealError, ValueError, httpx.HTTPError) as e:
            self.flow.fail(token, str(e))
            raise
        self.flow.complete(token, attestation)
        return SealResult(package=full, attestation=attestation, envelope=envelope, placement=placement)


__all__ = ["SealingFlow", "SealingPipeline", "SealResult", "InvalidTransition"]
