from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .config import CORS_ALLOW_HEADERS, SEALCODES_ENV
from .obs.metrics import metrics_router
from .signing.auth import HttpIdentityResolver, IdentityResolver
from .signing.keys import KeyRegistry, SqliteKeyRegistry
from .signing.routes import router as signing_router
from .signing.service import SigningService
from .signing.signer import KeyProvider, select_signer
from .utils.logging import get_logger
from .verification.routes import router as verification_router
from .verification.service import VerificationService

load_dotenv()

log = get_logger(__name__)


def create_app(
    registry: Optional[KeyRegistry] = None,
    resolver: Optional[IdentityResolver] = None,
    keys: Optional[KeyProvider] = None,
) -> FastAPI:
    # select_signer raises when the mock signer is configured in production
    keys = keys or select_signer()
    registry = registry or SqliteKeyRegistry()
    resolver = resolver or HttpIdentityResolver()

    app = FastAPI(title="seal.codes attestation service")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
    )
    app.state.signing_service = SigningService(resolver=resolver, keys=keys, registry=registry)
    app.state.verification_service = VerificationService(registry=registry)

    app.include_router(signing_router)
    app.include_router(verification_router)
    app.include_router(metrics_router)

    @app.get("/__health")
    async def health():
        return {"status": "ok", "env": SEALCODES_ENV}

    log.info(f"attestation service ready (env={SEALCODES_ENV})")
    return app


app = create_app()
