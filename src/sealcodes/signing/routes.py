from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from ..attestation.model import UnsignedAttestationPackage
from ..errors import SealError
from ..obs.metrics import SIGN_REQUESTS
from ..utils.logging import get_logger

router = APIRouter(tags=["signing"])
log = get_logger(__name__)


@router.post("/sign-attestation")
async def sign_attestation(request: Request):
    service = request.app.state.signing_service
    try:
        body = await request.json()
        package = UnsignedAttestationPackage.model_validate(body)
    except (ValueError, ValidationError) as e:
        SIGN_REQUESTS.labels(outcome="invalid_request").inc()
        return JSONResponse({"error": "Invalid attestation package", "details": str(e)}, status_code=400)
    try:
        envelope = await run_in_threadpool(service.sign, package, request.headers.get("authorization"))
    except SealError as e:
        SIGN_REQUESTS.labels(outcome=e.code).inc()
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    SIGN_REQUESTS.labels(outcome="signed").inc()
    return JSONResponse(envelope.wire())


@router.options("/sign-attestation")
async def sign_attestation_options():
    return Response(status_code=200)


@router.api_route("/sign-attestation", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def sign_attestation_wrong_method():
    return JSONResponse({"error": "Method not allowed"}, status_code=405)
