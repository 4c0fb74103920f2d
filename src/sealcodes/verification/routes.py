from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from ..errors import MalformedAttestation, ServerConfigurationError
from ..utils.logging import get_logger

router = APIRouter(tags=["verification"])
log = get_logger(__name__)


@router.post("/verify-signature")
async def verify_signature(request: Request):
    service = request.app.state.verification_service
    try:
        body = await request.json()
        if not isinstance(body, dict) or "attestationData" not in body:
            raise MalformedAttestation("request body must contain attestationData")
        result = await run_in_threadpool(service.verify, body["attestationData"])
    except ServerConfigurationError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except (ValueError, MalformedAttestation) as e:
        log.warning(f"malformed verification request: {e}")
        return JSONResponse({"error": "Internal server error", "details": str(e)}, status_code=500)
    return JSONResponse(result.wire())


@router.options("/verify-signature")
async def verify_signature_options():
    return Response(status_code=200)


@router.api_route("/verify-signature", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def verify_signature_wrong_method():
    return JSONResponse({"error": "Method not allowed"}, status_code=405)
