from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

SIGN_REQUESTS = Counter("sealcodes_sign_requests_total", "Signing requests", ["outcome"])
VERIFY_RESULTS = Counter("sealcodes_verify_results_total", "Verification results", ["outcome"])
FINGERPRINT_SECONDS = Histogram(
    "sealcodes_fingerprint_seconds", "Document fingerprinting latency (s)", ["media"]
)

metrics_router = APIRouter()


@metrics_router.get("/metrics")
def prometheus_metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
