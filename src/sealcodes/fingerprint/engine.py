"""Document fingerprinting with a neutralized exclusion zone.

The seal is later drawn inside the exclusion zone, so every hash is computed
on the raster with that rectangle filled flat with ``fillColor``. The
rectangle used here and the one used for seal placement MUST be the same.

Cryptographic hash input::

    b"sealcodes-raster/v1\\n" + b"<W>x<H>:RGB\\n" + raw RGB pixels (row-major)
"""
from __future__ import annotations

import hashlib
import time
from typing import Dict, Optional, Tuple

from PIL import Image
from starlette.concurrency import run_in_threadpool

from ..attestation.model import DocumentHashes, ExclusionZone
from ..errors import GeometryOutOfBounds
from ..obs.metrics import FINGERPRINT_SECONDS
from ..utils.logging import get_logger
from .perceptual import PerceptualHasher, dhash, hamming, phash
from .raster import Document, rasterize

RASTER_DOMAIN = b"sealcodes-raster/v1\n"

# Hamming distance (of 64 bits) under which two images count as "looks the same"
SIMILARITY_THRESHOLD = 10

log = get_logger(__name__)


def check_bounds(zone: ExclusionZone, size: Tuple[int, int]) -> None:
    width, height = size
    if zone.x + zone.width > width or zone.y + zone.height > height:
        raise GeometryOutOfBounds(
            f"exclusion zone ({zone.x},{zone.y},{zone.width}x{zone.height}) exceeds document {width}x{height}"
        )


def _rgb(color: str) -> Tuple[int, int, int]:
    return (int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16))


def neutralize(img: Image.Image, zone: ExclusionZone) -> Image.Image:
    check_bounds(zone, img.size)
    out = img.convert("RGB") if img.mode != "RGB" else img.copy()
    box = (zone.x, zone.y, zone.x + zone.width, zone.y + zone.height)
    out.paste(_rgb(zone.fill_color), box)
    return out


def raster_digest(img: Image.Image) -> str:
    width, height = img.size
    h = hashlib.sha256()
    h.update(RASTER_DOMAIN)
    h.update(f"{width}x{height}:RGB\n".encode("ascii"))
    h.update(img.tobytes())
    return h.hexdigest()


class FingerprintEngine:
    def __init__(
        self,
        p_hasher: Optional[PerceptualHasher] = None,
        d_hasher: Optional[PerceptualHasher] = None,
    ):
        self.p_hasher = p_hasher or phash
        self.d_hasher = d_hasher or dhash

    def hash_raster(self, img: Image.Image, zone: ExclusionZone) -> DocumentHashes:
        neutral = neutralize(img, zone)
        return DocumentHashes(
            cryptographic=raster_digest(neutral),
            p_hash=self.p_hasher(neutral),
            d_hash=self.d_hasher(neutral),
        )

    def compute_hashes(self, document: Document, zone: ExclusionZone) -> DocumentHashes:
        start = time.perf_counter()
        kind = document.kind
        hashes = self.hash_raster(rasterize(document), zone)
        FINGERPRINT_SECONDS.labels(media=kind).observe(time.perf_counter() - start)
        log.debug(f"fingerprinted {kind} document crypto={hashes.cryptographic[:16]}…")
        return hashes

    async def compute_hashes_async(self, document: Document, zone: ExclusionZone) -> DocumentHashes:
        return await run_in_threadpool(self.compute_hashes, document, zone)


default_engine = FingerprintEngine()


def compute_hashes(document: Document, zone: ExclusionZone) -> DocumentHashes:
    return default_engine.compute_hashes(document, zone)


def compare_perceptual(expected: DocumentHashes, actual: DocumentHashes) -> Dict[str, object]:
    """Advisory comparison: never a pass/fail verdict on its own."""
    p = hamming(expected.p_hash, actual.p_hash)
    d = hamming(expected.d_hash, actual.d_hash)
    return {
        "cryptographicMatch": expected.cryptographic == actual.cryptographic,
        "pHashDistance": p,
        "dHashDistance": d,
        "perceptuallySimilar": p <= SIMILARITY_THRESHOLD and d <= SIMILARITY_THRESHOLD,
    }


__all__ = [
    "FingerprintEngine",
    "compute_hashes",
    "compare_perceptual",
    "check_bounds",
    "neutralize",
    "raster_digest",
]
