"""Seal placement geometry.

Turns a UI position (percent of the document, top-left origin) and a seal
size (percent of the shorter side) into the pixel exclusion zone used for
hashing and the placement used for embedding. Both describe the same pixels:
for PDFs the placement is in PDF user space (origin bottom-left), for images
it equals the zone's top-left corner.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..attestation.model import ExclusionZone
from ..errors import GeometryOutOfBounds

MIN_SEAL_PX = 16


@dataclass(frozen=True)
class SealPlacement:
    exclusion_zone: ExclusionZone
    # where the embedder draws the seal, in the document's native coordinates
    position: Tuple[int, int]
    size_in_pixels: int


def _clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(v, hi))


def calculate_embedding_pixels(
    position: Tuple[float, float],
    size_percent: float,
    dimensions: Tuple[int, int],
    document_type: str,
    fill_color: str = "#FFFFFF",
) -> SealPlacement:
    width, height = dimensions
    if width <= 0 or height <= 0:
        raise GeometryOutOfBounds("document has no area")
    if not 0 < size_percent <= 100:
        raise GeometryOutOfBounds(f"seal size must be within (0, 100] percent, got {size_percent}")
    size = max(MIN_SEAL_PX, round(min(width, height) * size_percent / 100.0))
    if size > width or size > height:
        raise GeometryOutOfBounds(f"seal of {size}px does not fit a {width}x{height} document")
    px, py = position
    x = _clamp(round(width * px / 100.0), 0, width - size)
    y = _clamp(round(height * py / 100.0), 0, height - size)
    zone = ExclusionZone(x=x, y=y, width=size, height=size, fill_color=fill_color)
    return SealPlacement(
        exclusion_zone=zone,
        position=placement_for_zone(zone, height, document_type),
        size_in_pixels=size,
    )


def placement_for_zone(zone: ExclusionZone, page_height: int, document_type: str) -> Tuple[int, int]:
    if document_type == "pdf":
        return (zone.x, page_height - zone.y - zone.height)
    if document_type == "image":
        return (zone.x, zone.y)
    raise ValueError(f"unknown document type: {document_type}")


def zone_from_placement(
    position: Tuple[int, int],
    size: Tuple[int, int],
    page_height: int,
    document_type: str,
    fill_color: str = "#FFFFFF",
) -> ExclusionZone:
    x, y = position
    w, h = size
    if document_type == "pdf":
        y = page_height - y - h
    elif document_type != "image":
        raise ValueError(f"unknown document type: {document_type}")
    return ExclusionZone(x=x, y=y, width=w, height=h, fill_color=fill_color)


__all__ = ["SealPlacement", "calculate_embedding_pixels", "placement_for_zone", "zone_from_placement"]
