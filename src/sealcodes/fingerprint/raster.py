"""First-page/frame rasterization.

Images are decoded with Pillow (first frame, alpha flattened onto white).
PDFs are rendered with PyMuPDF at 72 dpi, so one raster pixel is one PDF
point and seal geometry computed from the page size lines up with the
hashed pixels.
"""
from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Tuple

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from ..errors import UnsupportedFormat

PDF_MEDIA_TYPE = "application/pdf"


@dataclass(frozen=True)
class Document:
    data: bytes
    media_type: str

    @property
    def kind(self) -> str:
        mt = normalize_media_type(self.media_type)
        if mt == PDF_MEDIA_TYPE:
            return "pdf"
        if mt.startswith("image/"):
            return "image"
        raise UnsupportedFormat(f"no rasterization path for media type {self.media_type!r}")


def normalize_media_type(media_type: str) -> str:
    return (media_type or "").split(";", 1)[0].strip().lower()


def _decode_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.seek(0)
        img.load()
    except (UnidentifiedImageError, OSError, EOFError) as e:
        raise UnsupportedFormat("image could not be decoded") from e
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        base = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        return Image.alpha_composite(base, rgba).convert("RGB")
    return img.convert("RGB")


def _render_pdf(data: bytes) -> Image.Image:
    try:
        pdf = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise UnsupportedFormat("PDF could not be opened") from e
    with pdf:
        if pdf.page_count == 0:
            raise UnsupportedFormat("PDF has no pages")
        pix = pdf[0].get_pixmap(matrix=fitz.Identity, alpha=False)
        return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)


def rasterize(doc: Document) -> Image.Image:
    if doc.kind == "pdf":
        return _render_pdf(doc.data)
    return _decode_image(doc.data)


def dimensions(doc: Document) -> Tuple[int, int]:
    """(width, height) of the raster the fingerprint is computed on."""
    return rasterize(doc).size


__all__ = ["Document", "PDF_MEDIA_TYPE", "rasterize", "dimensions", "normalize_media_type"]
