"""Perceptual hashes (advisory similarity evidence).

Contract for any hasher: take an RGB ``PIL.Image`` and return a fixed-length
lower-case hex string. The defaults produce 64-bit hashes (16 hex chars).
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np
from PIL import Image


@runtime_checkable
class PerceptualHasher(Protocol):
    def __call__(self, img: Image.Image) -> str: ...


def _bits_to_hex(bits: np.ndarray) -> str:
    flat = bits.flatten()
    value = 0
    for b in flat:
        value = (value << 1) | int(b)
    return f"{value:0{(len(flat) + 3) // 4}x}"


def _dct_matrix(n: int) -> np.ndarray:
    k = np.arange(n)[:, None]
    i = np.arange(n)[None, :]
    m = np.cos(np.pi * (2 * i + 1) * k / (2 * n)) * np.sqrt(2.0 / n)
    m[0, :] = np.sqrt(1.0 / n)
    return m


def phash(img: Image.Image, hash_size: int = 8, highfreq_factor: int = 4) -> str:
    size = hash_size * highfreq_factor
    gray = img.convert("L").resize((size, size), Image.Resampling.LANCZOS)
    px = np.asarray(gray, dtype=np.float64)
    d = _dct_matrix(size)
    low = (d @ px @ d.T)[:hash_size, :hash_size]
    return _bits_to_hex(low > np.median(low))


def dhash(img: Image.Image, hash_size: int = 8) -> str:
    gray = img.convert("L").resize((hash_size + 1, hash_size), Image.Resampling.LANCZOS)
    px = np.asarray(gray, dtype=np.int16)
    return _bits_to_hex(px[:, 1:] > px[:, :-1])


def hamming(a: str, b: str) -> int:
    if len(a) != len(b):
        raise ValueError("perceptual hashes differ in length")
    return bin(int(a, 16) ^ int(b, 16)).count("1")


__all__ = ["PerceptualHasher", "phash", "dhash", "hamming"]
