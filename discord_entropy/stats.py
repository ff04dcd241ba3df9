"""Statistical summary of generated byte streams."""

from __future__ import annotations

import zlib
from collections import Counter

import numpy as np


def _as_uint8(data: bytes | np.ndarray) -> np.ndarray:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return np.frombuffer(bytes(data), dtype=np.uint8)
    return np.asarray(data).astype(np.uint8).flatten()


def shannon_entropy(data: bytes | np.ndarray) -> float:
    """Shannon entropy in bits/byte."""
    arr = _as_uint8(data)
    if len(arr) == 0:
        return 0.0
    counts = np.bincount(arr, minlength=256)
    probs = counts[counts > 0] / len(arr)
    return float(-np.sum(probs * np.log2(probs)))


def min_entropy(data: bytes | np.ndarray) -> float:
    """Min-entropy (NIST SP 800-90B) — most conservative estimate."""
    arr = _as_uint8(data)
    if len(arr) == 0:
        return 0.0
    p_max = max(Counter(arr.tolist()).values()) / len(arr)
    return float(-np.log2(p_max))


def compression_ratio(data: bytes | np.ndarray) -> float:
    """Compression ratio via zlib level 9.  ≈1.0 means incompressible."""
    raw = _as_uint8(data).tobytes()
    if len(raw) < 10:
        return 0.0
    return len(zlib.compress(raw, 9)) / len(raw)


def chi_squared_uniformity(data: bytes | np.ndarray) -> dict:
    """Chi-squared uniformity test for the byte distribution."""
    arr = _as_uint8(data)
    hist = np.bincount(arr, minlength=256)
    expected = max(len(arr) / 256, 1e-15)
    chi2 = float(np.sum((hist - expected) ** 2 / expected))
    return {"chi2": round(chi2, 2), "uniform": chi2 < 293}  # p=0.05 for 255 df


def serial_correlation(data: bytes | np.ndarray, lag: int = 1) -> float:
    """Serial autocorrelation at the given lag."""
    arr = _as_uint8(data).astype(float)
    if len(arr) < lag + 2:
        return 0.0
    mean = np.mean(arr)
    var = np.var(arr)
    if var < 1e-15:
        return 0.0
    return float(np.mean((arr[:-lag] - mean) * (arr[lag:] - mean)) / var)


def full_report(data: bytes | np.ndarray, label: str = "") -> dict:
    """Run every check and grade the stream A–F."""
    arr = _as_uint8(data)

    sh = shannon_entropy(arr)
    me = min_entropy(arr)
    cr = compression_ratio(arr)
    chi = chi_squared_uniformity(arr)
    sc = serial_correlation(arr)

    score = (sh / 8.0) * 50 + min(cr, 1.0) * 20 + (20 if chi["uniform"] else 0) + (1 - min(abs(sc) * 10, 1.0)) * 10
    grade = (
        "A" if score >= 80 else
        "B" if score >= 60 else
        "C" if score >= 40 else
        "D" if score >= 20 else "F"
    )

    return {
        "label": label,
        "samples": len(arr),
        "unique_values": int(len(np.unique(arr))),
        "shannon_entropy": round(sh, 4),
        "min_entropy": round(me, 4),
        "compression_ratio": round(cr, 4),
        "chi_squared": chi,
        "serial_correlation": round(sc, 6),
        "quality_score": round(score, 1),
        "grade": grade,
    }
