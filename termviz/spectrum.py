"""
Spectral analysis for the terminal visualizer.
Turns one channel of audio samples into per-column display levels.

Stages:
1. compute_spectrum   - zero-padded real FFT -> magnitude spectrum
2. bucket_magnitudes  - spectrum bins averaged into display columns
3. magnitudes_to_levels - column magnitudes -> dB-normalized levels
"""

import logging
import math
from typing import List, Tuple

import numpy as np
from scipy.fft import rfft

logger = logging.getLogger(__name__)

# Decibel range used when none is configured
DEFAULT_MIN_DB = 0.0
DEFAULT_MAX_DB = 60.0


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)."""
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


def compute_spectrum(samples: np.ndarray, half_window: bool = False) -> np.ndarray:
    """
    Compute the magnitude spectrum of one channel.

    The samples are copied into a zero-filled buffer whose length is the next
    power of two, transformed with a forward real FFT, and the first half of
    the bins is kept.

    Args:
        samples: 1-D sample buffer (any amplitude scale)
        half_window: Only copy the first half of the samples into the working
            buffer, matching the original macOS build's output

    Returns:
        Magnitude spectrum of length P/2 (empty for an empty buffer)
    """
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    length = len(samples)
    if length == 0:
        return np.zeros(0, dtype=np.float64)

    fft_length = next_power_of_two(length)
    half = fft_length // 2

    # float64 so a loud float32 block cannot overflow the DC bin
    working = np.zeros(fft_length, dtype=np.float64)
    copy_count = length // 2 if half_window else length
    # NaN/inf from a misbehaving driver would poison every bin
    working[:copy_count] = np.nan_to_num(samples[:copy_count], nan=0.0, posinf=0.0, neginf=0.0)

    spectrum = rfft(working)[:half]
    return np.abs(spectrum)


def usable_bin_count(spectrum_length: int) -> int:
    """Number of spectrum bins spread across the display (lower half)."""
    return spectrum_length // 2


def bucket_ranges(usable_bins: int, columns: int) -> List[Tuple[int, int]]:
    """
    Split [0, usable_bins) into one contiguous range per display column.

    Range i is [i*U // W, min((i+1)*U // W, U)). Ranges never overlap and,
    when columns <= usable_bins, cover every bin exactly once. With more
    columns than bins some ranges are empty (start == end).
    """
    if usable_bins < 0 or columns < 0:
        raise ValueError(f"Bin and column counts must be non-negative: {usable_bins}, {columns}")

    ranges = []
    for i in range(columns):
        start = i * usable_bins // columns
        end = min((i + 1) * usable_bins // columns, usable_bins)
        ranges.append((start, end))
    return ranges


def bucket_magnitudes(spectrum: np.ndarray, columns: int) -> np.ndarray:
    """
    Average the usable spectrum bins into `columns` buckets.

    Columns whose range is empty get a magnitude of 0.
    """
    usable = usable_bin_count(len(spectrum))
    magnitudes = np.zeros(columns, dtype=np.float64)

    for i, (start, end) in enumerate(bucket_ranges(usable, columns)):
        if start >= end:
            continue
        magnitudes[i] = np.mean(spectrum[start:end])

    return magnitudes


def _check_range(min_db: float, max_db: float):
    if not min_db < max_db:
        raise ValueError(f"Decibel range must satisfy min < max, got {min_db}, {max_db}")


def magnitude_to_level(
    magnitude: float, min_db: float = DEFAULT_MIN_DB, max_db: float = DEFAULT_MAX_DB
) -> float:
    """Convert one average magnitude to a normalized display level (>= 0, may exceed 1)."""
    _check_range(min_db, max_db)
    if magnitude > 0 and math.isfinite(magnitude):
        db = max(20.0 * math.log10(magnitude), min_db)
    elif magnitude == math.inf:
        db = math.inf
    else:
        db = min_db
    return (db - min_db) / (max_db - min_db)


def magnitudes_to_levels(
    magnitudes: np.ndarray, min_db: float = DEFAULT_MIN_DB, max_db: float = DEFAULT_MAX_DB
) -> np.ndarray:
    """
    Vectorized magnitude_to_level.

    Levels are not clamped to 1; values above max_db produce bars taller than
    the display, which the renderer simply fills to the top.
    """
    _check_range(min_db, max_db)
    magnitudes = np.asarray(magnitudes, dtype=np.float64)

    # log10(0) is -inf, which the floor below absorbs
    with np.errstate(divide="ignore", invalid="ignore"):
        db = 20.0 * np.log10(magnitudes)
    db = np.nan_to_num(db, nan=min_db, posinf=np.inf, neginf=min_db)
    db = np.maximum(db, min_db)

    return (db - min_db) / (max_db - min_db)
