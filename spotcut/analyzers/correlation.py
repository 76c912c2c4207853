"""FFT cross-correlation of raw sample buffers, used to refine cue offsets."""

from typing import Iterable, Iterator, Sequence

import numpy as np


def next_power_of_two(n: int) -> int:
    """Smallest power of two greater than or equal to *n*."""
    power = 1
    while power < n:
        power *= 2
    return power


def zero_pad(values: Sequence[float], length: int) -> np.ndarray:
    """Complex copy of *values* extended with zeros to *length*."""
    if len(values) > length:
        raise ValueError(
            f"zero_pad: input length {len(values)} is greater than target length {length}"
        )
    padded = np.zeros(length, dtype=np.complex128)
    padded[: len(values)] = values
    return padded


def cross_correlation(segment: Sequence[float], reference: Sequence[float]) -> np.ndarray:
    """Linear cross-correlation, index ``i`` holding lag ``i - (len(reference) - 1)``.

    The value at lag ``k`` is ``sum(segment[n + k] * reference[n])``.
    """
    segment_len = len(segment)
    reference_len = len(reference)
    if not segment_len or not reference_len:
        raise ValueError("cross_correlation needs two non-empty buffers")

    correlation_len = segment_len + reference_len - 1
    fft_len = next_power_of_two(correlation_len)

    spectrum = np.fft.fft(zero_pad(segment, fft_len)) * np.conj(
        np.fft.fft(zero_pad(reference, fft_len))
    )
    # numpy's inverse transform already divides by fft_len
    circular = np.fft.ifft(spectrum).real

    # Negative lags wrap around to the end of the circular result
    negative = circular[fft_len - (reference_len - 1):] if reference_len > 1 else circular[:0]
    return np.concatenate((negative, circular[:segment_len]))


def compare_segments(
    segment: Sequence[float], reference: Sequence[float]
) -> tuple[int | None, float]:
    """Lag at which *reference* best lines up with *segment*, and the peak value.

    A positive lag ``k`` means ``segment[n + k]`` matches ``reference[n]``.
    The peak must be strictly positive; otherwise the lag is None (no
    alignment found).
    """
    correlation = cross_correlation(segment, reference)
    best = int(np.argmax(correlation))
    peak = float(correlation[best])
    if peak <= 0.0:
        return None, 0.0
    return best - (len(reference) - 1), peak


def calculate_time_difference(
    index: int, sample_rate: int, duration_a: float, duration_b: float
) -> float:
    """Signed offset in seconds between two segments from a lag index."""
    return (duration_a - duration_b) / 2 - index / sample_rate


def chunk_samples(samples: np.ndarray, size: int) -> Iterator[np.ndarray]:
    """Split *samples* into chunks of *size*, zero-filling the last one."""
    for start in range(0, len(samples), size):
        chunk = samples[start:start + size]
        if len(chunk) < size:
            chunk = np.concatenate((chunk, np.zeros(size - len(chunk), dtype=chunk.dtype)))
        yield chunk


def make_overlap_samples(chunks: Iterable[np.ndarray]) -> Iterator[np.ndarray]:
    """Interleave half-overlapping chunks between consecutive input chunks.

    ``[1, 2], [3, 4]`` yields ``[1, 2], [2, 3], [3, 4]``. All chunks must
    share the same even length.
    """
    previous = None
    for chunk in chunks:
        chunk = np.asarray(chunk)
        if len(chunk) % 2:
            raise ValueError(f"chunk length must be even, got {len(chunk)}")
        if previous is not None:
            half = len(chunk) // 2
            yield np.concatenate((previous[half:], chunk[:half]))
        yield chunk
        previous = chunk


def locate_reference(
    chunks: Iterable[np.ndarray],
    reference: Sequence[float],
    chunk_step: int,
) -> int | None:
    """Sample position of *reference* within a stream of chunks.

    *chunks* are consecutive windows starting ``chunk_step`` samples apart
    (half the chunk length for :func:`make_overlap_samples` output). Returns
    the position of the strongest positive correlation peak relative to the
    first chunk, or None.
    """
    best_position = None
    best_value = 0.0
    for i, chunk in enumerate(chunks):
        lag, peak = compare_segments(chunk, reference)
        if lag is not None and peak > best_value:
            best_value = peak
            best_position = i * chunk_step + lag
    return best_position
