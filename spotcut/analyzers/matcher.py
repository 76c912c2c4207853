"""Align two Chromaprint fingerprints and find the runs they share.

Pipeline:

1. Vote for candidate alignments: every pair of frames whose top
   ``align_bits`` bits agree adds one vote to the offset between them.
2. Keep the local maxima of the vote histogram, strongest first.
3. For each alignment, count differing bits frame by frame, smooth the
   counts with a moving average and cut out the runs that stay under
   ``match_threshold``.
"""

import logging
from collections import defaultdict
from typing import Sequence

import numpy as np

from spotcut.config import MatchConfig
from spotcut.models import Segment, SpotcutError

logger = logging.getLogger(__name__)

# About 36 hours of audio at Chromaprint's frame rate
MAX_FINGERPRINT_ITEMS = 1 << 20


class MatchError(SpotcutError):
    pass


def _check_config(config: MatchConfig) -> None:
    if config.item_duration <= 0:
        raise MatchError(f"item_duration must be positive, got {config.item_duration}")
    if not 0 < config.align_bits <= 32:
        raise MatchError(f"align_bits must be in 1..32, got {config.align_bits}")
    if config.filter_width < 1:
        raise MatchError(f"filter_width must be >= 1, got {config.filter_width}")
    if config.min_segment_frames < 1:
        raise MatchError(
            f"min_segment_frames must be >= 1, got {config.min_segment_frames}"
        )
    if config.max_alignments < 1:
        raise MatchError(f"max_alignments must be >= 1, got {config.max_alignments}")


def bit_errors(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Number of differing bits between two equally long uint32 arrays."""
    xor = np.bitwise_xor(a, b).astype(">u4")
    return np.unpackbits(xor.view(np.uint8).reshape(-1, 4), axis=1).sum(axis=1)


def candidate_alignments(fp1: np.ndarray, fp2: np.ndarray, config: MatchConfig) -> list[int]:
    """Offsets ``i - j`` (frame of fp1 minus frame of fp2), best first."""
    shift = 32 - config.align_bits
    positions: dict[int, list[int]] = defaultdict(list)
    for j, word in enumerate((fp2 >> shift).tolist()):
        positions[word].append(j)

    votes: dict[int, int] = defaultdict(int)
    for i, word in enumerate((fp1 >> shift).tolist()):
        for j in positions.get(word, ()):
            votes[i - j] += 1

    peaks = [
        (count, offset)
        for offset, count in votes.items()
        if count > 1
        and votes.get(offset - 1, 0) <= count
        and votes.get(offset + 1, 0) <= count
    ]
    peaks.sort(key=lambda peak: (-peak[0], peak[1]))
    return [offset for _, offset in peaks[: config.max_alignments]]


def _runs(mask: np.ndarray) -> list[tuple[int, int]]:
    boundaries = np.where(np.diff(np.concatenate(([False], mask, [False])).astype(int)))[0]
    return list(zip(boundaries[::2].tolist(), boundaries[1::2].tolist()))


def _segments_at(
    fp1: np.ndarray, fp2: np.ndarray, offset: int, config: MatchConfig
) -> list[Segment]:
    offset1 = max(offset, 0)
    offset2 = max(-offset, 0)
    size = min(len(fp1) - offset1, len(fp2) - offset2)
    if size < config.min_segment_frames:
        return []

    errors = bit_errors(fp1[offset1:offset1 + size], fp2[offset2:offset2 + size]).astype(float)
    width = config.filter_width
    if size >= width:
        smoothed = np.convolve(errors, np.ones(width) / width, mode="same")
    else:
        smoothed = np.full(size, errors.mean())

    segments = []
    for start, end in _runs(smoothed < config.match_threshold):
        if end - start < config.min_segment_frames:
            continue
        score = 1.0 - float(errors[start:end].mean()) / 32.0
        segments.append(
            Segment(
                offset1=offset1 + start,
                offset2=offset2 + start,
                items_count=end - start,
                score=score,
            )
        )
    return segments


def match_fingerprints(
    fp1: Sequence[int], fp2: Sequence[int], config: MatchConfig
) -> list[Segment]:
    """Find the segments of *fp2* (a reference) that occur in *fp1* (the input).

    Segments are returned ordered by their position in *fp1*. When two
    alignments claim overlapping input frames, the one with more votes wins.
    """
    _check_config(config)
    if len(fp1) > MAX_FINGERPRINT_ITEMS or len(fp2) > MAX_FINGERPRINT_ITEMS:
        raise MatchError(
            f"Fingerprint too long ({max(len(fp1), len(fp2))} > {MAX_FINGERPRINT_ITEMS} frames)"
        )
    if not len(fp1) or not len(fp2):
        return []

    a = np.asarray(fp1, dtype=np.uint32)
    b = np.asarray(fp2, dtype=np.uint32)

    accepted: list[Segment] = []
    for offset in candidate_alignments(a, b, config):
        for seg in _segments_at(a, b, offset, config):
            overlaps = any(
                seg.offset1 < other.offset1 + other.items_count
                and other.offset1 < seg.offset1 + seg.items_count
                for other in accepted
            )
            if not overlaps:
                accepted.append(seg)

    accepted.sort(key=lambda seg: seg.offset1)
    logger.debug("matched %d segment(s)", len(accepted))
    return accepted
