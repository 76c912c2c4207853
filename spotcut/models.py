"""Shared data types used across spotcut."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spotcut.config import MatchConfig


class SpotcutError(RuntimeError):
    """Base class for errors raised by spotcut itself."""


class FingerprintError(SpotcutError):
    """The audio of a file could not be fingerprinted."""


@dataclass
class TimeRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    def clamp(self, lower: float, upper: float) -> "TimeRange":
        """Restrict both ends to ``[lower, upper]``; the result is never inverted."""
        start = min(max(self.start, lower), upper)
        end = min(max(self.end, start), upper)
        return TimeRange(start=start, end=end)


@dataclass(frozen=True)
class StreamRange:
    """Time window and frame sampling policy for frame extraction.

    ``skip_frames`` is passed to ffmpeg's ``-skip_frame`` ("nokey" keeps
    keyframes only), ``frame_rate`` becomes an ``fps`` filter.
    """

    pts_start: float | None = None
    pts_end: float | None = None
    skip_frames: str | None = None
    frame_rate: float | None = None

    @classmethod
    def keyframes_between(cls, pts_start: float | None, pts_end: float | None) -> "StreamRange":
        return cls(pts_start=pts_start, pts_end=pts_end, skip_frames="nokey")

    @classmethod
    def frames_between(cls, pts_start: float | None, pts_end: float | None) -> "StreamRange":
        return cls(pts_start=pts_start, pts_end=pts_end, skip_frames="none")

    @classmethod
    def every_n_seconds(
        cls, pts_start: float | None, pts_end: float | None, secs: float
    ) -> "StreamRange":
        if secs <= 0:
            raise ValueError(f"frame interval must be positive, got {secs}")
        return cls(
            pts_start=pts_start,
            pts_end=pts_end,
            skip_frames="none",
            frame_rate=1.0 / secs,
        )


@dataclass(frozen=True)
class Segment:
    """An aligned run of frames shared by two fingerprints.

    Offsets and length are in fingerprint frames. ``score`` is the fraction
    of agreeing fingerprint bits over the run, so higher is more similar.
    """

    offset1: int
    offset2: int
    items_count: int
    score: float

    def start1(self, config: "MatchConfig") -> float:
        return self.offset1 * config.item_duration

    def end1(self, config: "MatchConfig") -> float:
        return (self.offset1 + self.items_count) * config.item_duration

    def start2(self, config: "MatchConfig") -> float:
        return self.offset2 * config.item_duration

    def end2(self, config: "MatchConfig") -> float:
        return (self.offset2 + self.items_count) * config.item_duration

    def duration(self, config: "MatchConfig") -> float:
        return self.items_count * config.item_duration


@dataclass(frozen=True)
class SegmentMatch:
    """A matcher segment tagged with the pack entry it came from."""

    source_name: str
    segment: Segment


@dataclass
class ProbeResult:
    """Audio metadata extracted from a media file via ffprobe."""

    duration: float
    sample_rate: int | None
    channels: int
    codec_audio: str
