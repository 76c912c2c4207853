"""JSON configuration schema: the contract between the CLI and the pipeline."""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path


@dataclass
class MatchConfig:
    """Fingerprint matching parameters.

    ``item_duration`` is the length of one fingerprint frame in seconds
    (Chromaprint: a 1365 sample hop at 11025 Hz). ``match_threshold`` is in
    differing bits per 32-bit frame.
    """

    item_duration: float = 1365 / 11025
    align_bits: int = 12
    max_alignments: int = 10
    filter_width: int = 7
    match_threshold: float = 10.0
    min_segment_frames: int = 16


@dataclass
class MediaConfig:
    """Locations and options of the external ffmpeg/fpcalc tools."""

    ffmpeg_home: Path | None = None
    fpcalc: str = "fpcalc"
    # 0 lets fpcalc process the whole file instead of its 120 s default
    fpcalc_length: int = 0


@dataclass
class SessionConfig:
    """Preview windows and refinement settings for the interactive session."""

    default_half_width: float = 1200.0
    default_interval: float = 60.0
    keyframe_half_width: float = 20.0
    frame_half_width: float = 5.0
    interval_factor: float = 20.0
    refine_sample_rate: int = 8000


@dataclass
class SpotcutConfig:
    """Top-level configuration."""

    version: str = "1"
    match: MatchConfig = field(default_factory=MatchConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    session: SessionConfig = field(default_factory=SessionConfig)


def ffmpeg_home_from_env() -> Path | None:
    value = os.environ.get("FFMPEG_HOME")
    return Path(value) if value else None


def _section(cls, data: dict, name: str):
    if not isinstance(data, dict):
        raise ValueError(f"Config section '{name}' must be an object")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown keys in config section '{name}': {', '.join(unknown)}")
    return cls(**data)


def load_config(path: str | Path | None = None) -> SpotcutConfig:
    """Load a config from a JSON file, or return defaults when *path* is None.

    ``FFMPEG_HOME`` fills ``media.ffmpeg_home`` when the file leaves it unset.
    """
    if path is None:
        config = SpotcutConfig()
    else:
        data = json.loads(Path(path).read_text())
        if not isinstance(data, dict):
            raise ValueError("Config must be a JSON object")

        unknown = sorted(set(data) - {"version", "match", "media", "session"})
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

        media = _section(MediaConfig, data.get("media", {}), "media")
        if media.ffmpeg_home is not None:
            media.ffmpeg_home = Path(media.ffmpeg_home)

        config = SpotcutConfig(
            version=data.get("version", "1"),
            match=_section(MatchConfig, data.get("match", {}), "match"),
            media=media,
            session=_section(SessionConfig, data.get("session", {}), "session"),
        )

    if config.media.ffmpeg_home is None:
        config.media.ffmpeg_home = ffmpeg_home_from_env()
    return config
