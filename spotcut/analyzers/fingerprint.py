"""Audio fingerprinting through Chromaprint's ``fpcalc``."""

import json
import logging
import shutil
from pathlib import Path

from spotcut import ffutil
from spotcut.config import MediaConfig
from spotcut.models import FingerprintError

logger = logging.getLogger(__name__)


class MissingSampleRateError(FingerprintError):
    """The audio stream does not report a sample rate."""


class DecodeError(FingerprintError):
    """fpcalc could not decode the audio or returned no fingerprint."""


def check_fpcalc(config: MediaConfig) -> None:
    if shutil.which(config.fpcalc) is None:
        raise ffutil.FFmpegNotFoundError(f"{config.fpcalc} not found on PATH")


def parse_fpcalc_output(stdout: str) -> list[int]:
    """Extract the raw fingerprint words from ``fpcalc -raw -json`` output."""
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid fpcalc output: {e}") from e

    raw = data.get("fingerprint") if isinstance(data, dict) else None
    if isinstance(raw, str):
        raw = [x for x in raw.split(",") if x.strip()]
    if not raw:
        raise DecodeError("fpcalc returned an empty fingerprint")

    try:
        # Older fpcalc builds print signed words
        return [int(x) & 0xFFFFFFFF for x in raw]
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Invalid fingerprint word in fpcalc output: {e}") from e


def fingerprint(input_path: Path, config: MediaConfig) -> list[int]:
    """Compute the Chromaprint fingerprint of the audio in *input_path*."""
    probe = ffutil.probe(input_path, config.ffmpeg_home)
    if probe.sample_rate is None:
        raise MissingSampleRateError(f"No sample rate reported for {input_path}")

    cmd = [
        config.fpcalc,
        "-raw",
        "-json",
        "-length", str(config.fpcalc_length),
        str(input_path),
    ]
    try:
        result = ffutil.run_tool(cmd)
    except ffutil.ProcessFailedError as e:
        raise DecodeError(f"Failed to decode {input_path}: {e}") from e

    words = parse_fpcalc_output(result.stdout)
    logger.debug("fingerprinted %s: %d frames", input_path, len(words))
    return words
