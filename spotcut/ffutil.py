"""FFmpeg/ffprobe subprocess helpers."""

import json
import shutil
import subprocess
from pathlib import Path

import numpy as np

from spotcut.models import FingerprintError, ProbeResult, SpotcutError, StreamRange


class CommandError(SpotcutError):
    """An external tool could not be run or its output not understood."""


class FFmpegNotFoundError(CommandError):
    pass


class ProcessFailedError(CommandError):
    def __init__(self, program: str, returncode: int, stderr: str = ""):
        detail = f": {stderr.strip()[-500:]}" if stderr and stderr.strip() else ""
        super().__init__(f"{program} failed (rc={returncode}){detail}")
        self.program = program
        self.returncode = returncode


class ParsingError(CommandError):
    pass


class NoAudioStreamError(FingerprintError):
    """Raised when the input file has no audio stream."""
    pass


def tool_path(name: str, ffmpeg_home: Path | None = None) -> str:
    """Executable for *name*, taken from ``<ffmpeg_home>/bin`` when given."""
    if ffmpeg_home is None:
        return name
    return str(Path(ffmpeg_home) / "bin" / name)


def check_ffmpeg(ffmpeg_home: Path | None = None) -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe cannot be found."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(tool_path(cmd, ffmpeg_home)) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def run_tool(cmd: list[str], text: bool = True) -> subprocess.CompletedProcess:
    """Run an external tool, mapping failures to CommandError."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=text)
    except FileNotFoundError as e:
        raise FFmpegNotFoundError(f"{cmd[0]} not found") from e

    if result.returncode != 0:
        stderr = result.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode(errors="replace")
        raise ProcessFailedError(Path(cmd[0]).name, result.returncode, stderr or "")
    return result


def probe(input_path: Path, ffmpeg_home: Path | None = None) -> ProbeResult:
    """Extract audio metadata of the first audio stream via ffprobe."""
    cmd = [
        tool_path("ffprobe", ffmpeg_home),
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = run_tool(cmd)
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ParsingError(f"probe - invalid ffprobe output for {input_path}: {e}") from e
    if not isinstance(data, dict):
        raise ParsingError(f"probe - unexpected ffprobe output for {input_path}")

    audio_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "audio"), None
    )
    if audio_stream is None:
        raise NoAudioStreamError(f"No audio stream found in {input_path}")

    try:
        sample_rate = int(audio_stream.get("sample_rate") or 0) or None
        channels = int(audio_stream.get("channels") or 0)
        total = float(data.get("format", {}).get("duration") or 0.0)
    except (TypeError, ValueError) as e:
        raise ParsingError(f"probe - invalid stream values for {input_path}: {e}") from e

    return ProbeResult(
        duration=total,
        sample_rate=sample_rate,
        channels=channels,
        codec_audio=audio_stream.get("codec_name", ""),
    )


def duration(input_path: Path, ffmpeg_home: Path | None = None) -> float:
    """Total duration of a media file in seconds."""
    cmd = [
        tool_path("ffprobe", ffmpeg_home),
        "-i", str(input_path),
        "-show_entries", "format=duration",
        "-v", "quiet",
        "-of", "csv=p=0",
    ]
    result = run_tool(cmd)
    try:
        return float(result.stdout.strip())
    except ValueError as e:
        raise ParsingError(f"duration - cannot parse {result.stdout.strip()!r}") from e


def parse_keyframes(stdout: str) -> list[float]:
    """Parse ffprobe ``frame=pts_time`` csv output into sorted timestamps."""
    keyframes: list[float] = []
    for line in stdout.splitlines():
        value = line.strip().rstrip(",")
        if not value:
            continue
        try:
            keyframes.append(float(value))
        except ValueError as e:
            raise ParsingError(f"keyframes - cannot parse {value!r}") from e
    keyframes.sort()
    return keyframes


def keyframe_timestamps(input_path: Path, ffmpeg_home: Path | None = None) -> list[float]:
    """Timestamps of the keyframes of the first video stream, ascending."""
    cmd = [
        tool_path("ffprobe", ffmpeg_home),
        "-hide_banner",
        "-loglevel", "error",
        "-skip_frame", "nokey",
        "-select_streams", "v:0",
        "-show_entries", "frame=pts_time",
        "-of", "csv=p=0",
        str(input_path),
    ]
    return parse_keyframes(run_tool(cmd).stdout)


def extract_frames(
    input_path: Path,
    output_dir: Path,
    stream_range: StreamRange,
    ffmpeg_home: Path | None = None,
) -> None:
    """Dump frames of a time window to ``output_dir/<pts in ms>.jpg``."""
    cmd = [tool_path("ffmpeg", ffmpeg_home)]
    if stream_range.pts_start is not None:
        cmd += ["-ss", f"{stream_range.pts_start:.4f}"]
    if stream_range.pts_end is not None:
        cmd += ["-to", f"{stream_range.pts_end:.4f}"]
    if stream_range.skip_frames is not None:
        cmd += ["-skip_frame", stream_range.skip_frames]
    cmd += ["-hide_banner", "-loglevel", "error", "-copyts", "-i", str(input_path)]
    if stream_range.frame_rate is not None:
        cmd += ["-vf", f"fps={stream_range.frame_rate:.3f}"]
    cmd += [
        "-enc_time_base", "1/1000",
        "-vsync", "0",
        "-f", "image2",
        "-frame_pts", "1",
        str(Path(output_dir) / "%09d.jpg"),
    ]
    run_tool(cmd)


def read_samples(
    input_path: Path,
    sample_rate: int,
    start: float | None = None,
    length: float | None = None,
    ffmpeg_home: Path | None = None,
) -> np.ndarray:
    """Decode mono float32 samples of an optional time window."""
    cmd = [tool_path("ffmpeg", ffmpeg_home), "-hide_banner", "-loglevel", "error"]
    if start is not None:
        cmd += ["-ss", f"{start:.4f}"]
    cmd += ["-i", str(input_path)]
    if length is not None:
        cmd += ["-t", f"{length:.4f}"]
    cmd += [
        "-vn", "-dn",
        "-f", "f32le",
        "-ar", str(sample_rate),
        "-ac", "1",
        "-c:a", "pcm_f32le",
        "pipe:1",
    ]
    result = run_tool(cmd, text=False)
    data = result.stdout or b""
    usable = len(data) - len(data) % 4
    return np.frombuffer(data[:usable], dtype="<f4").astype(np.float32)
