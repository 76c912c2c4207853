"""Interactive cue editor: turns matches into an ordered list of cut points."""

import logging
import shutil
import sys
from bisect import insort
from pathlib import Path
from typing import IO

from spotcut import ffutil
from spotcut.analyzers.correlation import chunk_samples, locate_reference, make_overlap_samples
from spotcut.config import MatchConfig, SpotcutConfig
from spotcut.models import SegmentMatch, StreamRange, TimeRange
from spotcut.timecode import format_duration, parse_time

logger = logging.getLogger(__name__)

PROMPT = "spotcut> "

HELP_TEXT = """\
Commands:
  matches                      show inclusion and exclusion matches
  cues                         show the cue list
  add <time>                   add a cue (seconds or [[hh:]mm:]ss[.frac])
  remove|rem|del|delete <n>    remove cue number n
  inspect <time> [mode]        extract preview frames around a time
                               mode: key|keyframe, frame|all, or seconds
                               between frames (default: one per minute)
  keyframes <time>             list keyframes around a time
  refine <n> <reference>       move cue n onto the start of a reference clip
  help                         show this text
  exit|quit                    leave the session"""


class UsageError(ValueError):
    """Bad command arguments; reported to the operator, never fatal."""


def format_matches(config: MatchConfig, matches: list[SegmentMatch], title: str = "") -> str:
    """Render matches as a fixed-width table."""
    header = f"{'Name':40} | {'Start':>11} | {'End':>11} | {'Duration':>11} | Score"
    lines = [title] if title else []
    lines.append(header)
    lines.append("-" * len(header))
    for match in matches:
        seg = match.segment
        lines.append(
            f"{match.source_name[:40]:40} | "
            f"{format_duration(seg.start1(config)):>11} | "
            f"{format_duration(seg.end1(config)):>11} | "
            f"{format_duration(seg.duration(config)):>11} | "
            f"{seg.score:.3f}"
        )
    return "\n".join(lines)


def _time_arg(args: list[str], usage: str) -> float:
    if not args:
        raise UsageError(f"usage: {usage}")
    try:
        return parse_time(args[0])
    except ValueError as e:
        raise UsageError(str(e)) from None


class CutSession:
    """Line-oriented command loop over a sorted cue list.

    The cue list starts as ``[0, duration]`` and is only ever modified with
    sorted insertion and index removal. Nothing is persisted: :meth:`run`
    returns the final list to the caller.
    """

    def __init__(
        self,
        input_path: Path,
        duration: float,
        inclusion: list[SegmentMatch],
        exclusion: list[SegmentMatch],
        scratch_dir: Path,
        config: SpotcutConfig,
        stdin: IO[str] | None = None,
        stdout: IO[str] | None = None,
    ):
        self.input_path = input_path
        self.duration = duration
        self.inclusion = inclusion
        self.exclusion = exclusion
        self.scratch_dir = scratch_dir
        self.config = config
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.cues: list[float] = [0.0, duration]
        self._commands = {
            "matches": self.show_matches,
            "cues": self.show_cues,
            "add": self.add,
            "remove": self.remove,
            "rem": self.remove,
            "del": self.remove,
            "delete": self.remove,
            "inspect": self.inspect,
            "keyframes": self.keyframes,
            "refine": self.refine,
            "help": self.help,
        }

    def _print(self, *args) -> None:
        print(*args, file=self.stdout)

    def run(self) -> list[float]:
        """Read commands until EOF or exit; return the final cue list.

        A failing frame extraction in ``inspect`` propagates and ends the
        session, every other problem is reported and the loop continues.
        """
        while True:
            self.stdout.write(PROMPT)
            self.stdout.flush()
            line = self.stdin.readline()
            if not line:
                self._print()
                break
            if not self.handle(line):
                break
        return list(self.cues)

    def handle(self, line: str) -> bool:
        """Execute one command line. Returns False when the session should end."""
        parts = line.split()
        if not parts:
            return True
        command, args = parts[0].lower(), parts[1:]
        if command in ("exit", "quit"):
            return False

        handler = self._commands.get(command)
        if handler is None:
            self._print(f"error: unknown command '{command}', type 'help' for a list")
            return True
        try:
            handler(args)
        except UsageError as e:
            self._print(f"error: {e}")
        return True

    def help(self, args: list[str]) -> None:
        self._print(HELP_TEXT)

    def show_matches(self, args: list[str]) -> None:
        self.print_matches()

    def print_matches(self) -> None:
        self._print(format_matches(self.config.match, self.inclusion, "Inclusion matches"))
        self._print()
        self._print(format_matches(self.config.match, self.exclusion, "Exclusion matches"))

    def show_cues(self, args: list[str]) -> None:
        for i, cue in enumerate(self.cues):
            self._print(f"{i:>3}  {format_duration(cue):>12}  {cue:.3f}")

    def add(self, args: list[str]) -> None:
        time = _time_arg(args, "add <time>")
        insort(self.cues, time)
        self._print(f"added cue at {format_duration(time)}")

    def _index_arg(self, args: list[str], usage: str) -> int:
        if not args:
            raise UsageError(f"usage: {usage}")
        try:
            index = int(args[0])
        except ValueError:
            raise UsageError(f"invalid cue index: {args[0]!r}") from None
        if not 0 <= index < len(self.cues):
            raise UsageError(f"no cue at index {index} (0..{len(self.cues) - 1})")
        return index

    def remove(self, args: list[str]) -> None:
        index = self._index_arg(args, "remove <index>")
        cue = self.cues.pop(index)
        self._print(f"removed cue {index} at {format_duration(cue)}")

    def preview_range(self, time: float, mode: str | None) -> StreamRange:
        """Frame window and sampling policy of ``inspect``, clamped to the file."""
        session = self.config.session
        if mode is None:
            half, make = session.default_half_width, "interval"
            interval = session.default_interval
        elif mode in ("key", "keyframe"):
            half, make = session.keyframe_half_width, "key"
        elif mode in ("frame", "all"):
            half, make = session.frame_half_width, "all"
        else:
            try:
                interval = float(mode)
            except ValueError:
                raise UsageError(f"unknown inspect mode: {mode!r}") from None
            if not interval > 0:
                raise UsageError(f"frame interval must be positive, got {mode}")
            half, make = session.interval_factor * interval, "interval"

        if time > self.duration:
            raise UsageError(
                f"{format_duration(time)} is past the end of the file ({format_duration(self.duration)})"
            )

        window = TimeRange(start=time - half, end=time + half).clamp(0.0, self.duration)
        if make == "key":
            return StreamRange.keyframes_between(window.start, window.end)
        if make == "all":
            return StreamRange.frames_between(window.start, window.end)
        return StreamRange.every_n_seconds(window.start, window.end, interval)

    def inspect(self, args: list[str]) -> None:
        time = _time_arg(args, "inspect <time> [mode]")
        stream_range = self.preview_range(time, args[1].lower() if len(args) > 1 else None)

        if self.scratch_dir.exists():
            shutil.rmtree(self.scratch_dir)
        self.scratch_dir.mkdir(parents=True)

        logger.info("extracting frames of %s: %s", self.input_path, stream_range)
        ffutil.extract_frames(
            self.input_path, self.scratch_dir, stream_range, self.config.media.ffmpeg_home
        )
        count = sum(1 for _ in self.scratch_dir.glob("*.jpg"))
        self._print(
            f"{count} frame(s) from {format_duration(stream_range.pts_start)} "
            f"to {format_duration(stream_range.pts_end)} written to {self.scratch_dir}"
        )

    def keyframes(self, args: list[str]) -> None:
        time = _time_arg(args, "keyframes <time>")
        half = self.config.session.keyframe_half_width
        try:
            timestamps = ffutil.keyframe_timestamps(
                self.input_path, self.config.media.ffmpeg_home
            )
        except ffutil.CommandError as e:
            raise UsageError(f"cannot read keyframes: {e}") from e

        nearby = [t for t in timestamps if time - half <= t <= time + half]
        if not nearby:
            self._print(f"no keyframes within {half:g}s of {format_duration(time)}")
        for t in nearby:
            self._print(f"{format_duration(t):>12}  {t:.3f}  ({t - time:+.3f})")

    def refine(self, args: list[str]) -> None:
        if len(args) < 2:
            raise UsageError("usage: refine <index> <reference-file>")
        index = self._index_arg(args, "refine <index> <reference-file>")
        reference_path = Path(" ".join(args[1:]))
        sample_rate = self.config.session.refine_sample_rate
        ffmpeg_home = self.config.media.ffmpeg_home

        try:
            reference = ffutil.read_samples(reference_path, sample_rate, ffmpeg_home=ffmpeg_home)
            if not len(reference):
                raise UsageError(f"no audio decoded from {reference_path}")
            ref_len = len(reference) / sample_rate
            cue = self.cues[index]
            window = TimeRange(start=cue - ref_len, end=cue + 2 * ref_len).clamp(0.0, self.duration)
            samples = ffutil.read_samples(
                self.input_path,
                sample_rate,
                start=window.start,
                length=window.end - window.start,
                ffmpeg_home=ffmpeg_home,
            )
        except ffutil.CommandError as e:
            raise UsageError(f"cannot decode audio: {e}") from e

        chunk_len = 2 * len(reference)
        position = locate_reference(
            make_overlap_samples(chunk_samples(samples, chunk_len)),
            reference,
            chunk_len // 2,
        )
        if position is None:
            self._print("no alignment found, cue unchanged")
            return

        refined = min(max(window.start + position / sample_rate, 0.0), self.duration)
        del self.cues[index]
        insort(self.cues, refined)
        self._print(
            f"cue {format_duration(cue)} moved to {format_duration(refined)} "
            f"({refined - cue:+.3f}s)"
        )
