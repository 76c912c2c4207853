"""Thin CLI entry point: parses arguments and calls the updater or the engine."""

import argparse
import asyncio
import sys
import tempfile
from pathlib import Path

from spotcut import ffutil
from spotcut.analyzers.fingerprint import check_fpcalc
from spotcut.config import load_config
from spotcut.engine import process
from spotcut.log import setup_logging
from spotcut.models import SpotcutError
from spotcut.progress import Progress
from spotcut.timecode import format_duration
from spotcut.updater import update_fingerprints


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spotcut",
        description="spotcut: find recorded ad blocks and jingles by audio fingerprint and pick cut points.",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to a JSON config file")
    parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    sub = parser.add_subparsers(dest="command")

    update = sub.add_parser(
        "update-fingerprints", help="Fingerprint new files of reference directories"
    )
    update.add_argument("input", nargs="+", type=Path, help="Directories with reference media")

    cut = sub.add_parser("cut", help="Match a media file and edit its cue list")
    cut.add_argument("input", type=Path, help="Input media to analyze")
    cut.add_argument(
        "--include", "-i", type=Path, action="append", default=[],
        help="Inclusion pack file (repeatable)",
    )
    cut.add_argument(
        "--exclude", "-e", type=Path, action="append", default=[],
        help="Exclusion pack file (repeatable)",
    )
    cut.add_argument("--scratch", type=Path, default=None, help="Directory for preview frames")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    setup_logging(args.log_level, args.log_file)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: cannot load config: {e}", file=sys.stderr)
        sys.exit(1)

    progress = Progress(enabled=False if args.no_progress else None)

    try:
        if args.command == "update-fingerprints":
            ffutil.check_ffmpeg(config.media.ffmpeg_home)
            check_fpcalc(config.media)
            with progress:
                results = asyncio.run(update_fingerprints(args.input, config.media, progress))
            for r in results:
                status = "" if r.saved else "  (NOT SAVED)"
                print(
                    f"{r.pack_path}: {r.added} added, {r.skipped} already known, "
                    f"{r.failed} failed{status}"
                )
            return

        scratch = args.scratch or Path(tempfile.mkdtemp(prefix="spotcut_"))
        with progress:
            result = process(
                args.input,
                args.include,
                args.exclude,
                config,
                scratch,
                progress,
                stdin=sys.stdin,
                stdout=sys.stdout,
            )
    except (SpotcutError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    print()
    print(f"Final cues for {args.input} ({format_duration(result.duration)}):")
    for cue in result.cues:
        print(f"  {format_duration(cue)}  {cue:.3f}")
