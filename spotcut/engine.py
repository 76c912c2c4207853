"""Orchestrator: matches an input against pack files and runs the cue session."""

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Sequence

from spotcut import ffutil
from spotcut.analyzers.fingerprint import check_fpcalc, fingerprint
from spotcut.analyzers.matcher import MatchError, match_fingerprints
from spotcut.config import MatchConfig, SpotcutConfig
from spotcut.editors.cues import CutSession
from spotcut.models import SegmentMatch
from spotcut.pack import PackError, load_pack_async
from spotcut.progress import Progress

logger = logging.getLogger(__name__)

Entries = list[tuple[str, list[int]]]


@dataclass
class CutResult:
    inclusion: list[SegmentMatch] = field(default_factory=list)
    exclusion: list[SegmentMatch] = field(default_factory=list)
    cues: list[float] = field(default_factory=list)
    duration: float = 0.0


async def _load_entries(path: Path, kind: str, bar) -> Entries:
    bar.set_description(f"loading {kind} pack {path.name}")
    try:
        pack = await load_pack_async(path)
    except (OSError, PackError, UnicodeDecodeError) as e:
        logger.error("failed to load %s pack %s: %s", kind, path, e)
        return []
    finally:
        bar.update(1)
    return pack.entries


def _match_entry(
    input_fp: Sequence[int], name: str, fp: list[int], config: MatchConfig
) -> list[SegmentMatch]:
    try:
        segments = match_fingerprints(input_fp, fp, config)
    except MatchError as e:
        logger.error("matching error (fingerprint %s): %s", name, e)
        return []
    return [SegmentMatch(source_name=name, segment=seg) for seg in segments]


async def _match_all(
    input_fp: tuple[int, ...],
    entries: Entries,
    config: MatchConfig,
    executor: Executor,
    bar,
) -> list[SegmentMatch]:
    loop = asyncio.get_running_loop()

    async def run(name: str, fp: list[int]) -> list[SegmentMatch]:
        matches = await loop.run_in_executor(executor, _match_entry, input_fp, name, fp, config)
        bar.update(1)
        return matches

    per_entry = await asyncio.gather(*(run(name, fp) for name, fp in entries))
    matches = [m for entry_matches in per_entry for m in entry_matches]
    matches.sort(key=lambda m: m.segment.score)
    return matches


async def cut_matches(
    input_path: Path,
    include: list[Path],
    exclude: list[Path],
    config: SpotcutConfig,
    progress: Progress,
    executor: Executor | None = None,
) -> tuple[list[SegmentMatch], list[SegmentMatch]]:
    """Match *input_path* against every entry of the inclusion/exclusion packs.

    Returns both match lists sorted ascending by score. Packs that fail to
    load and entries that fail to match are logged and left out; failing to
    fingerprint the input itself raises.
    """
    pack_bar = progress.bar(total=len(include) + len(exclude), desc="loading packs", unit="pack")
    input_words, include_entries, exclude_entries = await asyncio.gather(
        asyncio.to_thread(fingerprint, input_path, config.media),
        asyncio.gather(*(_load_entries(p, "inclusion", pack_bar) for p in include)),
        asyncio.gather(*(_load_entries(p, "exclusion", pack_bar) for p in exclude)),
    )
    progress.remove(pack_bar)

    # Shared by every matching thread, never mutated
    input_fp = tuple(input_words)
    inc = [entry for entries in include_entries for entry in entries]
    exc = [entry for entries in exclude_entries for entry in entries]
    logger.info(
        "matching %s (%d frames) against %d inclusion and %d exclusion fingerprints",
        input_path, len(input_fp), len(inc), len(exc),
    )

    match_bar = progress.bar(total=len(inc) + len(exc), desc="matching", unit="fp")
    own_executor = executor is None
    if own_executor:
        executor = ThreadPoolExecutor(thread_name_prefix="spotcut-match")
    try:
        inclusion, exclusion = await asyncio.gather(
            _match_all(input_fp, inc, config.match, executor, match_bar),
            _match_all(input_fp, exc, config.match, executor, match_bar),
        )
    finally:
        if own_executor:
            executor.shutdown(wait=True)
        progress.remove(match_bar)

    return inclusion, exclusion


def process(
    input_path: Path,
    include: list[Path],
    exclude: list[Path],
    config: SpotcutConfig,
    scratch_dir: Path,
    progress: Progress,
    stdin: IO[str],
    stdout: IO[str],
) -> CutResult:
    """Match the input, print the results and hand over to the cue session."""
    ffutil.check_ffmpeg(config.media.ffmpeg_home)
    check_fpcalc(config.media)

    inclusion, exclusion = asyncio.run(
        cut_matches(input_path, include, exclude, config, progress)
    )
    total = ffutil.duration(input_path, config.media.ffmpeg_home)

    session = CutSession(
        input_path=input_path,
        duration=total,
        inclusion=inclusion,
        exclusion=exclusion,
        scratch_dir=scratch_dir,
        config=config,
        stdin=stdin,
        stdout=stdout,
    )
    session.print_matches()
    cues = session.run()
    return CutResult(inclusion=inclusion, exclusion=exclusion, cues=cues, duration=total)
