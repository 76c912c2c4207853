"""Incremental fingerprinting of reference directories into pack files."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from spotcut.analyzers.fingerprint import fingerprint
from spotcut.config import MediaConfig
from spotcut.models import SpotcutError
from spotcut.pack import PackError, PackFile, load_pack_async, pack_path_for, save_pack_async
from spotcut.progress import Progress, shrink

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """What one update pass did to a directory's pack file."""

    pack_path: Path
    added: int = 0
    skipped: int = 0
    failed: int = 0
    saved: bool = False


def list_files(directory: Path) -> list[Path]:
    """Regular files directly inside *directory*, sorted by name."""
    return sorted(p for p in directory.iterdir() if p.is_file())


async def _list_files(directory: Path) -> list[Path]:
    try:
        return await asyncio.to_thread(list_files, directory)
    except OSError as e:
        logger.error("failed to list files in directory %s: %s", directory, e)
        return []


async def _load_existing(pack_path: Path) -> PackFile:
    if not await asyncio.to_thread(pack_path.exists):
        return PackFile()
    try:
        return await load_pack_async(pack_path)
    except (OSError, PackError, UnicodeDecodeError) as e:
        logger.error("failed to read pack file %s, starting from scratch: %s", pack_path, e)
        return PackFile()


async def update_fingerprints(
    inputs: list[Path],
    config: MediaConfig,
    progress: Progress,
) -> list[UpdateResult]:
    """Fingerprint every file not yet present in its directory's pack file.

    Listing and pack loading run concurrently for all directories; files are
    then fingerprinted one after the other. Failures are logged and skip the
    affected file or directory. Entries of files that disappeared from a
    directory are kept in its pack.
    """
    directories = [Path(d).absolute() for d in inputs]
    listings, packs = await asyncio.gather(
        asyncio.gather(*(_list_files(d) for d in directories)),
        asyncio.gather(*(_load_existing(pack_path_for(d)) for d in directories if d.name)),
    )
    packs = iter(packs)

    bar = progress.bar(total=sum(len(files) for files in listings), unit="file")
    results: list[UpdateResult] = []

    for directory, files in zip(directories, listings):
        if not directory.name:
            logger.warning("cannot derive a pack file for %s, ignoring it", directory)
            shrink(bar, len(files))
            continue
        pack = next(packs)
        if not files:
            continue

        pack_path = pack_path_for(directory)
        result = UpdateResult(pack_path=pack_path)
        bar.set_description(f"visiting {directory.name}")

        for file in files:
            name = file.name
            if pack.find(name) is not None:
                logger.info("skipping %s, fingerprint found in pack file", name)
                result.skipped += 1
                shrink(bar)
                continue

            bar.set_description(f"fingerprinting {name}")
            try:
                words = await asyncio.to_thread(fingerprint, file, config)
            except (SpotcutError, OSError) as e:
                logger.error("failed to calculate fingerprint for %s: %s", file, e)
                result.failed += 1
            else:
                pack.insert(name, words)
                result.added += 1
                logger.info("fingerprint added for %s", name)
            bar.update(1)

        try:
            await save_pack_async(pack, pack_path)
            result.saved = True
        except (OSError, PackError) as e:
            logger.error("failed to write pack file %s: %s", pack_path, e)
        results.append(result)

    progress.remove(bar)
    return results
