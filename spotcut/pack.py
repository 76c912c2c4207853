"""Pack files: the on-disk fingerprint cache of a reference directory.

One line per entry::

    name:base64(big-endian packed 32-bit fingerprint words)

Entries are kept sorted by name so incremental updates can binary-search.
The whole file is rewritten on every save; there is no append mode and no
locking, callers must serialize writers.
"""

import asyncio
import base64
import binascii
import struct
from bisect import bisect_left
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from spotcut.models import SpotcutError

PACK_SUFFIX = ".pck"


class PackError(SpotcutError):
    pass


class InvalidLineError(PackError):
    """A line does not hold exactly one ``name:fingerprint`` pair."""

    def __init__(self, index: int):
        super().__init__(f"Invalid line in pack file, index: {index}")
        self.index = index


class InvalidFingerprintError(PackError):
    """The fingerprint part of a line is not valid base64."""


class InvalidU32Error(PackError):
    """The decoded fingerprint bytes do not split into 32-bit words."""


class InvalidNameError(PackError):
    """An entry name cannot be written to a pack line."""


def pack_path_for(directory: Path) -> Path:
    """Sidecar pack path of a reference directory (``ads/`` -> ``ads.pck``)."""
    return directory.with_suffix(PACK_SUFFIX)


def _decode_words(data: bytes) -> list[int]:
    if len(data) % 4:
        raise InvalidU32Error(
            f"Fingerprint is {len(data)} bytes long, not a multiple of 4"
        )
    return list(struct.unpack(f">{len(data) // 4}I", data))


def _parse_line(line: str, index: int) -> tuple[str, list[int]]:
    parts = line.rstrip("\r\n").split(":")
    if len(parts) != 2:
        raise InvalidLineError(index)
    name, encoded = parts
    try:
        data = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise InvalidFingerprintError(f"Invalid fingerprint at line {index}: {e}") from e
    return name, _decode_words(data)


def _format_line(name: str, fingerprint: list[int]) -> str:
    if any(c in name for c in ":\r\n"):
        raise InvalidNameError(f"Entry name {name!r} contains ':' or a line break")
    data = struct.pack(f">{len(fingerprint)}I", *fingerprint)
    return f"{name}:{base64.b64encode(data).decode('ascii')}\n"


@dataclass
class PackFile:
    """Name-sorted ``(name, fingerprint)`` entries of one reference directory."""

    entries: list[tuple[str, list[int]]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def names(self) -> list[str]:
        return [name for name, _ in self.entries]

    def find(self, name: str) -> int | None:
        """Index of *name* in the pack, or None."""
        i = bisect_left(self.entries, name, key=lambda entry: entry[0])
        if i < len(self.entries) and self.entries[i][0] == name:
            return i
        return None

    def insert(self, name: str, fingerprint: list[int]) -> bool:
        """Insert an entry at its sorted position.

        Returns False, leaving the pack untouched, if *name* is present.
        """
        i = bisect_left(self.entries, name, key=lambda entry: entry[0])
        if i < len(self.entries) and self.entries[i][0] == name:
            return False
        self.entries.insert(i, (name, list(fingerprint)))
        return True

    @classmethod
    def decode(cls, reader: IO[str]) -> "PackFile":
        entries = [_parse_line(line, i) for i, line in enumerate(reader)]
        return cls(entries=entries)

    @classmethod
    async def decode_async(cls, reader) -> "PackFile":
        """Decode from a stream whose ``readline()`` is a coroutine.

        Accepts both byte streams (``asyncio.StreamReader``) and text streams.
        """
        entries = []
        index = 0
        while True:
            line = await reader.readline()
            if not line:
                break
            if isinstance(line, bytes):
                line = line.decode("utf-8")
            entries.append(_parse_line(line, index))
            index += 1
        return cls(entries=entries)

    def encode(self, writer: IO[str]) -> None:
        for name, fingerprint in self.entries:
            writer.write(_format_line(name, fingerprint))

    async def encode_async(self, writer) -> None:
        """Encode to a stream with ``write(bytes)`` and a ``drain()`` coroutine."""
        for name, fingerprint in self.entries:
            writer.write(_format_line(name, fingerprint).encode("utf-8"))
            await writer.drain()


def load_pack(path: Path) -> PackFile:
    with open(path, encoding="utf-8", newline="") as f:
        return PackFile.decode(f)


def save_pack(pack: PackFile, path: Path) -> None:
    """Rewrite the pack file at *path* in full."""
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        pack.encode(f)


async def load_pack_async(path: Path) -> PackFile:
    return await asyncio.to_thread(load_pack, path)


async def save_pack_async(pack: PackFile, path: Path) -> None:
    await asyncio.to_thread(save_pack, pack, path)
