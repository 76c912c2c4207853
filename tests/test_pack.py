"""Tests for pack file encoding, decoding and sorted entry maintenance."""

import asyncio
import io
from pathlib import Path

import pytest

from spotcut.pack import (
    InvalidFingerprintError,
    InvalidLineError,
    InvalidNameError,
    InvalidU32Error,
    PackFile,
    load_pack,
    load_pack_async,
    pack_path_for,
    save_pack,
)


def _encode(pack: PackFile) -> str:
    buf = io.StringIO()
    pack.encode(buf)
    return buf.getvalue()


class _BytesWriter:
    def __init__(self):
        self.data = b""
        self.drains = 0

    def write(self, data: bytes) -> None:
        self.data += data

    async def drain(self) -> None:
        self.drains += 1


async def _stream(data: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

class TestEncode:
    def test_big_endian_base64(self):
        pack = PackFile(entries=[("jingle.mp3", [1, 0xFFFFFFFF])])
        assert _encode(pack) == "jingle.mp3:AAAAAf////8=\n"

    def test_every_line_terminated(self):
        pack = PackFile(entries=[("a", [1]), ("b", [2])])
        text = _encode(pack)
        assert text == "a:AAAAAQ==\nb:AAAAAg==\n"

    def test_empty_fingerprint(self):
        assert _encode(PackFile(entries=[("silence.wav", [])])) == "silence.wav:\n"

    def test_empty_pack(self):
        assert _encode(PackFile()) == ""

    def test_name_with_separator_rejected(self):
        with pytest.raises(InvalidNameError):
            _encode(PackFile(entries=[("a:b", [1])]))


class TestDecode:
    def test_basic(self):
        pack = PackFile.decode(io.StringIO("a:AAAAAQ==\nb:AAAAAf////8=\n"))
        assert pack.entries == [("a", [1]), ("b", [1, 0xFFFFFFFF])]

    def test_no_trailing_newline(self):
        pack = PackFile.decode(io.StringIO("a:AAAAAQ==\nb:AAAAAg=="))
        assert pack.entries == [("a", [1]), ("b", [2])]

    def test_crlf_line_endings(self):
        pack = PackFile.decode(io.StringIO("a:AAAAAQ==\r\n", newline=""))
        assert pack.entries == [("a", [1])]

    def test_empty_stream(self):
        assert PackFile.decode(io.StringIO("")).entries == []

    def test_missing_separator_reports_line_index(self):
        text = "a:AAAAAQ==\nb:AAAAAg==\nbroken line\nc:AAAAAw==\n"
        with pytest.raises(InvalidLineError) as exc_info:
            PackFile.decode(io.StringIO(text))
        assert exc_info.value.index == 2

    def test_two_separators(self):
        with pytest.raises(InvalidLineError) as exc_info:
            PackFile.decode(io.StringIO("a:b:AAAAAQ==\n"))
        assert exc_info.value.index == 0

    def test_blank_line_is_invalid(self):
        with pytest.raises(InvalidLineError) as exc_info:
            PackFile.decode(io.StringIO("a:AAAAAQ==\n\n"))
        assert exc_info.value.index == 1

    def test_invalid_base64(self):
        with pytest.raises(InvalidFingerprintError):
            PackFile.decode(io.StringIO("a:!!not base64!!\n"))

    def test_byte_count_not_multiple_of_four(self):
        # "AAAA" decodes to three bytes
        with pytest.raises(InvalidU32Error):
            PackFile.decode(io.StringIO("a:AAAA\n"))


class TestRoundTrip:
    def test_sync(self, make_fingerprint):
        pack = PackFile(entries=[
            ("", []),
            ("Ad Break 01.mp3", make_fingerprint(50)),
            ("jingle-été.flac", make_fingerprint(3)),
            ("max", [0, 0xFFFFFFFF, 0x80000000]),
        ])
        assert PackFile.decode(io.StringIO(_encode(pack))) == pack

    def test_async(self, make_fingerprint):
        pack = PackFile(entries=[("a.mp3", make_fingerprint(20)), ("b.mp3", make_fingerprint(7))])

        async def run():
            writer = _BytesWriter()
            await pack.encode_async(writer)
            decoded = await PackFile.decode_async(await _stream(writer.data))
            return writer, decoded

        writer, decoded = asyncio.run(run())
        assert decoded == pack
        assert writer.data.decode() == _encode(pack)

    def test_async_decode_errors_match_sync(self):
        async def run():
            return await PackFile.decode_async(await _stream(b"a:AAAAAQ==\nnope\n"))

        with pytest.raises(InvalidLineError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.index == 1


# ---------------------------------------------------------------------------
# Sorted maintenance
# ---------------------------------------------------------------------------

class TestSortedEntries:
    def test_insert_keeps_name_order(self):
        pack = PackFile()
        for name in ("c", "a", "b"):
            assert pack.insert(name, [1])
        assert pack.names() == ["a", "b", "c"]

    def test_insert_existing_name_is_refused(self):
        pack = PackFile(entries=[("a", [1])])
        assert pack.insert("a", [2]) is False
        assert pack.entries == [("a", [1])]

    def test_find(self):
        pack = PackFile(entries=[("a", [1]), ("c", [3])])
        assert pack.find("a") == 0
        assert pack.find("c") == 1
        assert pack.find("b") is None
        assert pack.find("z") is None


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestFiles:
    def test_pack_path_for(self):
        assert pack_path_for(Path("/media/ads")) == Path("/media/ads.pck")
        assert pack_path_for(Path("/media/ads.2024")) == Path("/media/ads.pck")

    def test_save_and_load(self, tmp_path: Path):
        path = tmp_path / "ads.pck"
        pack = PackFile(entries=[("a", [1, 2, 3])])
        save_pack(pack, path)
        assert load_pack(path) == pack

    def test_save_rewrites_whole_file(self, tmp_path: Path):
        path = tmp_path / "ads.pck"
        save_pack(PackFile(entries=[("a", [1]), ("b", [2]), ("c", [3])]), path)
        save_pack(PackFile(entries=[("a", [1])]), path)
        assert path.read_text() == "a:AAAAAQ==\n"

    def test_load_async(self, tmp_path: Path):
        path = tmp_path / "ads.pck"
        path.write_text("a:AAAAAQ==\n")
        assert asyncio.run(load_pack_async(path)).entries == [("a", [1])]

    def test_load_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_pack(tmp_path / "missing.pck")
