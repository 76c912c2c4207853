"""Tests for config loading and validation."""

import json
from pathlib import Path

import pytest

from spotcut.config import (
    MatchConfig,
    MediaConfig,
    SessionConfig,
    SpotcutConfig,
    load_config,
)


class TestDefaults:
    def test_match_defaults(self):
        cfg = MatchConfig()
        assert cfg.item_duration == pytest.approx(0.1238, abs=1e-4)
        assert cfg.align_bits == 12
        assert cfg.match_threshold == 10.0

    def test_media_defaults(self):
        cfg = MediaConfig()
        assert cfg.ffmpeg_home is None
        assert cfg.fpcalc == "fpcalc"
        assert cfg.fpcalc_length == 0

    def test_session_defaults(self):
        cfg = SessionConfig()
        assert cfg.default_half_width == 1200.0
        assert cfg.default_interval == 60.0
        assert cfg.keyframe_half_width == 20.0
        assert cfg.frame_half_width == 5.0


class TestLoadConfig:
    def test_none_gives_defaults(self, monkeypatch):
        monkeypatch.delenv("FFMPEG_HOME", raising=False)
        assert load_config(None) == SpotcutConfig()

    def test_load_sample(self, sample_config_path: Path):
        cfg = load_config(sample_config_path)
        assert cfg.version == "1"
        assert cfg.match.match_threshold == 8.0
        assert cfg.match.min_segment_frames == 24
        assert cfg.match.align_bits == 12
        assert cfg.media.ffmpeg_home == Path("/opt/ffmpeg")
        assert cfg.media.fpcalc == "/usr/local/bin/fpcalc"
        assert cfg.session.keyframe_half_width == 30.0
        assert cfg.session.frame_half_width == 5.0

    def test_ffmpeg_home_from_env(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("FFMPEG_HOME", "/usr/local/ffmpeg")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"match": {}}))
        assert load_config(path).media.ffmpeg_home == Path("/usr/local/ffmpeg")
        assert load_config(None).media.ffmpeg_home == Path("/usr/local/ffmpeg")

    def test_file_overrides_env(self, sample_config_path: Path, monkeypatch):
        monkeypatch.setenv("FFMPEG_HOME", "/usr/local/ffmpeg")
        assert load_config(sample_config_path).media.ffmpeg_home == Path("/opt/ffmpeg")

    def test_unknown_top_level_key(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"output": "x.mp4"}))
        with pytest.raises(ValueError, match="Unknown config keys: output"):
            load_config(path)

    def test_unknown_section_key(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"match": {"threshold": 3}}))
        with pytest.raises(ValueError, match="section 'match'"):
            load_config(path)

    def test_section_must_be_object(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"session": [1, 2]}))
        with pytest.raises(ValueError, match="must be an object"):
            load_config(path)

    def test_top_level_must_be_object(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            load_config(path)

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            load_config(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.json")
