"""Shared test fixtures."""

from pathlib import Path

import numpy as np
import pytest

from spotcut.progress import Progress

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "sample_config.json"


@pytest.fixture
def progress() -> Progress:
    return Progress(enabled=False)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def make_fingerprint(rng):
    """Random 32-bit fingerprint words of a given length."""
    def make(size: int) -> list[int]:
        return rng.integers(0, 2**32, size=size, dtype=np.uint64).tolist()
    return make
