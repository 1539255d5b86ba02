"""Shared fixtures for blockbasis tests."""

import numpy as np
import pytest


@pytest.fixture
def flat_image() -> np.ndarray:
    """16x16 single-color image."""
    img = np.empty((16, 16, 3), dtype=np.uint8)
    img[...] = (200, 100, 50)
    return img


@pytest.fixture
def gradient_image() -> np.ndarray:
    """Smooth 24x40 gradient with a different slope per channel."""
    y, x = np.mgrid[0:24, 0:40]
    img = np.stack([x * 6, y * 10, (x + y) * 4], axis=-1)
    return img.astype(np.uint8)


@pytest.fixture
def random_image() -> np.ndarray:
    """Seeded 20x28 noise image (not a multiple of any block size)."""
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, (20, 28, 3), dtype=np.uint8)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Keep user and working-directory config files out of every test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.delenv("BLOCKBASIS_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return tmp_path
