import sys
from pathlib import Path

import numpy as np
import pytest


def pytest_configure() -> None:
    """Make `src/` importable in tests without requiring installation."""
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    sys.path.insert(0, str(src_dir))


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(42)
