import shutil
from pathlib import Path

import pytest

from adventure_engine.storage import Storage

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data():
    """Start every test from an empty data-tests/games/ directory."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    Storage(TEST_DATA_DIR)
    yield
    # data-tests/ is kept after the run for inspection
