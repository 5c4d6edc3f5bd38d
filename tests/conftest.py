import os
import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

from helpers import mark_by_dir

load_dotenv()


@pytest.fixture(autouse=True)
def _ensure_src_on_syspath():
    # Add project src/ to sys.path for src-layout imports
    root = Path(__file__).resolve().parents[1]
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))
    yield


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    # settings come from the environment; keep the developer's own out of tests
    for key in list(os.environ):
        if key.startswith("APPRELEASE_EXPORTER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("APPRELEASE_EXPORTER_CACHE__PATH", str(tmp_path / "cve-cache"))
    yield


TESTS = Path(__file__).parent

def pytest_collection_modifyitems(config, items):
    # Mark tests by directory structure
    mark_by_dir(items, TESTS / "apprelease_exporter" / "core", pytest.mark.unit)
    mark_by_dir(items, TESTS / "apprelease_exporter" / "infra", pytest.mark.integration)
    mark_by_dir(items, TESTS / "apprelease_exporter" / "app", pytest.mark.e2e)
    mark_by_dir(items, TESTS / "apprelease_exporter" / "shared", pytest.mark.unit)
