"""
App isolation for the process-manager API tests.

The API module imports `app.*` from process-manager/, and the domain tests
under tests/process_manager import the same package names. Cached `app.*`
entries are dropped before each file here is collected and again before
each test, so every test gets a freshly imported FastAPI app with no
dependency overrides left over from a previous test.
"""

import sys
from pathlib import Path

import pytest

TOOL_DIR = str(Path(__file__).resolve().parent.parent.parent / "process-manager")


def _forget_app_modules():
    for key in list(sys.modules.keys()):
        if key == "app" or key.startswith("app."):
            del sys.modules[key]


def pytest_collect_file(parent, file_path):
    """Clear cached app.* modules before every test file is collected."""
    if file_path.suffix == ".py" and file_path.name.startswith("test_"):
        _forget_app_modules()
    return None


@pytest.fixture(autouse=True)
def _isolate_app(tmp_config_dir):
    """Fresh `app` package and an empty config dir for every API test."""
    sys.path.insert(0, TOOL_DIR)
    _forget_app_modules()

    yield

    try:
        sys.path.remove(TOOL_DIR)
    except ValueError:
        pass
