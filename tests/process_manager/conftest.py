"""Put the process-manager tool directory on sys.path so tests can import `app.*`."""

import sys
from pathlib import Path

_TOOL_DIR = str(Path(__file__).resolve().parent.parent.parent / "process-manager")

if _TOOL_DIR not in sys.path:
    sys.path.insert(0, _TOOL_DIR)
