"""Pytest configuration.

Makes the repository root (for ``tests._fakes``) and ``client/`` (for the
``together`` package) importable when pytest runs without an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
for path in (ROOT, ROOT / "client"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
