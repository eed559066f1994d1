"""
App package initializer.

Flags test runs so configuration loading can skip `.env` discovery when the
suite has already pinned its own environment.
"""

from __future__ import annotations

import os
import sys
from loguru import logger


def _under_pytest() -> bool:
    try:
        if "PYTEST_CURRENT_TEST" in os.environ:
            return True
        return any("pytest" in (arg or "") for arg in sys.argv)
    except Exception as e:
        logger.debug(f"app.__init__._under_pytest check failed: {e}")
        return False


if _under_pytest():
    os.environ.setdefault("TEST_MODE", "true")
