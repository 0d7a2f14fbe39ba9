from __future__ import annotations

import sys
from pathlib import Path

import pytest
from hypothesis import settings

ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

settings.register_profile("ci", max_examples=200, deadline=None)


@pytest.fixture
def response_log():
    """Two-channel simulated calibration log (ch1 response, ch2 temperature)."""
    from core.simulated import make_response_log

    return make_response_log()
