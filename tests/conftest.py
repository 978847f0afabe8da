import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path for test imports.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from streamsearch.config import StreamSearchConfig  # noqa: E402
from tests.fakes import ScriptedTransport  # noqa: E402


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def fast_config() -> StreamSearchConfig:
    return StreamSearchConfig(
        base_url="http://test",
        reveal_initial_delay_s=0.0,
        reveal_stagger_s=0.0,
    )
