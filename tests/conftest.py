import pytest

from tests.fakes import LOGGED_IN_PROBE, FakeLauncher


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher(probe=LOGGED_IN_PROBE)
