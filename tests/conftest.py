"""
Test bootstrap:
- Make tests/helpers importable
- Provide a client wired to an in-memory transport and a recording backoff
"""
import sys
import pathlib
import pytest

TESTS_DIR = pathlib.Path(__file__).parent

if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from helpers import MockTransport  # noqa: E402

from firestore_client import ClientConfig, ExponentialBackoff, Firestore  # noqa: E402


@pytest.fixture
def transport():
    """Provide a scripted in-memory transport."""
    return MockTransport()


@pytest.fixture
def sleeps():
    """Delays requested from the backoff, in order."""
    return []


@pytest.fixture
def backoff_factory(sleeps):
    """Backoff without jitter that records delays instead of sleeping."""
    async def fake_sleep(delay):
        sleeps.append(delay)

    def factory():
        return ExponentialBackoff(
            initial_delay=1.0,
            max_delay=60.0,
            factor=1.5,
            jitter_factor=0.0,
            sleep=fake_sleep,
        )

    return factory


@pytest.fixture
def firestore(transport, backoff_factory):
    """Provide a client for project "test-project" on the mock transport."""
    return Firestore(
        ClientConfig(project_id="test-project"),
        transport=transport,
        backoff_factory=backoff_factory,
    )


@pytest.fixture
def database_root():
    """Resource name prefix of documents in the test database."""
    return "projects/test-project/databases/(default)/documents"
