import sys
import pytest
from pathlib import Path

# Add project root (2 levels up from tests/) to sys.path so tests can import 'relay'
root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))


from relay.services.signaling import LivenessMonitor, SignalingRelay


@pytest.fixture
def relay():
    """A fresh relay per test so registries never leak between tests."""
    return SignalingRelay()


@pytest.fixture
def monitor(relay):
    return LivenessMonitor(relay, interval=0.05)
