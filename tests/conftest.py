import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from refcheck import config, metrics
from refcheck.gateway import Gateway, MockTransport, TransportError
from refcheck.session import SessionContext


class ScriptedTransport:
    """Answers each action from a queue of canned bodies (or exceptions)."""

    def __init__(self, script=None):
        self.script = {key: list(value) for key, value in (script or {}).items()}
        self.calls = []

    def send(self, action, payload):
        self.calls.append((action, dict(payload)))
        queue = self.script.get(action.value)
        if not queue:
            return {'success': True}
        body = queue.pop(0)
        if isinstance(body, Exception):
            raise body
        return body


@pytest.fixture(autouse=True)
def _isolate_local_files(tmp_path, monkeypatch):
    """Keep audit log and session cache out of the real home/data dirs."""
    monkeypatch.setattr(config, 'AUDIT_LOG_PATH', str(tmp_path / 'audit.log'))
    monkeypatch.setattr(config, 'SESSION_CACHE_PATH', str(tmp_path / 'session.json'))


@pytest.fixture(autouse=True)
def _force_mock_backend(monkeypatch):
    monkeypatch.setattr(config, 'GATEWAY_MODE', 'mock')
    monkeypatch.setattr(config, 'MOCK_DELAY_SCALE', 0.0)
    monkeypatch.setattr(config, 'ALLOWED_EMAIL_DOMAIN', 'semester.co.uk')
    monkeypatch.setattr(config, 'TEMPLATE_ADMIN_EMAILS', frozenset())
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def mock_transport():
    return MockTransport(0)


@pytest.fixture
def gateway(mock_transport):
    return Gateway(mock_transport)


@pytest.fixture
def scripted():
    def _make(script=None):
        transport = ScriptedTransport(script)
        return transport, Gateway(transport)

    return _make


@pytest.fixture
def staff_session(gateway, tmp_path):
    session = SessionContext(gateway, cache_path=tmp_path / 'session.json')
    session.login('recruiter@semester.co.uk')
    return session


@pytest.fixture
def transport_error():
    return TransportError('Network Error: 503 Service Unavailable')
