import json

import pytest

from refcheck import config
from refcheck.session import AccessDenied, SessionContext


def _session(gateway, tmp_path):
    return SessionContext(gateway, cache_path=tmp_path / 'cache' / 'session.json')


def test_login_outside_domain_denied_without_backend_call(gateway, mock_transport, tmp_path):
    session = _session(gateway, tmp_path)
    with pytest.raises(AccessDenied, match='@semester.co.uk'):
        session.login('someone@gmail.com')
    assert mock_transport.calls == []
    assert not session.is_authenticated


def test_login_verifies_staff_and_caches_user(gateway, mock_transport, tmp_path):
    session = _session(gateway, tmp_path)
    user = session.login('Rob@Semester.co.uk', picture='https://img/rob.png')

    assert user.email == 'rob@semester.co.uk'
    assert user.role == 'Recruiter'
    assert user.picture == 'https://img/rob.png'
    assert mock_transport.calls[0][1]['userEmail'] == 'rob@semester.co.uk'
    cached = json.loads(session.cache_path.read_text(encoding='utf-8'))
    assert cached['email'] == 'rob@semester.co.uk'


def test_cached_user_survives_restart(gateway, tmp_path):
    _session(gateway, tmp_path).login('rob@semester.co.uk')
    restored = _session(gateway, tmp_path)
    assert restored.current_user is None
    assert restored.load().email == 'rob@semester.co.uk'
    assert restored.user_email == 'rob@semester.co.uk'


def test_logout_clears_memory_and_cache(gateway, tmp_path):
    session = _session(gateway, tmp_path)
    session.login('rob@semester.co.uk')
    session.logout()
    assert session.current_user is None
    assert not session.cache_path.exists()
    assert _session(gateway, tmp_path).load() is None


def test_corrupt_cache_discarded(gateway, tmp_path):
    session = _session(gateway, tmp_path)
    session.cache_path.parent.mkdir(parents=True)
    session.cache_path.write_text('{not json', encoding='utf-8')
    assert session.load() is None
    assert not session.cache_path.exists()


def test_backend_rejection_denied(scripted, tmp_path):
    _, gateway = scripted({'verifyStaff': [{'success': False, 'error': 'User not found'}]})
    session = _session(gateway, tmp_path)
    with pytest.raises(AccessDenied, match='Not Authorized: User not found'):
        session.login('new@semester.co.uk')
    assert not session.cache_path.exists()


def test_transport_failure_denied(scripted, transport_error, tmp_path):
    _, gateway = scripted({'verifyStaff': [transport_error]})
    with pytest.raises(AccessDenied, match='503'):
        _session(gateway, tmp_path).login('rob@semester.co.uk')


def test_require_user(gateway, tmp_path):
    with pytest.raises(AccessDenied):
        _session(gateway, tmp_path).require_user()


def test_default_cache_path_comes_from_config(gateway):
    assert str(SessionContext(gateway).cache_path) == config.SESSION_CACHE_PATH


def test_login_and_denial_audited(gateway, tmp_path):
    session = _session(gateway, tmp_path)
    with pytest.raises(AccessDenied):
        session.login('x@elsewhere.com')
    session.login('rob@semester.co.uk')
    with open(config.AUDIT_LOG_PATH, encoding='utf-8') as handle:
        events = [json.loads(line)['event'] for line in handle]
    assert 'login_denied' in events
    assert 'login' in events
