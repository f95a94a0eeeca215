import base64

import pytest

from refcheck.actions import Action
from refcheck.gateway import MOCK_INVALID_TOKEN
from refcheck.mock_data import SAMPLE_SIGNATURE_DATA_URL, default_template
from refcheck.portal import (
    CONSENT_DECLINED,
    CONSENT_GIVEN,
    CONSENT_QUERY,
    PortalNotReady,
    RefereePortal,
    UploadTooLarge,
)


def _fill(portal):
    portal.form.update_responses({'q1': 5, 'q2': 4, 'q3': True})
    signature = portal.form.signature('sig1')
    signature.set_typed_name('Jane Smith')
    signature.draw(SAMPLE_SIGNATURE_DATA_URL)


def test_missing_token():
    portal = RefereePortal(gateway=None, token='  ')
    assert portal.load() is False
    assert 'Missing access token' in portal.error


def test_invalid_token_reports_backend_error(gateway):
    portal = RefereePortal(gateway, MOCK_INVALID_TOKEN)
    assert portal.load() is False
    assert portal.error == 'Token expired or invalid'
    assert portal.form is None


def test_load_builds_form(gateway):
    portal = RefereePortal(gateway, 'tok-1')
    assert portal.load()
    assert portal.candidate_name == 'John Doe'
    assert [f.id for f in portal.form.fields] == ['q1', 'q2', 'q3', 'q4', 'sig1']


def test_empty_template_repaired_by_default(scripted):
    empty = dict(default_template(), structureJSON=[])
    _, gateway = scripted({'validateRefereeToken': [{'valid': True, 'candidateName': 'A', 'template': empty}]})
    portal = RefereePortal(gateway, 'tok')
    assert portal.load()
    assert len(portal.form.fields) == 5


def test_empty_template_refused_without_repair(scripted):
    empty = dict(default_template(), structureJSON=[])
    _, gateway = scripted({'validateRefereeToken': [{'valid': True, 'candidateName': 'A', 'template': empty}]})
    portal = RefereePortal(gateway, 'tok', repair_empty_template=False)
    assert portal.load() is False
    assert 'no questions' in portal.error


def test_submit_before_load():
    with pytest.raises(PortalNotReady):
        RefereePortal(gateway=None, token='tok').submit_form()


def test_submit_form_blocked_locally(gateway, mock_transport):
    portal = RefereePortal(gateway, 'tok-1')
    portal.load()
    outcome = portal.submit_form()
    assert not outcome.ok
    assert set(outcome.errors) == {'q1', 'q2', 'q3', 'sig1'}
    assert Action.SUBMIT_REFERENCE not in [action for action, _ in mock_transport.calls]


def test_submit_form_sends_responses(gateway, mock_transport):
    portal = RefereePortal(gateway, 'tok-1')
    portal.load()
    _fill(portal)
    outcome = portal.submit_form()
    assert outcome.ok
    assert 'John Doe' in outcome.message
    action, payload = mock_transport.calls[-1]
    assert action is Action.SUBMIT_REFERENCE
    assert payload['method'] == 'form'
    assert payload['responses']['sig1']['typedName'] == 'Jane Smith'


def test_submit_form_backend_failure(scripted):
    _, gateway = scripted(
        {
            'validateRefereeToken': [{'valid': True, 'candidateName': 'A', 'template': default_template()}],
            'submitReference': [{'success': False, 'error': 'Already submitted'}],
        }
    )
    portal = RefereePortal(gateway, 'tok')
    portal.load()
    _fill(portal)
    outcome = portal.submit_form()
    assert not outcome.ok
    assert outcome.error == 'Submission failed: Already submitted'


def test_upload_chain_passes_file_url(gateway, mock_transport):
    portal = RefereePortal(gateway, 'tok-1')
    outcome = portal.submit_upload('letter.pdf', b'%PDF-1.4 test', 'application/pdf')

    assert outcome.ok
    (upload_action, upload), (submit_action, submit) = mock_transport.calls
    assert upload_action is Action.UPLOAD_REFERENCE_DOCUMENT
    assert base64.b64decode(upload['fileData']) == b'%PDF-1.4 test'
    assert submit_action is Action.SUBMIT_REFERENCE
    assert submit['method'] == 'upload'
    assert submit['uploadedFileUrl'] == 'https://example.com/mock-upload/letter.pdf'
    assert submit['fileName'] == 'letter.pdf'


def test_upload_chain_stops_after_failed_upload(scripted, transport_error):
    transport, gateway = scripted({'uploadReferenceDocument': [transport_error]})
    outcome = RefereePortal(gateway, 'tok').submit_upload('letter.pdf', b'data')
    assert not outcome.ok
    assert outcome.error.startswith('Upload failed: Network Error')
    assert [action for action, _ in transport.calls] == [Action.UPLOAD_REFERENCE_DOCUMENT]


def test_upload_without_file_url_not_submitted(scripted):
    transport, gateway = scripted({'uploadReferenceDocument': [{'success': True}]})
    outcome = RefereePortal(gateway, 'tok').submit_upload('letter.pdf', b'data')
    assert not outcome.ok
    assert len(transport.calls) == 1


def test_upload_too_large_never_sent(gateway, mock_transport):
    portal = RefereePortal(gateway, 'tok', max_upload_bytes=4)
    with pytest.raises(UploadTooLarge):
        portal.submit_upload('big.pdf', b'12345')
    assert mock_transport.calls == []


def test_decline_requires_reason(gateway, mock_transport):
    outcome = RefereePortal(gateway, 'tok').decline('   ')
    assert not outcome.ok
    assert mock_transport.calls == []


def test_decline_sends_reason(gateway, mock_transport):
    outcome = RefereePortal(gateway, 'tok').decline('policy', 'Company policy')
    assert outcome.ok
    _, payload = mock_transport.calls[-1]
    assert payload['method'] == 'decline'
    assert payload['declineReason'] == 'policy'
    assert payload['declineDetails'] == 'Company policy'


@pytest.mark.parametrize('decision', [CONSENT_GIVEN, CONSENT_DECLINED, CONSENT_QUERY])
def test_consent_decisions(gateway, mock_transport, decision):
    outcome = RefereePortal(gateway, 'consent-token').consent(decision, reason='r', message='m')
    assert outcome.ok
    action, payload = mock_transport.calls[-1]
    assert action is Action.AUTHORIZE_CONSENT
    assert payload == {'token': 'consent-token', 'decision': decision, 'reason': 'r', 'message': 'm'}


def test_consent_with_expired_token(gateway):
    outcome = RefereePortal(gateway, MOCK_INVALID_TOKEN).consent(CONSENT_GIVEN)
    assert not outcome.ok
    assert outcome.error == 'Token expired or invalid'


def test_unknown_consent_decision(gateway):
    with pytest.raises(ValueError):
        RefereePortal(gateway, 'tok').consent('MAYBE')
