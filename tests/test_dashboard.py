import pytest

from refcheck import dashboard
from refcheck.actions import Action
from refcheck.schemas import ReferenceRequest


def _req(request_id, status, archived=False, flagged=False, candidate='Ann Lee', referee='Rob Roe'):
    return ReferenceRequest.model_validate(
        {
            'requestId': request_id,
            'status': status,
            'archived': archived,
            'anomalyFlag': flagged,
            'candidateName': candidate,
            'candidateEmail': f'{candidate.split()[0].lower()}@example.com',
            'refereeName': referee,
            'refereeEmail': f'{referee.split()[0].lower()}@company.com',
        }
    )


REQUESTS = [
    _req('p1', 'PENDING_CONSENT'),
    _req('p2', 'Sent', candidate='Zoe Park'),
    _req('c1', 'Completed', flagged=True),
    _req('c2', 'SEALED', referee='Diana Prince'),
    _req('e1', 'EXPIRED'),
    _req('a1', 'Completed', archived=True),
    _req('a2', 'PENDING_CONSENT', archived=True, flagged=True),
]


def _ids(rows):
    return [r.request_id for r in rows]


def test_stats_ignore_archived_for_buckets():
    stats = dashboard.dashboard_stats(REQUESTS)
    assert stats.to_dict() == {'total': 5, 'pending': 2, 'completed': 2, 'flagged': 2, 'archived': 2}


def test_default_filter_hides_archived():
    assert _ids(dashboard.filter_requests(REQUESTS)) == ['p1', 'p2', 'c1', 'c2', 'e1']


def test_show_archived_toggle():
    assert len(dashboard.filter_requests(REQUESTS, show_archived=True)) == len(REQUESTS)


@pytest.mark.parametrize(
    'status_filter, expected',
    [
        ('pending', ['p1', 'p2']),
        ('completed', ['c1', 'c2']),
        ('flagged', ['c1', 'e1']),
        ('archived', ['a1', 'a2']),
    ],
)
def test_status_filters(status_filter, expected):
    assert _ids(dashboard.filter_requests(REQUESTS, status_filter)) == expected


def test_archived_filter_ignores_toggle():
    assert _ids(dashboard.filter_requests(REQUESTS, 'archived', show_archived=False)) == ['a1', 'a2']


def test_search_matches_names_and_emails_case_insensitively():
    assert _ids(dashboard.filter_requests(REQUESTS, query='  ZOE ')) == ['p2']
    assert _ids(dashboard.filter_requests(REQUESTS, query='diana@')) == ['c2']
    assert dashboard.filter_requests(REQUESTS, 'pending', query='diana') == []


def test_unknown_filter_rejected():
    with pytest.raises(ValueError):
        dashboard.filter_requests(REQUESTS, 'starred')


def test_load_requests_from_mock(gateway, staff_session):
    rows = dashboard.load_requests(gateway, staff_session)
    assert _ids(rows) == ['mock-1', 'mock-2', 'mock-3']


def test_load_requests_skips_bad_rows(scripted, staff_session):
    _, gateway = scripted({'getMyRequests': [[{'requestId': 'ok'}, {'status': 'no id'}]]})
    assert _ids(dashboard.load_requests(gateway, staff_session)) == ['ok']


def test_load_requests_failure(scripted, staff_session):
    _, gateway = scripted({'getMyRequests': [{'success': False, 'error': 'Unauthorized'}]})
    with pytest.raises(dashboard.DashboardError, match='Unauthorized'):
        dashboard.load_requests(gateway, staff_session)


def test_create_request_uses_default_template(gateway, staff_session, mock_transport):
    request_id = dashboard.create_request(
        gateway,
        staff_session,
        candidate_name='Ann',
        candidate_email='ann@example.com',
        referee_name='Rob',
        referee_email='rob@company.com',
    )
    assert request_id.startswith('mock-id-')
    _, payload = mock_transport.calls[-1]
    assert payload['templateId'] == 'default'
    assert payload['userEmail'] == 'recruiter@semester.co.uk'


def test_bulk_archive_sends_unique_ids(scripted, staff_session):
    transport, gateway = scripted({'archiveRequests': [{'success': True, 'archivedCount': 2}]})
    outcome = dashboard.archive_requests(gateway, staff_session, ['p1', 'p2', 'p1'])
    assert outcome.ok and outcome.count == 2
    assert outcome.message == 'Archived 2 request(s)'
    action, payload = transport.calls[-1]
    assert action is Action.ARCHIVE_REQUESTS
    assert payload['requestIds'] == ['p1', 'p2']


def test_bulk_delete_reports_skipped(scripted, staff_session):
    _, gateway = scripted({'deleteRequests': [{'success': True, 'deletedCount': 1, 'skippedCount': 2}]})
    outcome = dashboard.delete_requests(gateway, staff_session, ['a', 'b', 'c'])
    assert outcome.message == 'Deleted 1 request(s). 2 skipped.'


def test_bulk_unarchive_failure(scripted, staff_session):
    _, gateway = scripted({'unarchiveRequests': [{'success': False, 'error': 'locked'}]})
    outcome = dashboard.unarchive_requests(gateway, staff_session, ['a1'])
    assert not outcome.ok
    assert outcome.error == 'Failed to unarchive requests: locked'


def test_bulk_with_nothing_selected(gateway, staff_session, mock_transport):
    calls_before = len(mock_transport.calls)
    outcome = dashboard.archive_requests(gateway, staff_session, [])
    assert not outcome.ok
    assert len(mock_transport.calls) == calls_before
