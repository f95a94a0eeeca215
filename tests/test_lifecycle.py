import pytest

from refcheck.lifecycle import (
    LIFECYCLE_STAGES,
    STAGE_ACTIVE,
    STAGE_COMPLETED,
    STAGE_PENDING,
    RequestStatus,
    is_sealed,
    normalize_status,
    project,
    status_badge,
    status_category,
)


@pytest.mark.parametrize(
    'raw, expected',
    [
        ('SEALED', RequestStatus.SEALED),
        ('Sealed', RequestStatus.SEALED),
        ('Pending_Consent', RequestStatus.PENDING_CONSENT),
        ('consent given', RequestStatus.CONSENT_GIVEN),
        ('Consent-Declined', RequestStatus.CONSENT_DECLINED),
        (' Completed ', RequestStatus.COMPLETED),
        ('Something else', RequestStatus.UNKNOWN),
        (None, RequestStatus.UNKNOWN),
        ('', RequestStatus.UNKNOWN),
    ],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) is expected


def test_projection_marks_earlier_stages_completed():
    projection = project('COMPLETED')
    assert projection.active_index == 2
    assert [s.state for s in projection.stages] == [
        STAGE_COMPLETED, STAGE_COMPLETED, STAGE_ACTIVE, STAGE_PENDING, STAGE_PENDING, STAGE_PENDING,
    ]
    assert projection.active_stage.label == 'Reference Submitted'
    assert projection.matched


def test_projection_is_case_insensitive():
    assert project('sealed').active_index == project('SEALED').active_index == len(LIFECYCLE_STAGES) - 1


@pytest.mark.parametrize('status', ['Sent', 'Flagged', 'nonsense', None])
def test_unknown_or_off_list_status_falls_back_to_first_stage(status):
    projection = project(status)
    assert projection.active_index == 0
    assert not projection.matched
    assert projection.stages[0].state == STAGE_ACTIVE


def test_archived_does_not_move_active_stage():
    live = project('ANALYZED')
    archived = project('ANALYZED', archived=True)
    assert archived.active_index == live.active_index
    assert archived.archived is True
    assert archived.to_dict()['archived'] is True


def test_projection_dict_shape():
    data = project('Consent_Given').to_dict()
    assert data['status'] == 'CONSENT_GIVEN'
    assert data['activeIndex'] == 1
    assert [s['key'] for s in data['stages']] == [stage.status.value for stage in LIFECYCLE_STAGES]


def test_badge_prefers_archived():
    assert status_badge('SEALED', archived=True) == ('default', 'Archived')
    assert status_badge('Sealed') == ('success', 'Sealed')
    assert status_badge('mystery') == ('default', 'mystery')


@pytest.mark.parametrize(
    'status, flag, category',
    [
        ('PENDING_CONSENT', False, 'pending'),
        ('Sent', False, 'pending'),
        ('Completed', False, 'completed'),
        ('Declined', False, 'completed'),
        ('Completed', True, 'flagged'),
        ('EXPIRED', False, 'flagged'),
        ('Viewed', False, 'other'),
    ],
)
def test_status_category(status, flag, category):
    assert status_category(status, flag) == category


def test_is_sealed():
    assert is_sealed('Sealed')
    assert not is_sealed('Completed')


def test_lowercase_consent_given_matches_canonical_stage():
    assert project('consent_given').active_index == project('CONSENT_GIVEN').active_index == 1


def test_weird_status_projects_to_first_stage():
    assert project('WEIRD_STATUS').active_index == 0
