from datetime import datetime, timezone

from refcheck.mock_data import SAMPLE_SIGNATURE_DATA_URL
from refcheck.signature import SignatureState


def _fixed_clock():
    return datetime(2024, 2, 29, 23, 59, 59, 123000, tzinfo=timezone.utc)


def test_new_signature_reports_both_missing_parts():
    state = SignatureState(clock=_fixed_clock)
    assert not state.is_complete
    assert state.signed_at == ''
    assert state.missing_parts() == ['Please type your full legal name', 'Please draw your signature above']


def test_first_interaction_stamps_iso_utc():
    state = SignatureState(clock=_fixed_clock)
    state.draw(SAMPLE_SIGNATURE_DATA_URL)
    assert state.signed_at == '2024-02-29T23:59:59.123Z'
    assert state.missing_parts() == ['Please type your full legal name']


def test_empty_draw_clears_ink_but_keeps_timestamp():
    state = SignatureState(clock=_fixed_clock)
    state.set_typed_name('Jane Smith')
    state.draw(SAMPLE_SIGNATURE_DATA_URL)
    state.draw('')
    assert not state.has_drawn
    assert state.signed_at == '2024-02-29T23:59:59.123Z'


def test_existing_value_keeps_its_timestamp():
    state = SignatureState(
        {'typedName': 'Jane', 'signedAt': '2023-01-01T00:00:00.000Z', 'signatureDataUrl': SAMPLE_SIGNATURE_DATA_URL},
        clock=_fixed_clock,
    )
    state.set_typed_name('Jane Smith')
    assert state.is_complete
    assert state.to_response().signed_at == '2023-01-01T00:00:00.000Z'


def test_changes_are_reported():
    seen = []
    state = SignatureState(clock=_fixed_clock, on_change=seen.append)
    state.set_typed_name('Jane')
    state.clear()
    assert [value.typed_name for value in seen] == ['Jane', 'Jane']
    assert seen[-1].signature_data_url is None
