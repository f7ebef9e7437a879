"""Tests for olm.conditions - subscription condition evaluation."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from olm.conditions import SubscriptionSignals, evaluate_conditions


def _cond(cond_type, status='True', message=''):
    return {'type': cond_type, 'status': status, 'message': message}


class TestEvaluateConditions:
    """Test evaluate_conditions signal extraction."""

    def test_resolution_failed_with_message(self):
        status = {'conditions': [_cond('ResolutionFailed', message='constraints not satisfiable')]}
        signals = evaluate_conditions(status)
        assert signals.resolution_failed is True
        assert signals.resolution_message == 'constraints not satisfiable'

    def test_resolution_failed_false_is_not_failure(self):
        status = {'conditions': [_cond('ResolutionFailed', status='False', message='old failure')]}
        signals = evaluate_conditions(status)
        assert signals.resolution_failed is False

    def test_catalog_unhealthy_and_bundle_unpacking(self):
        status = {'conditions': [
            _cond('CatalogSourcesUnhealthy'),
            _cond('BundleUnpacking'),
        ]}
        signals = evaluate_conditions(status)
        assert signals.catalog_unhealthy is True
        assert signals.bundle_unpacking is True
        assert signals.resolution_failed is False

    def test_current_csv_marks_resolved(self):
        signals = evaluate_conditions({'currentCSV': 'op.v1.0.0', 'conditions': []})
        assert signals.current_target == 'op.v1.0.0'
        assert signals.resolved is True

    def test_status_match_is_case_insensitive(self):
        signals = evaluate_conditions({'conditions': [_cond('BundleUnpacking', status='true')]})
        assert signals.bundle_unpacking is True

    def test_boolean_status_accepted(self):
        signals = evaluate_conditions({'conditions': [{'type': 'ResolutionFailed', 'status': True}]})
        assert signals.resolution_failed is True
        assert signals.resolution_message == ''


class TestMalformedInput:
    """Malformed or missing status means no signal, never an error."""

    @pytest.mark.parametrize('status', [
        None,
        {},
        'not a dict',
        {'conditions': None},
        {'conditions': 'garbage'},
        {'conditions': [None, 42, 'x', {'no_type': True}]},
        {'currentCSV': 123},
    ])
    def test_no_signal(self, status):
        assert evaluate_conditions(status) == SubscriptionSignals()

    def test_non_string_message_dropped(self):
        status = {'conditions': [{'type': 'ResolutionFailed', 'status': 'True', 'message': ['x']}]}
        signals = evaluate_conditions(status)
        assert signals.resolution_failed is True
        assert signals.resolution_message == ''


class TestNoRemediationTrigger:
    """Without ResolutionFailed=True nothing signals remediation."""

    @pytest.mark.parametrize('conditions', [
        [],
        [_cond('CatalogSourcesUnhealthy')],
        [_cond('BundleUnpacking'), _cond('CatalogSourcesUnhealthy')],
        [_cond('ResolutionFailed', status='False', message='openshift-marketplace/bad-cat')],
        [_cond('ResolutionFailed', status='Unknown', message='openshift-marketplace/bad-cat')],
    ])
    def test_resolution_failed_not_set(self, conditions):
        assert evaluate_conditions({'conditions': conditions}).resolution_failed is False
