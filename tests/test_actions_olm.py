#!/usr/bin/env python3
"""Tests for OLM install actions.

Tests verify:
1. Resource application and fatal/non-fatal failure handling
2. Catalog READY polling with timeout as a warning
3. Subscription monitoring context updates and diagnostics on failure
4. CSV wait with direct, detected and undetermined CSV names
5. Verification pod counting
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from actions import (
    ApplyResourceAction,
    CleanupOperatorAction,
    DisableDefaultSourcesAction,
    MonitorSubscriptionAction,
    SnapshotCSVsAction,
    VerifyOperatorAction,
    WaitForCatalogReadyAction,
    WaitForCSVAction,
)
from actions.olm import _count_ready
from cluster import ClusterError
from config import OperatorConfig


@pytest.fixture
def config():
    return OperatorConfig(
        name='ptp',
        package='ptp-operator',
        namespace='openshift-ptp',
        index_image='registry.example.com:5000/ptp-index:latest',
    )


def _failed(message):
    return {'conditions': [{'type': 'ResolutionFailed', 'status': 'True', 'message': message}]}


class TestCleanupOperatorAction:
    """Test CleanupOperatorAction."""

    def test_success(self, config):
        cluster = MagicMock()
        cluster.delete_cluster_resource.return_value = True
        cluster.delete_resource.return_value = True

        result = CleanupOperatorAction(name='cleanup', cluster=cluster).run(config, {})

        assert result.success is True
        cluster.delete_cluster_resource.assert_called_once_with('namespace', 'openshift-ptp', timeout=300)
        cluster.delete_resource.assert_called_once_with(
            'catalogsource', 'catalog-ptp', 'openshift-marketplace', timeout=60)

    def test_partial_failure_continues(self, config):
        cluster = MagicMock()
        cluster.delete_cluster_resource.return_value = False
        cluster.delete_resource.return_value = True

        result = CleanupOperatorAction(name='cleanup', cluster=cluster).run(config, {})

        assert result.success is False
        assert result.continue_on_failure is True


class TestDisableDefaultSourcesAction:
    """Test DisableDefaultSourcesAction."""

    def test_patches_operatorhub(self, config):
        cluster = MagicMock()
        cluster.patch_merge.return_value = (True, 'patched')

        result = DisableDefaultSourcesAction(name='disable', cluster=cluster).run(config, {})

        assert result.success is True
        cluster.patch_merge.assert_called_once_with(
            'operatorhub', 'cluster', {'spec': {'disableAllDefaultSources': True}})

    def test_failure_is_fatal(self, config):
        cluster = MagicMock()
        cluster.patch_merge.return_value = (False, 'forbidden')

        result = DisableDefaultSourcesAction(name='disable', cluster=cluster).run(config, {})

        assert result.success is False
        assert result.continue_on_failure is False
        assert 'forbidden' in result.message


class TestApplyResourceAction:
    """Test ApplyResourceAction."""

    def test_applies_subscription(self, config):
        cluster = MagicMock()
        cluster.apply_manifest.return_value = (True, 'created')

        result = ApplyResourceAction(name='sub', resource='subscription', cluster=cluster).run(config, {})

        assert result.success is True
        docs = cluster.apply_manifest.call_args[0][0]
        assert docs[0]['kind'] == 'Subscription'
        assert docs[0]['metadata']['name'] == 'subscription-ptp'

    def test_catalog_source_requires_index_image(self):
        cluster = MagicMock()
        config = OperatorConfig(name='ptp')

        result = ApplyResourceAction(name='cs', resource='catalog_source', cluster=cluster).run(config, {})

        assert result.success is False
        assert 'index image' in result.message.lower()
        cluster.apply_manifest.assert_not_called()

    def test_non_fatal_failure_continues(self, config):
        cluster = MagicMock()
        cluster.apply_manifest.return_value = (False, 'AlreadyExists')

        result = ApplyResourceAction(name='ns', resource='namespace', fatal=False,
                                     cluster=cluster).run(config, {})

        assert result.success is False
        assert result.continue_on_failure is True

    def test_fatal_failure_stops(self, config):
        cluster = MagicMock()
        cluster.apply_manifest.return_value = (False, 'invalid')

        result = ApplyResourceAction(name='sub', resource='subscription', cluster=cluster).run(config, {})

        assert result.success is False
        assert result.continue_on_failure is False


class TestWaitForCatalogReadyAction:
    """Test WaitForCatalogReadyAction."""

    def test_ready(self, config, clock):
        cluster = MagicMock()
        cluster.get_jsonpath.side_effect = ['', 'CONNECTING', 'READY']

        result = WaitForCatalogReadyAction(name='wait', cluster=cluster, clock=clock).run(config, {})

        assert result.success is True
        assert clock.sleeps == [2, 2]

    def test_timeout_is_warning(self, config, clock):
        cluster = MagicMock()
        cluster.get_jsonpath.return_value = 'TRANSIENT_FAILURE'

        result = WaitForCatalogReadyAction(name='wait', timeout=5, cluster=cluster, clock=clock).run(config, {})

        assert result.success is False
        assert result.continue_on_failure is True
        assert 'TRANSIENT_FAILURE' in result.message
        assert sum(clock.sleeps) == 5


class TestSnapshotCSVsAction:
    """Test SnapshotCSVsAction."""

    def test_records_names(self, config, make_cluster):
        cluster = make_cluster(csv_lists=[['old.v1', 'other.v2']])

        result = SnapshotCSVsAction(name='snap', cluster=cluster).run(config, {})

        assert result.success is True
        assert result.context_updates == {'csv_snapshot': ['old.v1', 'other.v2']}


class TestMonitorSubscriptionAction:
    """Test MonitorSubscriptionAction."""

    def test_resolved_sets_context(self, config, make_cluster, clock):
        cluster = make_cluster(
            statuses=[_failed('openshift-marketplace/stale-cat is broken'), {'currentCSV': 'ptp-operator.v4.14'}],
            pods={},
        )

        result = MonitorSubscriptionAction(name='monitor', cluster=cluster, clock=clock).run(config, {})

        assert result.success is True
        assert result.context_updates == {
            'remediated_catalogs': ['stale-cat'],
            'current_csv': 'ptp-operator.v4.14',
        }

    def test_own_catalog_protected(self, config, make_cluster, clock):
        cluster = make_cluster(
            statuses=[_failed('openshift-marketplace/catalog-ptp has no bundles'), {'currentCSV': 'x.v1'}],
            pods={},
        )

        MonitorSubscriptionAction(name='monitor', cluster=cluster, clock=clock).run(config, {})

        assert cluster.deleted == []

    def test_timeout_fails_with_diagnostics(self, config, make_cluster, clock, caplog):
        cluster = make_cluster(statuses=[{}])

        with caplog.at_level('ERROR'):
            result = MonitorSubscriptionAction(name='monitor', timeout=10, cluster=cluster,
                                               clock=clock).run(config, {})

        assert result.success is False
        assert result.continue_on_failure is False
        assert 'Subscription details:' in caplog.text
        assert 'current_csv' not in result.context_updates


class TestWaitForCSVAction:
    """Test WaitForCSVAction."""

    def test_uses_context_csv(self, config, make_cluster, clock):
        cluster = make_cluster(csv_phases=['Installing', 'Succeeded'])

        result = WaitForCSVAction(name='wait', cluster=cluster, clock=clock).run(
            config, {'current_csv': 'ptp-operator.v4.14'})

        assert result.success is True
        assert result.context_updates == {'current_csv': 'ptp-operator.v4.14'}
        assert cluster.status_calls == 0

    def test_detects_new_csv(self, config, make_cluster, clock):
        cluster = make_cluster(
            statuses=[{}],
            csv_lists=[['old.v1', 'ptp-operator.v4.14']],
            csv_phases=['Succeeded'],
        )

        result = WaitForCSVAction(name='wait', cluster=cluster, clock=clock).run(
            config, {'csv_snapshot': ['old.v1']})

        assert result.success is True
        assert result.context_updates == {'current_csv': 'ptp-operator.v4.14'}

    def test_undetermined_waits_on_all(self, config, make_cluster, clock):
        cluster = make_cluster(
            statuses=[{}],
            csv_lists=[['old.v1']],
            csv_phases=[{'old.v1': 'Succeeded'}],
        )

        result = WaitForCSVAction(name='wait', cluster=cluster, clock=clock).run(
            config, {'csv_snapshot': ['old.v1']})

        assert result.success is True
        assert result.context_updates == {}

    def test_timeout_is_warning(self, config, make_cluster, clock):
        cluster = make_cluster(csv_phases=['Installing'])

        result = WaitForCSVAction(name='wait', timeout=10, cluster=cluster, clock=clock).run(
            config, {'current_csv': 'ptp-operator.v4.14'})

        assert result.success is False
        assert result.continue_on_failure is True

    def test_strict_timeout_fails(self, config, make_cluster, clock):
        cluster = make_cluster(csv_phases=['Installing'])

        result = WaitForCSVAction(name='wait', timeout=10, strict=True, cluster=cluster,
                                  clock=clock).run(config, {'current_csv': 'ptp-operator.v4.14'})

        assert result.success is False
        assert result.continue_on_failure is False


class TestVerifyOperatorAction:
    """Test VerifyOperatorAction and pod counting."""

    @staticmethod
    def _pod(*ready):
        return {'status': {'containerStatuses': [{'ready': r} for r in ready]}}

    def test_count_ready(self):
        assert _count_ready([self._pod(True), self._pod(False), {}]) == (1, 3)

    def test_all_ready(self, config, capsys):
        cluster = MagicMock()
        cluster.get_table.return_value = 'NAME\nrow\n'
        cluster.list_pods.return_value = [self._pod(True), self._pod(True)]

        result = VerifyOperatorAction(name='verify', cluster=cluster).run(config, {})

        assert result.success is True
        assert result.context_updates == {'operator_pods': 2}
        assert 'oc get pods -n openshift-ptp' in capsys.readouterr().out

    def test_not_ready_is_warning(self, config):
        cluster = MagicMock()
        cluster.get_table.return_value = ''
        cluster.list_pods.return_value = [self._pod(False)]

        result = VerifyOperatorAction(name='verify', cluster=cluster).run(config, {})

        assert result.success is False
        assert result.continue_on_failure is True

    def test_pod_list_error(self, config):
        cluster = MagicMock()
        cluster.get_table.return_value = ''
        cluster.list_pods.side_effect = ClusterError('boom')

        result = VerifyOperatorAction(name='verify', cluster=cluster).run(config, {})

        assert result.success is False
        assert '0 pods' in result.message
