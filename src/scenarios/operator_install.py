"""Operator install and cleanup scenarios.

Install assumes the operator's index image is already built and pullable by
the cluster. Phases follow the OLM flow: catalog source, namespace,
OperatorGroup, Subscription, then the health monitor and CSV wait.
"""

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
from config import OperatorConfig
from scenarios import register_scenario


@register_scenario
class OperatorInstall:
    """Install an operator through OLM and confirm it converges."""

    name = 'operator-install'
    description = 'Create catalog source and subscription, monitor resolution, wait for CSV'
    requires_index_image = True
    expected_runtime = 420
    strict = False  # CLI --strict: CSV timeout fails the run

    def get_phases(self, config: OperatorConfig) -> list[tuple[str, object, str]]:
        """Return phases for an operator install."""
        return [
            ('cleanup', CleanupOperatorAction(
                name='cleanup',
            ), 'Remove resources from a previous install'),

            ('disable_default_sources', DisableDefaultSourcesAction(
                name='disable-default-sources',
            ), 'Disable default OperatorHub catalog sources'),

            ('catalog_source', ApplyResourceAction(
                name='catalog-source',
                resource='catalog_source',
            ), f'Create CatalogSource {config.catalog_source}'),

            ('wait_catalog', WaitForCatalogReadyAction(
                name='wait-catalog',
            ), 'Wait for CatalogSource to report READY'),

            ('namespace', ApplyResourceAction(
                name='namespace',
                resource='namespace',
                fatal=False,
            ), f'Create namespace {config.namespace}'),

            ('operator_group', ApplyResourceAction(
                name='operator-group',
                resource='operator_group',
                fatal=False,
            ), f'Create OperatorGroup {config.operator_group}'),

            ('snapshot_csvs', SnapshotCSVsAction(
                name='snapshot-csvs',
            ), 'Record pre-existing CSVs'),

            ('subscription', ApplyResourceAction(
                name='subscription',
                resource='subscription',
            ), f'Create Subscription {config.subscription}'),

            ('monitor_subscription', MonitorSubscriptionAction(
                name='monitor-subscription',
            ), 'Monitor subscription health and remediate blocking catalogs'),

            ('wait_csv', WaitForCSVAction(
                name='wait-csv',
                strict=self.strict,
            ), 'Wait for the operator CSV to reach Succeeded'),

            ('verify', VerifyOperatorAction(
                name='verify',
            ), 'Report CSV, pod and subscription status'),
        ]


@register_scenario
class OperatorCleanup:
    """Remove an installed operator's namespace and catalog source."""

    name = 'operator-cleanup'
    description = 'Delete operator namespace and catalog source'
    requires_index_image = False
    expected_runtime = 60

    def get_phases(self, config: OperatorConfig) -> list[tuple[str, object, str]]:
        """Return phases for operator cleanup."""
        return [
            ('cleanup', CleanupOperatorAction(
                name='cleanup',
            ), 'Remove operator namespace and catalog source'),
        ]
