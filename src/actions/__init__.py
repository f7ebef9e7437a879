"""Reusable operator install actions."""

from actions.olm import (
    CleanupOperatorAction,
    DisableDefaultSourcesAction,
    ApplyResourceAction,
    WaitForCatalogReadyAction,
    SnapshotCSVsAction,
    MonitorSubscriptionAction,
    WaitForCSVAction,
    VerifyOperatorAction,
)

__all__ = [
    'CleanupOperatorAction',
    'DisableDefaultSourcesAction',
    'ApplyResourceAction',
    'WaitForCatalogReadyAction',
    'SnapshotCSVsAction',
    'MonitorSubscriptionAction',
    'WaitForCSVAction',
    'VerifyOperatorAction',
]
