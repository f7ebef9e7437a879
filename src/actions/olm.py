"""OLM install actions: catalog source, subscription, health monitoring, CSV wait."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import manifests
from cluster import CATALOG_SOURCE_KIND, CSV_KIND, SUBSCRIPTION_KIND, ClusterError, OcClient
from common import ActionResult
from config import OperatorConfig
from olm import (
    CSVResolver,
    HealthMonitor,
    CatalogRemediator,
    MarketplaceRefExtractor,
    TerminalWaiter,
    collect_diagnostics,
)
from olm.clock import Clock, SystemClock
from olm.waiter import SUCCEEDED

logger = logging.getLogger(__name__)


def _cluster(action: Any) -> OcClient:
    return action.cluster if action.cluster is not None else OcClient()


@dataclass
class CleanupOperatorAction:
    """Remove the operator namespace and its catalog source from a previous run."""
    name: str
    timeout: int = 300
    cluster: Optional[Any] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()
        cluster = _cluster(self)

        logger.info(f"[{self.name}] Deleting namespace {config.namespace}...")
        ns_ok = cluster.delete_cluster_resource('namespace', config.namespace, timeout=self.timeout)

        logger.info(f"[{self.name}] Deleting catalog source {config.catalog_source}...")
        cs_ok = cluster.delete_resource(CATALOG_SOURCE_KIND, config.catalog_source,
                                        config.marketplace_namespace, timeout=60)

        if not (ns_ok and cs_ok):
            return ActionResult(
                success=False,
                message="Cleanup incomplete (see warnings above)",
                duration=time.time() - start,
                continue_on_failure=True
            )
        return ActionResult(
            success=True,
            message=f"Removed {config.namespace} and {config.catalog_source}",
            duration=time.time() - start
        )


@dataclass
class DisableDefaultSourcesAction:
    """Disable the default OperatorHub catalog sources."""
    name: str
    cluster: Optional[Any] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()
        logger.info(f"[{self.name}] Disabling all default catalog sources...")
        ok, out = _cluster(self).patch_merge(
            'operatorhub', 'cluster', {'spec': {'disableAllDefaultSources': True}}
        )
        if not ok:
            return ActionResult(
                success=False,
                message=f"Failed to patch operatorhub cluster: {out}",
                duration=time.time() - start
            )
        return ActionResult(
            success=True,
            message="Default catalog sources disabled",
            duration=time.time() - start
        )


@dataclass
class ApplyResourceAction:
    """Apply one generated OLM resource (see manifests.BUILDERS)."""
    name: str
    resource: str
    fatal: bool = True
    cluster: Optional[Any] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()

        if self.resource == 'catalog_source' and not config.index_image:
            return ActionResult(
                success=False,
                message="No index image configured (use --index-image)",
                duration=time.time() - start
            )

        doc = manifests.build(self.resource, config)
        kind = doc['kind']
        name = doc['metadata']['name']
        logger.info(f"[{self.name}] Applying {kind} {name}...")

        ok, out = _cluster(self).apply_manifest([doc])
        if not ok:
            if not self.fatal:
                logger.warning(f"[{self.name}] {kind} {name} might already exist or failed to apply: {out}")
            return ActionResult(
                success=False,
                message=f"Failed to apply {kind} {name}: {out}",
                duration=time.time() - start,
                continue_on_failure=not self.fatal
            )
        return ActionResult(
            success=True,
            message=f"{kind} {name} applied",
            duration=time.time() - start
        )


@dataclass
class WaitForCatalogReadyAction:
    """Wait for the catalog source connection to report READY."""
    name: str
    timeout: Optional[int] = None
    interval: float = 2
    cluster: Optional[Any] = None
    clock: Optional[Clock] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()
        cluster = _cluster(self)
        clock = self.clock or SystemClock()
        timeout = self.timeout or config.catalog_timeout

        logger.info(f"[{self.name}] Waiting for CatalogSource {config.catalog_source} to report READY...")
        deadline = clock.now() + timeout
        state = ''
        while True:
            state = cluster.get_jsonpath(
                CATALOG_SOURCE_KIND, config.catalog_source, config.marketplace_namespace,
                '{.status.connectionState.lastObservedState}'
            )
            if state == 'READY':
                return ActionResult(
                    success=True,
                    message=f"CatalogSource {config.catalog_source} READY",
                    duration=time.time() - start
                )
            remaining = deadline - clock.now()
            if remaining <= 0:
                break
            clock.sleep(min(self.interval, remaining))

        logger.warning(f"[{self.name}] CatalogSource did not report READY within {timeout}s, continuing")
        return ActionResult(
            success=False,
            message=f"CatalogSource {config.catalog_source} not READY after {timeout}s (last state: {state or 'unknown'})",
            duration=time.time() - start,
            continue_on_failure=True
        )


@dataclass
class SnapshotCSVsAction:
    """Record CSV names present before the subscription exists."""
    name: str
    context_key: str = 'csv_snapshot'
    cluster: Optional[Any] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()
        names = _cluster(self).list_target_resource_names(config.namespace)
        logger.info(f"[{self.name}] {len(names)} existing CSV(s) in {config.namespace}")
        return ActionResult(
            success=True,
            message=f"Recorded {len(names)} existing CSV(s)",
            duration=time.time() - start,
            context_updates={self.context_key: names}
        )


@dataclass
class MonitorSubscriptionAction:
    """Drive the subscription to resolution, remediating blocking catalogs.

    Failure is fatal for the scenario; a diagnostic dump is logged first.
    """
    name: str
    timeout: Optional[int] = None
    poll_interval: float = 5
    cooldown: float = 10
    cluster: Optional[Any] = None
    clock: Optional[Clock] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()
        cluster = _cluster(self)
        timeout = self.timeout or config.monitor_timeout

        remediator = CatalogRemediator(
            cluster, extractor=MarketplaceRefExtractor(config.marketplace_namespace)
        )
        monitor = HealthMonitor(
            cluster,
            own_catalog=config.catalog_source,
            remediator=remediator,
            clock=self.clock,
            poll_interval=self.poll_interval,
            cooldown=self.cooldown,
        )
        result = monitor.monitor(config.subscription, config.namespace, timeout=timeout)

        updates: dict[str, Any] = {'remediated_catalogs': result.remediated}
        if not result.resolved:
            logger.error(f"[{self.name}] Subscription failed to become healthy. Current state:")
            logger.error(collect_diagnostics(
                cluster, config.subscription, config.namespace,
                marketplace_namespace=config.marketplace_namespace,
                package=config.name,
            ))
            return ActionResult(
                success=False,
                message=f"Subscription {config.subscription} not resolved after {timeout}s ({result.attempts} polls)",
                duration=time.time() - start,
                context_updates=updates
            )

        updates['current_csv'] = result.target_name
        return ActionResult(
            success=True,
            message=f"Resolved to {result.target_name}",
            duration=time.time() - start,
            context_updates=updates
        )


@dataclass
class WaitForCSVAction:
    """Locate the subscription's CSV and wait for it to reach Succeeded.

    A timeout is a warning unless `strict` is set.
    """
    name: str
    timeout: Optional[int] = None
    strict: bool = False
    interval: float = 5
    detect_interval: float = 2
    snapshot_key: str = 'csv_snapshot'
    cluster: Optional[Any] = None
    clock: Optional[Clock] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()
        cluster = _cluster(self)
        timeout = self.timeout or config.csv_timeout

        target = context.get('current_csv') or ''
        if not target:
            resolver = CSVResolver(
                cluster, config.namespace, context.get(self.snapshot_key, []),
                detect_timeout=config.csv_detect_timeout,
                interval=self.detect_interval,
                clock=self.clock,
            )
            target = resolver.resolve(config.subscription) or ''

        waiter = TerminalWaiter(cluster, interval=self.interval, clock=self.clock)
        if target:
            ok = waiter.wait(target, config.namespace, SUCCEEDED, timeout)
        else:
            logger.warning(f"[{self.name}] CSV undetermined, waiting on any CSV in {config.namespace}")
            ok = waiter.wait_any(config.namespace, SUCCEEDED, timeout)

        shown = target or f'any CSV in {config.namespace}'
        if not ok:
            if target:
                status = cluster.get_yaml(CSV_KIND, target, config.namespace)
                logger.warning(f"[{self.name}] CSV status:\n{status or '(unavailable)'}")
            return ActionResult(
                success=False,
                message=f"{shown} did not reach {SUCCEEDED} within {timeout}s",
                duration=time.time() - start,
                context_updates={'current_csv': target} if target else {},
                continue_on_failure=not self.strict
            )
        return ActionResult(
            success=True,
            message=f"{shown} reached {SUCCEEDED}",
            duration=time.time() - start,
            context_updates={'current_csv': target} if target else {}
        )


def _count_ready(pods: list[dict]) -> tuple[int, int]:
    """Return (ready_containers, total_pods), as `oc get pods` reports them."""
    ready = 0
    for pod in pods:
        for cs in ((pod.get('status') or {}).get('containerStatuses') or []):
            if (cs or {}).get('ready') is True:
                ready += 1
    return ready, len(pods)


@dataclass
class VerifyOperatorAction:
    """Report CSV, pod and subscription status after install."""
    name: str
    cluster: Optional[Any] = None

    def run(self, config: OperatorConfig, context: dict) -> ActionResult:
        start = time.time()
        cluster = _cluster(self)
        ns = config.namespace

        print("")
        print("Current CSV status:")
        print(cluster.get_table(CSV_KIND, ns).rstrip() or f"No CSVs found in {ns}")
        print("")
        print("Current operator pods:")
        print(cluster.get_table('pods', ns).rstrip() or f"No pods found in {ns}")
        print("")
        print("Subscription status:")
        columns = ("NAME:.metadata.name,PACKAGE:.spec.name,SOURCE:.spec.source,"
                   "CHANNEL:.spec.channel,CURRENT_CSV:.status.currentCSV,STATE:.status.state")
        summary = cluster.get_table(SUBSCRIPTION_KIND, ns, config.subscription, '-o', f'custom-columns={columns}')
        print(summary.rstrip() or "Subscription status unavailable")
        print("")

        try:
            ready, total = _count_ready(cluster.list_pods(ns))
        except ClusterError as e:
            logger.warning(f"[{self.name}] Cannot list pods in {ns}: {e}")
            ready, total = 0, 0

        print("Verification commands:")
        print(f"   Check operator status: oc get pods -n {ns}")
        print(f"   Check CSV status: oc get csv -n {ns}")
        print(f"   Check subscription: oc get subscription -n {ns}")
        print(f"   Check operator logs: oc logs -n {ns} -l app.kubernetes.io/name={config.name}-operator --tail=50")
        print("")

        if total > 0 and ready == total:
            return ActionResult(
                success=True,
                message=f"All {total} operator pods are running and ready",
                duration=time.time() - start,
                context_updates={'operator_pods': total}
            )
        return ActionResult(
            success=False,
            message=f"Operator installation may have issues: {total} pods, {ready} ready",
            duration=time.time() - start,
            continue_on_failure=True
        )
