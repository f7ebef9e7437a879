"""Remediation of unhealthy catalog sources blocking subscription resolution.

Subscriptions resolve against every CatalogSource in the marketplace
namespace, so one broken source can block an unrelated subscription. The
remediator pulls `<namespace>/<name>` references out of a ResolutionFailed
message, checks the backing pods of each referenced source, and deletes only
sources it can positively classify as unhealthy. The subscription's own
catalog is never touched.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Protocol

from cluster import CATALOG_SOURCE_KIND, ClusterError

logger = logging.getLogger(__name__)

DEFAULT_MARKETPLACE_NAMESPACE = 'openshift-marketplace'
CATALOG_POD_LABEL = 'olm.catalogSource'
UNHEALTHY_POD_PHASES = frozenset({'Failed', 'Pending', 'Unknown'})


@dataclass(frozen=True)
class CatalogRef:
    """A (namespace, name) catalog source reference."""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class CatalogRefExtractor(Protocol):
    """Pulls catalog source references out of a resolution message."""

    def extract(self, message: str) -> list[CatalogRef]:
        ...


class MarketplaceRefExtractor:
    """Match `<marketplace-namespace>/<catalog-name>` tokens.

    A message in an unexpected format yields no references. That fail-open
    result is logged as a warning; the monitor keeps polling.
    """

    def __init__(self, namespace: str = DEFAULT_MARKETPLACE_NAMESPACE):
        self.namespace = namespace
        self._pattern = re.compile(r'(?<![A-Za-z0-9.-])' + re.escape(namespace) + r'/([a-zA-Z0-9-]+)')

    def extract(self, message: str) -> list[CatalogRef]:
        seen: list[CatalogRef] = []
        for name in self._pattern.findall(message or ''):
            ref = CatalogRef(self.namespace, name)
            if ref not in seen:
                seen.append(ref)
        if message and not seen:
            logger.warning(f"No {self.namespace}/<catalog> references in message: {message[:200]}")
        return seen


def classify_pod_phases(phases: list[str]) -> bool:
    """Return True if the catalog's pods look healthy.

    No pods at all is unhealthy, as is any pod in a failed, pending or
    unknown phase.
    """
    if not phases:
        return False
    return not any(phase in UNHEALTHY_POD_PHASES for phase in phases)


class CatalogRemediator:
    """Deletes unhealthy foreign catalog sources named in a failure message."""

    def __init__(self, cluster, extractor: CatalogRefExtractor | None = None,
                 delete_timeout: int = 30):
        self.cluster = cluster
        self.extractor = extractor or MarketplaceRefExtractor()
        self.delete_timeout = delete_timeout

    def candidates(self, message: str, own_catalog: str) -> list[CatalogRef]:
        """References from the message, excluding the subscription's own catalog."""
        return [ref for ref in self.extractor.extract(message) if ref.name != own_catalog]

    def is_unhealthy(self, ref: CatalogRef) -> bool | None:
        """Classify a catalog source; None when its pods cannot be read."""
        try:
            phases = self.cluster.list_pod_phases(ref.namespace, f'{CATALOG_POD_LABEL}={ref.name}')
        except ClusterError as e:
            logger.warning(f"Cannot read pods for catalog source {ref}: {e}")
            return None
        healthy = classify_pod_phases(phases)
        if not healthy:
            shown = ' '.join(phases) if phases else 'not found'
            logger.warning(f"Catalog source {ref} appears unhealthy (pod status: {shown})")
        return not healthy

    def remediate(self, message: str, own_catalog: str,
                  skip: Iterable[str] = ()) -> set[str]:
        """Delete unhealthy catalog sources referenced by the message.

        Args:
            message: ResolutionFailed condition message
            own_catalog: Name of the subscription's own catalog source
            skip: Catalog names already removed earlier in the session

        Returns:
            Names of catalog sources that were deleted
        """
        done = set(skip)
        candidates = [c for c in self.candidates(message, own_catalog) if c.name not in done]
        if not candidates:
            return set()

        logger.info(f"Found candidate catalog sources: {', '.join(str(c) for c in candidates)}")
        removed: set[str] = set()
        for ref in candidates:
            if not self.is_unhealthy(ref):
                logger.debug(f"Catalog source {ref} is healthy or unclassifiable, leaving it")
                continue
            logger.info(f"Removing problematic catalog source: {ref}")
            if self.cluster.delete_resource(CATALOG_SOURCE_KIND, ref.name, ref.namespace,
                                            timeout=self.delete_timeout):
                logger.info(f"Removed catalog source: {ref}")
                removed.add(ref.name)
            else:
                logger.warning(f"Failed to remove catalog source: {ref}")
        return removed
