"""Shared pytest fixtures for operator-driver tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from cluster import ClusterError  # noqa: E402


def _has_cluster():
    """Check if an oc session against a live cluster is available."""
    try:
        from cluster import OcClient
        ok, _ = OcClient().whoami()
        return ok
    except Exception:
        return False


def pytest_collection_modifyitems(config, items):
    """Skip tests marked with requires_cluster when no cluster session exists."""
    if not any("requires_cluster" in item.keywords for item in items):
        return
    if _has_cluster():
        return
    skip_marker = pytest.mark.skip(reason="requires cluster (oc login)")
    for item in items:
        if "requires_cluster" in item.keywords:
            item.add_marker(skip_marker)


class FakeClock:
    """Clock whose time only moves when something sleeps."""

    def __init__(self, start: float = 1000.0):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += max(0.0, seconds)


class FakeCluster:
    """Scripted stand-in for cluster.OcClient.

    Sequences (statuses, csv_lists, csv_phases) return their next element on
    each call and keep repeating the last one once exhausted.
    """

    def __init__(self, statuses=None, pods=None, csv_lists=None, csv_phases=None,
                 delete_ok=True):
        self.statuses = list(statuses or [{}])
        self.pods = dict(pods or {})
        self.csv_lists = list(csv_lists or [[]])
        self.csv_phases = list(csv_phases or [''])
        self.delete_ok = delete_ok
        self.deleted: list[tuple[str, str, str]] = []
        self.status_calls = 0
        self.pod_queries: list[tuple[str, str]] = []

    @staticmethod
    def _next(seq):
        item = seq[0]
        if len(seq) > 1:
            seq.pop(0)
        return item

    def get_subscription_status(self, name, namespace):
        self.status_calls += 1
        return self._next(self.statuses)

    def list_pod_phases(self, namespace, label_selector):
        self.pod_queries.append((namespace, label_selector))
        catalog = label_selector.split('=', 1)[1]
        phases = self.pods.get(catalog, [])
        if isinstance(phases, Exception):
            raise phases
        return list(phases)

    def delete_resource(self, kind, name, namespace, timeout=30):
        self.deleted.append((kind, name, namespace))
        return self.delete_ok

    def list_target_resource_names(self, namespace):
        return list(self._next(self.csv_lists))

    def get_target_resource_phase(self, name, namespace):
        phase = self._next(self.csv_phases)
        if isinstance(phase, Exception):
            raise phase
        return phase

    def list_target_resource_phases(self, namespace):
        phase = self._next(self.csv_phases)
        if isinstance(phase, Exception):
            raise phase
        return dict(phase) if isinstance(phase, dict) else {}

    def get_yaml(self, kind, name, namespace):
        return f"kind: {kind}\nname: {name}\n"

    def get_table(self, kind, namespace, *extra):
        return f"NAME\n{kind}-row\n"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_cluster():
    """Factory for FakeCluster instances."""
    return FakeCluster


@pytest.fixture
def cluster_error():
    return ClusterError("oc get failed: connection refused")


@pytest.fixture
def config_dir(tmp_path):
    """Create temporary operator-config directory.

    Creates:
    - site.yaml (defaults)
    - operators/sriov.yaml (override)
    - operators/custom.yaml (new operator)
    """
    (tmp_path / 'operators').mkdir()
    (tmp_path / 'site.yaml').write_text("""
defaults:
  channel: beta
  monitor_timeout: 240
  unknown_key: ignored
""")
    (tmp_path / 'operators' / 'sriov.yaml').write_text("""
index_image: registry.example.com:5000/operators/sriov-index:latest
csv_timeout: 300
""")
    (tmp_path / 'operators' / 'custom.yaml').write_text("""
package: custom-operator
namespace: custom-system
all_namespaces: true
""")
    return tmp_path
