"""Cluster access through the `oc` CLI.

All reads and writes go through `common.run_command`, so every call is a
blocking subprocess with its own timeout. Read helpers used by the polling
loop come in two flavours:

- tolerant reads (`get_subscription_status`, `list_target_resource_names`)
  return an empty value when the call fails, so a transient API error looks
  like "no signal yet" to the caller;
- strict reads (`list_pod_phases`, `get_target_resource_phase`) raise
  `ClusterError`, so callers can tell "unknown" apart from "empty".
"""

import json
import logging
from typing import Any, Optional

import yaml

from common import run_command

logger = logging.getLogger(__name__)

CSV_KIND = 'csv'
SUBSCRIPTION_KIND = 'subscription'
CATALOG_SOURCE_KIND = 'catalogsource'


class ClusterError(Exception):
    """A cluster command failed."""


class OcClient:
    """Thin wrapper over the `oc` binary.

    Args:
        binary: CLI to invoke (`oc`, or `kubectl` for plain OLM clusters)
        request_timeout: Subprocess timeout for ordinary reads, in seconds
        kubeconfig: Optional kubeconfig path passed through to the CLI
    """

    def __init__(self, binary: str = 'oc', request_timeout: int = 60,
                 kubeconfig: Optional[str] = None):
        self.binary = binary
        self.request_timeout = request_timeout
        self.kubeconfig = kubeconfig

    def _cmd(self, *args: str) -> list[str]:
        cmd = [self.binary]
        if self.kubeconfig:
            cmd += ['--kubeconfig', self.kubeconfig]
        cmd += list(args)
        return cmd

    def _run(self, *args: str, timeout: Optional[int] = None,
             input_text: Optional[str] = None) -> tuple[int, str, str]:
        return run_command(
            self._cmd(*args),
            timeout=timeout or self.request_timeout,
            input_text=input_text,
        )

    def _get_json(self, *args: str) -> Any:
        """Run `oc get ... -o json` and decode the output, raising on failure."""
        rc, out, err = self._run('get', *args, '-o', 'json')
        if rc != 0:
            raise ClusterError(f"oc get {' '.join(args)} failed: {err.strip()}")
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise ClusterError(f"oc get {' '.join(args)} returned invalid JSON: {e}") from e

    # -------------------------------------------------------------------------
    # Reads used by the reconciliation loop
    # -------------------------------------------------------------------------

    def get_subscription_status(self, name: str, namespace: str) -> dict:
        """Return the Subscription's `.status`, or {} when absent/unreadable."""
        try:
            obj = self._get_json(SUBSCRIPTION_KIND, name, '-n', namespace)
        except ClusterError as e:
            logger.debug(f"Subscription {namespace}/{name} not readable: {e}")
            return {}
        status = obj.get('status') if isinstance(obj, dict) else None
        return status if isinstance(status, dict) else {}

    def list_pod_phases(self, namespace: str, label_selector: str) -> list[str]:
        """Return the phase of every pod matching the selector."""
        obj = self._get_json('pods', '-n', namespace, '-l', label_selector)
        phases = []
        for item in obj.get('items', []) or []:
            phase = ((item or {}).get('status') or {}).get('phase')
            if phase:
                phases.append(str(phase))
        return phases

    def delete_resource(self, kind: str, name: str, namespace: str,
                        timeout: int = 30) -> bool:
        """Delete a namespaced resource; an absent resource counts as deleted."""
        rc, _, err = self._run(
            'delete', kind, name, '-n', namespace,
            '--ignore-not-found', f'--timeout={timeout}s',
            timeout=timeout + 15,
        )
        if rc != 0:
            logger.warning(f"Failed to delete {kind} {namespace}/{name}: {err.strip()}")
            return False
        return True

    def list_target_resource_names(self, namespace: str) -> list[str]:
        """Return CSV names in listing order, or [] when unreadable."""
        try:
            obj = self._get_json(CSV_KIND, '-n', namespace)
        except ClusterError as e:
            logger.debug(f"Cannot list CSVs in {namespace}: {e}")
            return []
        names = []
        for item in obj.get('items', []) or []:
            name = ((item or {}).get('metadata') or {}).get('name')
            if name:
                names.append(name)
        return names

    def get_target_resource_phase(self, name: str, namespace: str) -> str:
        """Return the CSV's `.status.phase` ('' when not yet reported)."""
        obj = self._get_json(CSV_KIND, name, '-n', namespace)
        return str(((obj or {}).get('status') or {}).get('phase') or '')

    def list_target_resource_phases(self, namespace: str) -> dict[str, str]:
        """Return {csv_name: phase} for every CSV in the namespace."""
        obj = self._get_json(CSV_KIND, '-n', namespace)
        phases = {}
        for item in obj.get('items', []) or []:
            name = ((item or {}).get('metadata') or {}).get('name')
            if name:
                phases[name] = str(((item or {}).get('status') or {}).get('phase') or '')
        return phases

    # -------------------------------------------------------------------------
    # Writes and diagnostics used by the install scenario
    # -------------------------------------------------------------------------

    def apply_manifest(self, docs: list[dict], timeout: Optional[int] = None) -> tuple[bool, str]:
        """Apply one or more resource documents via `oc apply -f -`."""
        body = yaml.safe_dump_all(docs, sort_keys=False)
        rc, out, err = self._run('apply', '-f', '-', input_text=body, timeout=timeout)
        if rc != 0:
            return False, err.strip() or out.strip()
        return True, out.strip()

    def delete_cluster_resource(self, kind: str, name: str, timeout: int = 300) -> bool:
        """Delete a cluster-scoped resource (e.g. a Namespace)."""
        rc, _, err = self._run(
            'delete', kind, name, '--ignore-not-found', f'--timeout={timeout}s',
            timeout=timeout + 15,
        )
        if rc != 0:
            logger.warning(f"Failed to delete {kind} {name}: {err.strip()}")
            return False
        return True

    def patch_merge(self, kind: str, name: str, patch: dict) -> tuple[bool, str]:
        """Merge-patch a cluster-scoped resource."""
        rc, out, err = self._run('patch', kind, name, '--type=merge', '-p', json.dumps(patch))
        if rc != 0:
            return False, err.strip()
        return True, out.strip()

    def get_jsonpath(self, kind: str, name: str, namespace: str, path: str) -> str:
        """Return a jsonpath value as text, '' when unreadable."""
        rc, out, _ = self._run('get', kind, name, '-n', namespace, '-o', f'jsonpath={path}')
        return out.strip() if rc == 0 else ''

    def get_yaml(self, kind: str, name: str, namespace: str) -> str:
        """Return a resource rendered as YAML, '' when unreadable."""
        rc, out, _ = self._run('get', kind, name, '-n', namespace, '-o', 'yaml')
        return out if rc == 0 else ''

    def get_table(self, kind: str, namespace: str, *extra: str) -> str:
        """Return `oc get <kind>` table output, '' when unreadable."""
        rc, out, _ = self._run('get', kind, '-n', namespace, *extra)
        return out if rc == 0 else ''

    def list_pods(self, namespace: str) -> list[dict]:
        """Return pod objects in a namespace."""
        obj = self._get_json('pods', '-n', namespace)
        return [p for p in obj.get('items', []) or [] if isinstance(p, dict)]

    def whoami(self) -> tuple[bool, str]:
        """Check the CLI has a valid cluster session."""
        rc, out, err = self._run('whoami', timeout=15)
        if rc != 0:
            return False, err.strip() or 'not logged in'
        return True, out.strip()
