"""Operator install configuration.

Configuration comes from a built-in table of known operators, optionally
overridden from an operator-config directory:
- site.yaml: Site-wide defaults (marketplace namespace, channel, timeouts)
- operators/*.yaml: Per-operator overrides, or definitions of new operators

The merge order is: built-in profile → site defaults → operator file → CLI.
With a registry but no index image, the image defaults to
`<registry>/operators/<name>-index:latest`.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml


class ConfigError(Exception):
    """Configuration error."""


# Known operators: OLM package name, install namespace, and whether the
# OperatorGroup watches all namespaces.
BUILTIN_OPERATORS: dict[str, dict] = {
    'sriov': {
        'package': 'sriov-network-operator',
        'namespace': 'openshift-sriov-network-operator',
    },
    'metallb': {
        'package': 'metallb-operator',
        'namespace': 'metallb-system',
        'all_namespaces': True,
    },
    'ptp': {
        'package': 'ptp-operator',
        'namespace': 'openshift-ptp',
    },
    'nmstate': {
        'package': 'kubernetes-nmstate-operator',
        'namespace': 'openshift-nmstate',
    },
}

SITE_DEFAULT_KEYS = (
    'marketplace_namespace',
    'channel',
    'monitor_timeout',
    'csv_timeout',
    'csv_detect_timeout',
    'catalog_timeout',
)


@dataclass
class OperatorConfig:
    """Configuration for installing one operator.

    Resource names are derived from the operator name:
    catalog-<name>, operator-group-<name>, subscription-<name>.
    """
    name: str
    package: str = ''
    namespace: str = ''
    all_namespaces: bool = False
    index_image: str = ''
    channel: str = 'stable'
    marketplace_namespace: str = 'openshift-marketplace'

    # Timeouts (seconds)
    monitor_timeout: int = 180
    csv_timeout: int = 180
    csv_detect_timeout: int = 60
    catalog_timeout: int = 120

    # Optional internal registry for preflight reachability checks
    registry: str = ''

    def __post_init__(self):
        if not self.package:
            self.package = self.name
        if not self.namespace:
            self.namespace = f'openshift-{self.name}'

    @property
    def catalog_source(self) -> str:
        return f'catalog-{self.name}'

    @property
    def operator_group(self) -> str:
        return f'operator-group-{self.name}'

    @property
    def subscription(self) -> str:
        return f'subscription-{self.name}'

    @property
    def registry_index_image(self) -> str:
        """Index image the operator build pushes to the internal registry."""
        return f'{self.registry}/operators/{self.name}-index:latest' if self.registry else ''

    def apply(self, values: dict) -> None:
        """Overlay known keys from a config mapping."""
        for key in ('package', 'namespace', 'index_image', 'channel',
                    'marketplace_namespace', 'registry'):
            if value := values.get(key):
                setattr(self, key, str(value))
        if 'all_namespaces' in values:
            self.all_namespaces = bool(values['all_namespaces'])
        for key in ('monitor_timeout', 'csv_timeout', 'csv_detect_timeout', 'catalog_timeout'):
            if key in values and values[key] is not None:
                try:
                    setattr(self, key, int(values[key]))
                except (TypeError, ValueError) as e:
                    raise ConfigError(f"{key} must be an integer, got {values[key]!r}") from e


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def get_base_dir() -> Path:
    """Get the operator-driver directory."""
    return Path(__file__).parent.parent  # src/ -> operator-driver/


def get_config_dir() -> Optional[Path]:
    """Discover the operator-config directory.

    Resolution order:
    1. $OPERATOR_DRIVER_CONFIG environment variable
    2. ../operator-config/ sibling directory (dev workspace)
    3. /usr/local/etc/operator-driver/

    Returns None when no directory exists; built-in profiles still work.
    """
    if env_path := os.environ.get('OPERATOR_DRIVER_CONFIG'):
        path = Path(env_path)
        if path.exists():
            return path
        raise ConfigError(f"OPERATOR_DRIVER_CONFIG={env_path} does not exist")

    sibling = get_base_dir().parent / 'operator-config'
    if sibling.exists():
        return sibling

    fhs_path = Path('/usr/local/etc/operator-driver')
    if fhs_path.exists():
        return fhs_path

    return None


def load_site_defaults(config_dir: Optional[Path] = None) -> dict:
    """Load `defaults:` from site.yaml, {} when absent."""
    config_dir = config_dir if config_dir is not None else get_config_dir()
    if config_dir is None:
        return {}
    site_file = config_dir / 'site.yaml'
    if not site_file.exists():
        return {}
    defaults = _parse_yaml(site_file).get('defaults', {}) or {}
    return {k: v for k, v in defaults.items() if k in SITE_DEFAULT_KEYS}


def list_operators(config_dir: Optional[Path] = None) -> list[str]:
    """List operator names from the built-in table and operators/*.yaml."""
    names = set(BUILTIN_OPERATORS)
    try:
        config_dir = config_dir if config_dir is not None else get_config_dir()
    except ConfigError:
        config_dir = None
    if config_dir is not None:
        operators_dir = config_dir / 'operators'
        if operators_dir.exists():
            names.update(f.stem for f in operators_dir.glob('*.yaml') if f.is_file())
    return sorted(names)


def load_operator_config(name: str, config_dir: Optional[Path] = None,
                         overrides: Optional[dict] = None) -> OperatorConfig:
    """Build the OperatorConfig for a named operator.

    Raises:
        ConfigError: Unknown operator or invalid config file
    """
    config_dir = config_dir if config_dir is not None else get_config_dir()
    operator_file = config_dir / 'operators' / f'{name}.yaml' if config_dir else None
    has_file = operator_file is not None and operator_file.exists()

    if name not in BUILTIN_OPERATORS and not has_file:
        available = list_operators(config_dir)
        raise ConfigError(
            f"Unknown operator '{name}'.\n"
            f"Available operators: {', '.join(available)}"
        )

    config = OperatorConfig(name=name, **BUILTIN_OPERATORS.get(name, {}))
    config.apply(load_site_defaults(config_dir))
    if operator_file is not None and operator_file.exists():
        config.apply(_parse_yaml(operator_file))
    if overrides:
        config.apply(overrides)
    if not config.index_image and config.registry:
        config.index_image = config.registry_index_image
    return config
