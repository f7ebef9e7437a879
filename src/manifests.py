"""OLM resource documents for an operator install."""

from config import OperatorConfig

OLM_V1ALPHA1 = 'operators.coreos.com/v1alpha1'
OLM_V1 = 'operators.coreos.com/v1'


def catalog_source(config: OperatorConfig) -> dict:
    """CatalogSource serving the operator's index image."""
    return {
        'apiVersion': OLM_V1ALPHA1,
        'kind': 'CatalogSource',
        'metadata': {
            'name': config.catalog_source,
            'namespace': config.marketplace_namespace,
        },
        'spec': {
            'displayName': 'operator-images',
            'image': config.index_image,
            'publisher': 'Red Hat',
            'sourceType': 'grpc',
        },
    }


def namespace(config: OperatorConfig) -> dict:
    return {
        'apiVersion': 'v1',
        'kind': 'Namespace',
        'metadata': {
            'name': config.namespace,
            'annotations': {'workload.openshift.io/allowed': 'management'},
        },
    }


def operator_group(config: OperatorConfig) -> dict:
    """OperatorGroup; an empty spec watches all namespaces."""
    spec: dict = {}
    if not config.all_namespaces:
        spec['targetNamespaces'] = [config.namespace]
    return {
        'apiVersion': OLM_V1,
        'kind': 'OperatorGroup',
        'metadata': {
            'name': config.operator_group,
            'namespace': config.namespace,
        },
        'spec': spec,
    }


def subscription(config: OperatorConfig) -> dict:
    return {
        'apiVersion': OLM_V1ALPHA1,
        'kind': 'Subscription',
        'metadata': {
            'name': config.subscription,
            'namespace': config.namespace,
        },
        'spec': {
            'channel': config.channel,
            'name': config.package,
            'source': config.catalog_source,
            'sourceNamespace': config.marketplace_namespace,
        },
    }


BUILDERS = {
    'catalog_source': catalog_source,
    'namespace': namespace,
    'operator_group': operator_group,
    'subscription': subscription,
}


def build(kind: str, config: OperatorConfig) -> dict:
    """Build a resource document by builder key."""
    if kind not in BUILDERS:
        raise ValueError(f"Unknown resource: {kind}. Available: {sorted(BUILDERS)}")
    return BUILDERS[kind](config)
