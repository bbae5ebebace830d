"""CRD definitions for peering records read from the home cluster."""

from capacity_broadcaster.clients.base import CoreResources, CRDDefinition


class PeeringCRDs:
    """Resource types read on the home cluster."""

    PEERING_REQUEST = CRDDefinition(
        group="discovery.liqo.io",
        version="v1alpha1",
        plural="peeringrequests",
        kind="PeeringRequest",
        namespaced=False,
    )

    CLUSTER_CONFIG = CRDDefinition(
        group="config.liqo.io",
        version="v1alpha1",
        plural="clusterconfigs",
        kind="ClusterConfig",
        namespaced=False,
    )

    SECRET = CoreResources.SECRET
