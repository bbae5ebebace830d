"""CRD definitions for the records published to the foreign cluster."""

from capacity_broadcaster.clients.base import CoreResources, CRDDefinition


class AdvertisementCRDs:
    """Resource types written on the foreign cluster."""

    ADVERTISEMENT = CRDDefinition(
        group="sharing.liqo.io",
        version="v1alpha1",
        plural="advertisements",
        kind="Advertisement",
        namespaced=False,
    )

    SECRET = CoreResources.SECRET
