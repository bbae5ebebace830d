"""Well-known labels, annotations and resource names shared with peered clusters."""


class PeeringLabels:
    """Labels used to tell virtual nodes and offloaded pods apart."""

    # Node type label; virtual nodes carry TYPE_VIRTUAL_NODE as value
    TYPE = "liqo.io/type"
    TYPE_VIRTUAL_NODE = "virtual-node"

    # Set on pods that this cluster already offloaded to a peer
    OUTGOING = "liqo.io/outgoing"

    @classmethod
    def virtual_node_selector(cls) -> str:
        """Label selector matching virtual nodes only."""
        return f"{cls.TYPE}={cls.TYPE_VIRTUAL_NODE}"

    @classmethod
    def physical_node_selector(cls) -> str:
        """Label selector matching physical nodes only."""
        return f"{cls.TYPE}!={cls.TYPE_VIRTUAL_NODE}"

    @classmethod
    def is_virtual_node(cls, labels: dict[str, str] | None) -> bool:
        """Check whether node labels mark a virtual node."""
        if not labels:
            return False
        return labels.get(cls.TYPE) == cls.TYPE_VIRTUAL_NODE

    @classmethod
    def is_outgoing_pod(cls, labels: dict[str, str] | None) -> bool:
        """Check whether pod labels mark a pod already offloaded elsewhere."""
        if not labels:
            return False
        return cls.OUTGOING in labels


class ResourceNames:
    """Deterministic names of the records published to the foreign cluster."""

    ADVERTISEMENT_PREFIX = "adv-"
    CREDENTIAL_SECRET_PREFIX = "vk-secret-"
    KUBECONFIG_KEY = "kubeconfig"

    @classmethod
    def advertisement(cls, home_cluster_id: str) -> str:
        """Name of the Advertisement published by a home cluster."""
        return f"{cls.ADVERTISEMENT_PREFIX}{home_cluster_id}"

    @classmethod
    def credential_secret(cls, home_cluster_id: str) -> str:
        """Name of the kubeconfig Secret published by a home cluster."""
        return f"{cls.CREDENTIAL_SECRET_PREFIX}{home_cluster_id}"
