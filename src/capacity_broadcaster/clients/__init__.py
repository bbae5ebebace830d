"""Kubernetes client access for the capacity broadcaster."""

from capacity_broadcaster.clients.base import CoreResources, CRDDefinition, K8sClient

__all__ = ["CoreResources", "CRDDefinition", "K8sClient"]
