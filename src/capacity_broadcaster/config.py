"""Configuration for the capacity broadcaster."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from capacity_broadcaster.domains.peering.models import SharingConfig
from capacity_broadcaster.domains.resources.labels import LabelPolicy
from capacity_broadcaster.domains.resources.prices import PricingPolicyName


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class APIServerConfig(BaseModel):
    """How a foreign cluster reaches the API server of the home cluster."""

    address: str | None = Field(
        default=None,
        description="Externally reachable API server address (local client host if unset)",
    )
    port: str = Field(default="6443", description="API server port")
    trusted_ca: bool = Field(
        default=False,
        description="API server certificate is publicly trusted; do not embed the CA",
    )


class BroadcasterConfig(BaseSettings):
    """Configuration for one broadcaster instance.

    Loaded from environment variables with BROADCASTER_ prefix
    or from a .env file. CLI flags override both.
    """

    model_config = SettingsConfigDict(
        env_prefix="BROADCASTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Identity
    home_cluster_id: str = Field(default="", description="Identity of the home cluster")
    peering_request_name: str = Field(
        default="", description="PeeringRequest naming the foreign cluster"
    )

    # Home cluster access
    local_kubeconfig_path: str | None = Field(
        default=None,
        description="Kubeconfig for the home cluster (in-cluster config if unset)",
    )
    service_account_name: str = Field(
        default="", description="Service account embedded in the outgoing kubeconfig"
    )
    service_account_namespace: str = Field(
        default="liqo", description="Namespace of the service account"
    )
    api_server: APIServerConfig = Field(
        default_factory=APIServerConfig,
        description="API server address advertised to the foreign cluster",
    )

    # Sharing policy
    cluster_config_name: str = Field(
        default="configuration",
        description="ClusterConfig holding the sharing settings",
    )
    resource_sharing_percentage: int = Field(
        default=30,
        ge=0,
        le=100,
        description="Share of allocatable resources offered when no ClusterConfig exists",
    )
    label_policies: list[LabelPolicy] = Field(
        default_factory=list,
        description="Label policies used when no ClusterConfig exists",
    )
    pricing_policy: PricingPolicyName = Field(
        default=PricingPolicyName.FLAT,
        description="How prices are computed",
    )

    # Timing
    broadcast_interval_seconds: float = Field(
        default=600, gt=0, description="Period between two broadcasts"
    )
    retry_backoff_seconds: float = Field(
        default=60, ge=0, description="Pause before retrying a failed broadcast"
    )
    connect_attempts: int = Field(
        default=3, ge=1, description="Attempts to build the foreign cluster client"
    )
    connect_backoff_seconds: float = Field(
        default=60, ge=0, description="Pause between two connection attempts"
    )
    advertisement_ttl_seconds: int = Field(
        default=1800, gt=0, description="Validity of a published Advertisement"
    )
    watch_timeout_seconds: int = Field(
        default=300, gt=0, description="Server-side timeout of one remote watch"
    )

    # Logging
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    @property
    def default_sharing(self) -> SharingConfig:
        """Sharing settings used when the ClusterConfig is absent."""
        return SharingConfig(
            sharing_percentage=self.resource_sharing_percentage,
            label_policies=list(self.label_policies),
        )

    def validate_startup_config(self) -> list[str]:
        """Validate the configuration before starting.

        Returns:
            List of warning messages.

        Raises:
            ValueError: If required options are missing.
        """
        missing = [
            name
            for name in ("home_cluster_id", "peering_request_name", "service_account_name")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Missing required options: {', '.join(missing)}")

        warnings = []
        if self.local_kubeconfig_path:
            warnings.append(
                f"Using kubeconfig {self.local_kubeconfig_path} for the home cluster. "
                "This is meant for debugging only."
            )
        if not self.api_server.address:
            warnings.append(
                "No API server address configured; the foreign cluster will be given "
                "the address used by the local client."
            )
        return warnings


def get_config() -> BroadcasterConfig:
    """Load configuration from the environment."""
    return BroadcasterConfig()
