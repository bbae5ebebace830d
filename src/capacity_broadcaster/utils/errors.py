"""Error types raised by the capacity broadcaster."""


class BroadcasterError(Exception):
    """Base exception for all broadcaster errors."""

    pass


class NotFoundError(BroadcasterError):
    """A requested resource does not exist."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        location = f" in namespace '{namespace}'" if namespace else ""
        super().__init__(f"{kind} '{name}' not found{location}")


class RemoteError(BroadcasterError):
    """A call against a Kubernetes API server failed.

    These failures are transient from the point of view of the control loop:
    the whole tick is retried after the configured backoff.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class ConflictError(RemoteError):
    """An update was rejected because the resource version token was stale."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        location = f" in namespace '{namespace}'" if namespace else ""
        super().__init__(f"{kind} '{name}'{location} was modified concurrently", status=409)


class ResourceExistsError(RemoteError):
    """A create was rejected because the resource already exists."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        location = f" in namespace '{namespace}'" if namespace else ""
        super().__init__(f"{kind} '{name}' already exists{location}", status=409)


class ListFailedError(RemoteError):
    """Listing nodes or pods of the local cluster failed."""

    pass


class ConfigurationError(BroadcasterError):
    """Configuration or cluster setup is invalid."""

    pass


class StartupError(BroadcasterError):
    """The broadcaster cannot start; the process should exit."""

    pass
