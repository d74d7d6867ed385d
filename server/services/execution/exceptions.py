"""Workflow engine exception hierarchy."""


class EngineError(Exception):
    """Base exception for all engine errors."""


class BatchQueryError(EngineError):
    """The batch could not even select its due work (whole-batch failure)."""


class ProviderUnavailableError(EngineError):
    """A messaging provider could not be reached (timeout, connection reset).

    Unlike a rejected send, this is a transient fault: the advancer retries
    the node with backoff instead of moving past it.
    """

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class InvalidNodeConfigError(EngineError):
    """A node's stored config does not validate for its type.

    Retrying cannot fix a bad definition, so the execution fails at once.
    """
    def __init__(self, node_id: str, node_type: str, detail: str):
        self.node_id = node_id
        self.node_type = node_type
        super().__init__(f"Invalid {node_type} config on node {node_id}: {detail}")
