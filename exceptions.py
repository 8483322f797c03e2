"""Error taxonomy shared by the store, the services and the API layer."""


class ChatServiceError(Exception):
    """Base class for all chat service errors."""


class NotFoundError(ChatServiceError):
    """Referenced thread (or message) does not exist."""


class DuplicateIdError(ChatServiceError):
    """A thread with the requested id already exists."""


class InvalidArgumentError(ChatServiceError):
    """Caller supplied an invalid value (empty title, unknown role, ...)."""


class StorageError(ChatServiceError):
    """Underlying persistence failure."""


class RemoteError(ChatServiceError):
    """The hosted model call failed (network, timeout, provider error)."""
