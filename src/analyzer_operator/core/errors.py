"""
Error taxonomy.

We separate error types so callers can react correctly.
Example:
ValidationError should block before any object is synchronized.
ConflictError should be retried locally with a bound.
AlreadyExists and NotFound are success for create and delete respectively.
PersistenceError aborts the pass and waits for the next trigger.

Dependency not ready is not an error. It is a soft stop outcome of a step.
"""


class OperatorError(Exception):
    """Base class for all operator exceptions."""


class ValidationError(OperatorError):
    """Raised when a spec is contradictory, for example engine set for the wrong backend."""


class ConfigurationError(OperatorError):
    """Raised when the environment or a referenced object makes the spec unusable."""


class PersistenceError(OperatorError):
    """Raised when a derived default or status could not be written back."""


class StoreError(OperatorError):
    """
    Raised by object store adapters for failures they cannot classify further.

    Adapters must raise one of the subclasses below when the backend reports
    the matching outcome, because the synchronizer depends on telling them apart.
    """


class ConflictError(StoreError):
    """Raised when a patch lost an optimistic concurrency race."""


class AlreadyExists(StoreError):
    """Raised when create finds an object with the same identity key."""


class NotFound(StoreError):
    """Raised when an object with the given identity key does not exist."""


class ChannelFull(OperatorError):
    """Raised when a bounded send with a timeout could not enqueue in time."""


class ChannelClosed(OperatorError):
    """Raised when sending on a closed signal channel."""
