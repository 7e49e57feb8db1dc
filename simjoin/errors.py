"""Exceptions raised by the join engine."""


class SimJoinError(Exception):
    """Base class for all simjoin errors."""


class ConfigurationError(SimJoinError, ValueError):
    """Featurizer or config is unusable (raised before any work starts)."""


class ResourceExhaustion(SimJoinError, MemoryError):
    """Broadcast state does not fit the configured limits or memory."""
