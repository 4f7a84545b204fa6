"""Error types raised by the duct topology computation."""


class DuctTopologyError(Exception):
    """Base class for all errors raised while computing duct structures."""


class ConfigurationError(DuctTopologyError, ValueError):
    """Parameters are inconsistent or cannot be resolved.

    Raised before any computation starts.
    """


class GeometryError(DuctTopologyError, ValueError):
    """A polygon or triangulation operation failed on degenerate input."""


class InvariantViolation(DuctTopologyError, RuntimeError):
    """A traced loop did not close or refinement did not reach a fixed point."""
