"""Exception hierarchy for the control pipeline.

Per-cycle errors (InputError, FittingError, OptimizationError) are contained
within the cycle that raised them. ConfigError is fatal and only raised at
startup.
"""


class ControlError(Exception):
    """Base class for all controller errors."""


class InputError(ControlError):
    """Telemetry is missing fields, malformed, or has too few waypoints."""


class FittingError(ControlError):
    """The reference polynomial could not be fitted reliably."""


class OptimizationError(ControlError):
    """The trajectory optimizer did not converge, was infeasible, or timed out."""


class ConfigError(ControlError):
    """Invalid horizon or actuator configuration."""
