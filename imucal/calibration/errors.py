"""Exceptions and warnings raised by the robust calibrators.

Each exception carries a short ``code`` so callers can branch on the failure
kind without matching messages. They subclass the built-in exception that
the rest of the package raises for the same situation (``ValueError`` for
bad input, ``RuntimeError`` for state problems), so generic handlers keep
working.
"""


class CalibrationError(Exception):
    """Base class for calibration failures."""

    code = "CALIBRATION_ERROR"


class NotReadyError(CalibrationError, ValueError):
    """Required inputs are missing or inconsistent; calibration cannot start."""

    code = "NOT_READY"


class LockedError(CalibrationError, RuntimeError):
    """Calibrator is running; calibrate() and setters are rejected."""

    code = "LOCKED"


class SingularModelError(CalibrationError, ArithmeticError):
    """A subset of measurements does not determine the error matrix.

    Raised by the measurement model for collinear gravity directions, a
    rank-deficient normal matrix or a non-invertible ``I + Ma``. The robust
    loop discards the subset and resamples.
    """

    code = "SINGULAR_MODEL"


class EstimationFailedError(CalibrationError, RuntimeError):
    """No valid hypothesis was found within the iteration cap."""

    code = "NO_VALID_MODEL"


class RefinementWarning(RuntimeWarning):
    """Nonlinear refinement stopped at its iteration cap without converging."""
