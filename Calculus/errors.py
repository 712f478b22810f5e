import enum


class CalculusError(ValueError):
    """Base class for every failure the engine reports to its callers.

    ``message`` is safe to show to an end user verbatim.
    """

    def __init__(self, message):
        super().__init__(message)
        self.message = message


# --- Parsing ---
class ParseError(CalculusError):
    def __init__(self, message, position=None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class UnknownFunctionError(ParseError):
    def __init__(self, name, position=None):
        super().__init__(f"Unknown function '{name}'", position)
        self.name = name


# --- Simplification / evaluation ---
class SimplificationError(CalculusError):
    pass


class DivisionByZeroError(SimplificationError):
    def __init__(self, message="Division by zero"):
        super().__init__(message)


class EvaluationError(CalculusError):
    pass


# --- Transformations ---
class IntegrationFailure(CalculusError):
    """No integration rule applies; ``subexpression`` is the piece that defeated them."""

    def __init__(self, subexpression, rendered):
        super().__init__(f"Cannot symbolically integrate: {rendered}")
        self.subexpression = subexpression


class LimitFailureKind(enum.Enum):
    INDETERMINATE = "indeterminate"
    UNSUPPORTED = "unsupported"
    NONEXISTENT = "nonexistent"


class LimitFailure(CalculusError):
    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind


class SeriesFailureKind(enum.Enum):
    SINGULAR_POINT = "singular_point"
    UNSUPPORTED_POINT = "unsupported_point"


class SeriesFailure(CalculusError):
    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind


class InternalError(RuntimeError):
    """Raised for states the closed grammar should make unreachable."""
