class ConfigurationError(ValueError):
    """Raised when a problem definition is structurally invalid. Detected before solving."""


class UnknownTaskReferenceError(ConfigurationError):
    """Raised when a precedence relation points at a task id that does not exist."""


class DuplicateTaskIdError(ConfigurationError):
    """Raised when two tasks share the same id."""


class InvalidDurationError(ConfigurationError):
    """Raised when a task duration is zero or negative."""


class InvalidDemandError(ConfigurationError):
    """Raised when a task resource demand is negative."""


class InvalidResourceWindowError(ConfigurationError):
    """Raised when a resource window is inverted or has a negative capacity."""


class InternalInvariantError(RuntimeError):
    """Raised when the model builder posts a constraint over a foreign variable."""
