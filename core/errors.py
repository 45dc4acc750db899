"""
Error hierarchy for the PHP worker calculators.

Every error carries the process exit status the CLIs return for it, so the
scripts can map failures to statuses without inspecting message text.
"""

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2
EXIT_NO_WORKERS = 3
EXIT_PROBE_UNAVAILABLE = 4
EXIT_NO_CAPACITY = 5


class CalculatorError(Exception):
    """Base error for calculator and load test runs"""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(CalculatorError):
    """A flag, environment variable or config value failed validation."""

    exit_code = EXIT_INVALID_INPUT

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.field = field


class ConfigError(InputValidationError):
    """The configuration file is missing, unreadable or fails its schema."""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class ProbeUnavailableError(CalculatorError):
    """Total memory or CPU count could not be read from the host."""

    exit_code = EXIT_PROBE_UNAVAILABLE


class NoWorkersFoundError(CalculatorError):
    """No running process matched the worker pattern."""

    exit_code = EXIT_NO_WORKERS

    def __init__(self, pattern: str, process_label: str = "worker"):
        super().__init__(f"Could not find {process_label} processes matching pattern: {pattern}")
        self.pattern = pattern
        self.process_label = process_label


class LoadDriverError(CalculatorError):
    """The HTTP load generator is missing or could not be started."""

    exit_code = EXIT_FAILURE
