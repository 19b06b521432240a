"""
Standard exit codes and error types for trace-working.

Following Unix/POSIX conventions for command-line tools.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # A working commit was found
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NO_WORKING_COMMIT = 64   # Walk finished without a passing commit
REPOSITORY_ERROR = 65    # Repository unreadable, HEAD unresolvable, git missing
CHECKOUT_ERROR = 66      # Could not switch the working tree to a candidate
CONFIG_ERROR = 67        # Configuration file error
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for exceptions that are not TraceErrors
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': GENERAL_ERROR,
    'ValueError': USAGE_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, TraceError):
        return exc.exit_code
    if isinstance(exc, TraversalInterrupted):
        return 128 + exc.signum
    return EXCEPTION_EXIT_CODES.get(exc.__class__.__name__, GENERAL_ERROR)


class TraceError(Exception):
    """
    Base error carrying the exit code the command line should use.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class RepositoryError(TraceError):
    """Repository unreadable, corrupt, or HEAD cannot be resolved."""
    def __init__(self, message: str):
        super().__init__(message, REPOSITORY_ERROR)


class DirtyWorkingTreeError(RepositoryError):
    """Tracked files carry local modifications that a checkout would discard."""
    def __init__(self, message: str = "Working tree has uncommitted changes to tracked files"):
        super().__init__(message)


class CheckoutError(TraceError):
    """Raised when the working tree cannot be switched to a commit."""
    def __init__(self, message: str, commit: Optional[str] = None, locked: bool = False):
        super().__init__(message, CHECKOUT_ERROR)
        self.commit = commit
        self.locked = locked


class RestoreError(TraceError):
    """
    Raised when the original HEAD could not be re-applied.

    Never decides the exit code: it is reported as a warning next to the
    traversal's own result.
    """
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class ConfigError(TraceError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class TraversalInterrupted(KeyboardInterrupt):
    """
    Raised from a signal handler so that pending cleanup still runs.

    Subclasses KeyboardInterrupt so it travels the same path as Ctrl+C.
    """
    def __init__(self, signum: int):
        super().__init__(f"Interrupted by signal {signum}")
        self.signum = signum
