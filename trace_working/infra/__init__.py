"""
Infrastructure layer for trace-working.

Contains abstractions for external processes:
- GitClient: Git command execution (walk, tree lookups, checkout, stash)
- VerificationRunner: The user's verification command

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient
from .command_runner import VerificationRunner

__all__ = [
    'GitClient',
    'VerificationRunner',
]
