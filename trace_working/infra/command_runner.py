"""
Runs the user's verification command against the current working tree.
"""

import logging
import shlex
import subprocess
import time
from typing import List, Optional, Sequence, Union

from ..domain.outcome import Decision, VerificationOutcome

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


class VerificationRunner:
    """
    Launches the verification command and classifies how it ended.

    Exit status 0 is PASSED, any other status is FAILED, and a process that
    could not be started at all is COMMAND_ERROR. Output is captured for
    display only.

    In direct mode a string command is split with shlex and executed
    without a shell; in shell mode it is handed to ``/bin/sh -c``. A
    missing program under the shell is the shell's own exit 127, which is
    FAILED like any other status.
    """

    def __init__(
        self,
        use_shell: bool = False,
        timeout: Optional[float] = None,
        shell_executable: str = "/bin/sh"
    ):
        self.use_shell = use_shell
        self.timeout = timeout or None
        self.shell_executable = shell_executable

    def _argv(self, command: Command) -> List[str]:
        if self.use_shell:
            if not isinstance(command, str):
                command = shlex.join(command)
            return [self.shell_executable, '-c', command]
        if isinstance(command, str):
            return shlex.split(command)
        return list(command)

    def run(self, command: Command, working_dir: str) -> VerificationOutcome:
        """
        Run the command with working_dir as its current directory.

        Blocks until the process exits (or the timeout, if one is set,
        expires). KeyboardInterrupt kills the child and propagates.
        """
        try:
            argv = self._argv(command)
        except ValueError as e:
            return VerificationOutcome.command_error(f"cannot parse command: {e}")
        if not argv or not argv[0]:
            return VerificationOutcome.command_error("Empty verification command")

        logger.debug(f"Running command: {argv if not self.use_shell else argv[-1]}")
        started = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                cwd=working_dir,
                capture_output=True,
                text=True,
                errors='replace',
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            return VerificationOutcome(
                Decision.FAILED,
                detail=f"timed out after {self.timeout:g}s",
                stdout=_text(e.stdout),
                stderr=_text(e.stderr),
                duration=time.monotonic() - started,
            )
        except FileNotFoundError:
            return VerificationOutcome.command_error(f"command not found: {argv[0]}")
        except PermissionError:
            return VerificationOutcome.command_error(f"permission denied: {argv[0]}")
        except OSError as e:
            return VerificationOutcome.command_error(f"could not launch {argv[0]}: {e}")

        duration = time.monotonic() - started
        code = proc.returncode
        if code == 0:
            logger.debug("Command succeeded")
            return VerificationOutcome(
                Decision.PASSED, exit_code=0, detail="exit 0",
                stdout=proc.stdout, stderr=proc.stderr, duration=duration,
            )

        if code < 0:
            detail = f"terminated by signal {-code}"
        else:
            detail = f"exit {code}"
        logger.debug(f"Command failed with {detail}")
        if proc.stderr:
            logger.debug(f"Command stderr: {proc.stderr.rstrip()}")
        return VerificationOutcome(
            Decision.FAILED, exit_code=code, detail=detail,
            stdout=proc.stdout, stderr=proc.stderr, duration=duration,
        )


def _text(data: Union[bytes, str, None]) -> str:
    # TimeoutExpired carries bytes even when text=True was requested
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors='replace')
    return data
