"""
Turns the user's command template into something the runner can launch.

Rules:
- ``{file}`` in the template is replaced by the target path.
- Otherwise, if the template does not mention the path already, the path
  is appended as the last argument.
"""

import shlex
from typing import List, Optional, Union

PLACEHOLDER = "{file}"


def pytest_command(expression: Optional[str] = None) -> str:
    """
    Build the --pytest shorthand.

    Args:
        expression: Optional ``-k`` expression selecting tests

    Returns:
        Command template (the target file is appended later)
    """
    cmd = "pytest -x -q"
    if expression:
        cmd += f" -k {shlex.quote(expression)}"
    return cmd


def build_command(template: str, file_path: str, use_shell: bool = False) -> Union[str, List[str]]:
    """
    Render a command template for one target file.

    Args:
        template: Command as typed by the user
        file_path: Target path, relative to the repository root
        use_shell: Produce a shell string instead of an argument list

    Returns:
        A string for shell mode, an argument list otherwise

    Raises:
        ValueError: If the template is empty or cannot be tokenised
    """
    template = template.strip()
    if not template:
        raise ValueError("Verification command is empty")

    if use_shell:
        quoted = shlex.quote(file_path)
        if PLACEHOLDER in template:
            return template.replace(PLACEHOLDER, quoted)
        if file_path in template:
            return template
        return f"{template} {quoted}"

    argv = shlex.split(template)
    if not argv:
        raise ValueError("Verification command is empty")
    if any(PLACEHOLDER in arg for arg in argv):
        return [arg.replace(PLACEHOLDER, file_path) for arg in argv]
    if file_path in template:
        return argv
    return argv + [file_path]
