"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import sys
from functools import wraps

import click

from .exit_codes import (
    SUCCESS, USAGE_ERROR,
    get_exit_code_for_exception, TraceError
)
from .format_utils import MACHINE_FORMATS

logger = logging.getLogger(__name__)


def _report(message: str, exc: BaseException, exit_code: int, machine: bool) -> None:
    click.echo(f"Error: {message}", err=True)
    if machine:
        # Keep stdout parseable for pipelines
        error_obj = {
            "type": "error",
            "error": message,
            "error_type": type(exc).__name__,
            "exit_code": exit_code,
        }
        click.echo(json.dumps(error_obj, ensure_ascii=False))


def handle_errors(func):
    """
    Decorator that turns the command's return value and errors into exit codes.

    - The wrapped function returns an exit code (None means success)
    - TraceError subclasses exit with their own code
    - ValueError (bad path, bad command template) is a usage error
    - Interrupts exit with 128 + signal number
    - Machine output formats also get a JSON error object on stdout
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        machine = kwargs.get('output_format') in MACHINE_FORMATS
        try:
            code = func(*args, **kwargs)
            sys.exit(SUCCESS if code is None else code)
        except KeyboardInterrupt as e:
            code = get_exit_code_for_exception(e)
            click.echo("Interrupted by user", err=True)
            sys.exit(code)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except TraceError as e:
            logger.debug("Run aborted", exc_info=True)
            _report(str(e), e, e.exit_code, machine)
            sys.exit(e.exit_code)
        except ValueError as e:
            _report(str(e), e, USAGE_ERROR, machine)
            sys.exit(USAGE_ERROR)

    return wrapper


# Standard options shared by the command and its tests
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                            help='Debug logging, skipped commits and command output'),
    'format': click.option('--format', 'output_format',
                           type=click.Choice(['text', 'jsonl', 'json', 'yaml']),
                           default='text', show_default=True,
                           help='Human output or machine-readable events and result'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'format')
        def my_command(verbose, output_format):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
