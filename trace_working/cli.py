#!/usr/bin/env python3
"""
trace-working: find the last commit where a file still worked.
"""

import logging

import click

from trace_working import __version__
from trace_working.cli_utils import add_common_options, handle_errors
from trace_working.command_template import pytest_command
from trace_working.config import configure_logging, load_config
from trace_working.exit_codes import NO_WORKING_COMMIT, SUCCESS
from trace_working.format_utils import format_output, format_jsonl
from trace_working.render import render_event, render_events_table, render_result
from trace_working.services.trace_service import TraceOptions, TraceService

logger = logging.getLogger("trace_working")


@click.command(name='trace-working')
@click.option('-f', '--file', 'file_path', required=True,
              help='Path to the file to check, relative to the repository root')
@click.option('-c', '--cmd', 'command', default=None,
              help='Command to run; {file} is replaced by the path, otherwise the path is appended')
@click.option('--pytest', 'pytest_expr', is_flag=False, flag_value='', default=None, metavar='[EXPR]',
              help='Shorthand for "pytest -x -q FILE", optionally with -k EXPR')
@click.option('-r', '--repo-path', default='.', show_default=True,
              type=click.Path(exists=True, file_okay=False),
              help='Path to the Git repository')
@click.option('-R', '--restore/--no-restore', default=None,
              help='Restore the original HEAD after completion [default: restore]')
@click.option('--shell/--no-shell', default=None,
              help='Run the command through /bin/sh -c instead of executing it directly')
@click.option('--stash', is_flag=True, default=None,
              help='Stash uncommitted changes first and re-apply them after restoring')
@click.option('--max-commits', type=click.IntRange(min=0), default=None,
              help='Visit at most this many commits (0 = whole history)')
@click.option('--timeout', type=click.FloatRange(min=0), default=None,
              help='Seconds before a verification run counts as failed (0 = no limit)')
@add_common_options('verbose', 'format')
@click.version_option(version=__version__, prog_name='trace-working')
@handle_errors
def cli(file_path, command, pytest_expr, repo_path, restore, shell, stash,
        max_commits, timeout, verbose, output_format):
    """Trace the last Git commit where a specific script was working fine.

    Walks history backwards from HEAD. Every commit that contains FILE is
    checked out and the command is run; the first commit where it exits
    with status 0 is reported. HEAD is restored afterwards.

    Examples:

    \b
        trace-working -f tools/report.py -c "python"
        trace-working -f tests/test_api.py --pytest "login"
        trace-working -f app.py -c "make check FILE={file}" --shell
        trace-working -f app.py -c "python" --format jsonl
    """
    if command is not None and pytest_expr is not None:
        raise click.UsageError("Use either --cmd or --pytest, not both")
    if command is None and pytest_expr is None:
        raise click.UsageError("One of --cmd or --pytest is required")
    if pytest_expr is not None:
        command = pytest_command(pytest_expr or None)

    config = load_config()
    configure_logging(verbose=verbose, config=config)
    logger.info("Starting trace-working")

    options = TraceOptions.from_config(
        config,
        file=file_path,
        command=command,
        repo_path=repo_path,
        restore=restore,
        use_shell=shell,
        stash=stash or None,
        max_commits=max_commits,
        timeout=timeout,
    )
    logger.debug(f"Options: {options}")

    service = TraceService(config=config)

    if output_format == 'text':
        result = service.run(options, on_event=lambda event: render_event(event, verbose))
        if verbose:
            render_events_table(service.events)
        render_result(result, file_path)
    elif output_format == 'jsonl':
        # Stream events as they happen
        def emit(event):
            for line in format_jsonl([event.to_dict()]):
                click.echo(line)
        result = service.run(options, on_event=emit)
        for line in format_jsonl([result.to_dict()]):
            click.echo(line)
    else:
        result = service.run(options)
        records = [event.to_dict() for event in service.events] + [result.to_dict()]
        for chunk in format_output(iter(records), output_format):
            click.echo(chunk)

    if result.restore_warning:
        click.echo(f"Warning: {result.restore_warning}", err=True)

    return SUCCESS if result.success else NO_WORKING_COMMIT


def main():
    cli()


if __name__ == "__main__":
    main()
