"""Rollback command implementation"""

import sys

import click

from ..utils.output import format_operation_result


@click.command()
@click.option('--name', required=True, help='Application name')
@click.pass_context
def rollback(ctx, name):
    """Roll back to the previous release

    Points `current` at the most recently installed release other than the
    current one and restarts the process. Running it twice returns to the
    release you started from.
    """
    result = ctx.obj.deployer().rollback(name)

    format_operation_result(result)
    sys.exit(result.exit_code)
