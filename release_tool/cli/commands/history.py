"""History command implementation"""

import sys

import click

from ..utils.output import format_history, print_error
from ...api.exceptions import ReleaseToolError


@click.command()
@click.option('--name', required=True, help='Application name')
@click.option('--limit', type=click.IntRange(min=1), help='Show only the most recent entries')
@click.pass_context
def history(ctx, name, limit):
    """Show the deployment log"""
    try:
        entries = ctx.obj.deployer().history(name, limit)
    except ReleaseToolError as e:
        print_error(e)
        sys.exit(e.exit_code)

    format_history(entries)
