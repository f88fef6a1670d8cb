"""Status command implementation"""

import sys

import click

from ..utils.output import format_status, print_error
from ...api.exceptions import ReleaseToolError


@click.command()
@click.option('--name', required=True, help='Application name')
@click.pass_context
def status(ctx, name):
    """Show configuration, installed releases and process state"""
    try:
        report = ctx.obj.deployer().status(name)
    except ReleaseToolError as e:
        print_error(e)
        sys.exit(e.exit_code)

    format_status(report)
