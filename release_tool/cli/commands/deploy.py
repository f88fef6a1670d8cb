"""Deploy command implementation"""

import sys

import click
from rich.console import Console

from ..utils.output import format_operation_result

console = Console()


@click.command()
@click.option('--name', required=True, help='Application name')
@click.option('--release', 'release_id', required=True, help='Release tag to deploy')
@click.option('--reuse', is_flag=True,
              help='Promote an already installed release instead of refusing it')
@click.option('--keep', type=click.IntRange(min=1),
              help='Releases to retain after success (default: $RELEASE_TOOL_KEEP or 5)')
@click.pass_context
def deploy(ctx, name, release_id, reuse, keep):
    """Deploy a tagged release

    Fetches the release artifact, installs it next to the existing
    releases, stops the running process, switches `current` and starts
    the new release. If the new release does not come up, the previous
    one is restored automatically.

    Examples:

        # Deploy tag v1.4.0
        release-tool deploy --name api --release v1.4.0

        # Switch back to an installed release without downloading it again
        release-tool deploy --name api --release v1.3.2 --reuse
    """
    deployer = ctx.obj.deployer(keep_releases=keep)

    console.print(f"Deploying [bold]{name}[/bold]:[cyan]{release_id}[/cyan]")
    result = deployer.deploy(name, release_id, reuse_installed=reuse)

    format_operation_result(result)
    sys.exit(result.exit_code)
