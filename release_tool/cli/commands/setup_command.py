"""Setup command implementation"""

import sys

import click

from ..utils.output import format_operation_result
from ...utils.env_utils import parse_env_args


@click.command()
@click.option('--name', required=True, help='Application name')
@click.option('--script', required=True, help='Entry script, relative to the release root')
@click.option('--source', required=True,
              help='Artifact source: OWNER/REPO, base URL or absolute directory')
@click.option('--env', 'env_items', multiple=True, metavar='FILE|KEY=VALUE',
              help='Process environment; repeatable, later values win')
@click.option('--force', is_flag=True, help='Overwrite an existing, different configuration')
@click.pass_context
def setup(ctx, name, script, source, env_items, force):
    """Provision an application

    Creates ROOT/NAME with its releases, logs and scratch directories,
    stores the configuration and writes the process manifest. Re-running
    with the same options changes nothing.

    Examples:

        # Node service fetched from releases of OWNER/REPO
        release-tool setup --name api --script server.js --source acme/api

        # Environment from a file plus an override
        release-tool setup --name api --script server.js --source acme/api \\
            --env /etc/api.env --env PORT=8080
    """
    try:
        env = parse_env_args(env_items)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="'--env'") from e

    deployer = ctx.obj.deployer()
    result = deployer.setup(
        app_name=name,
        source=source,
        script=script,
        env=env,
        force=force
    )

    format_operation_result(result)
    sys.exit(result.exit_code)
