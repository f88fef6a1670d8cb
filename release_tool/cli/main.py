# release_tool/cli/main.py
"""Main CLI entry point for release-tool"""

import sys
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from ..constants import APP_NAME, LOG_FORMAT
from ..api.deployer import Deployer
from ..core.settings import ToolSettings
from ..services.orchestrator import Orchestrator

# Import all commands
from .commands import (
    setup_command,
    deploy,
    rollback,
    status,
    history,
)

console = Console()


_QUIET_LOGGERS = ("asyncio", "aiofiles", "requests", "urllib3")


def setup_logging(verbose: bool = False, debug: bool = False, quiet: bool = False) -> None:
    """Route log records through rich

    Args:
        verbose: Show progress messages (INFO)
        debug: Show everything including supervisor commands (DEBUG)
        quiet: Drop all log output; results and errors are still printed
    """
    if quiet:
        logging.disable(logging.CRITICAL)
        return

    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    handler = RichHandler(
        console=console,
        show_time=debug,
        show_path=debug,
        rich_tracebacks=True,
        tracebacks_suppress=[click]
    )
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler])

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class Context:
    """CLI context object

    Settings are resolved lazily so that ``--help`` works with a broken
    environment.
    """

    def __init__(self, root: Optional[Path] = None):
        """Initialize CLI context"""
        self.root = root
        self.verbose: bool = False
        self.debug: bool = False

    def settings(self, **overrides) -> ToolSettings:
        """Resolve settings from the environment and command line

        Raises:
            click.UsageError: If an environment variable is invalid
        """
        try:
            return ToolSettings.from_env(root=self.root, **overrides)
        except ValueError as e:
            raise click.UsageError(str(e)) from e

    def deployer(self, **overrides) -> Deployer:
        """Deployer bound to the resolved settings"""
        return Deployer(orchestrator=Orchestrator(self.settings(**overrides)))


@click.group(name=APP_NAME)
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('-d', '--debug', is_flag=True, help='Enable debug output')
@click.option('-q', '--quiet', is_flag=True, help='Suppress all output except errors')
@click.option('--root', type=click.Path(file_okay=False, path_type=Path),
              help='Applications root directory (default: $RELEASE_TOOL_ROOT or /opt/apps)')
@click.pass_context
def cli(ctx, verbose, debug, quiet, root):
    """Release Tool - Versioned application releases on a single host

    Each application lives under ROOT/NAME with its releases installed
    side by side. A `current` symlink names the live release and is
    switched atomically on deploy and rollback.
    """
    setup_logging(verbose=verbose, debug=debug, quiet=quiet)

    ctx.obj = Context(root=root)
    ctx.obj.verbose = verbose
    ctx.obj.debug = debug


# Register commands
cli.add_command(setup_command.setup)
cli.add_command(deploy.deploy)
cli.add_command(rollback.rollback)
cli.add_command(status.status)
cli.add_command(history.history)


def main():
    """Main entry point for the CLI application

    This function handles:
    - Auto-help for incomplete commands
    - Keyboard interrupts
    - Unexpected exceptions with proper error display
    """
    try:
        # Handle help for incomplete commands
        if len(sys.argv) == 2 and sys.argv[1] not in [
            '-h', '--help', '-v', '--verbose', '-d', '--debug', '-q', '--quiet'
        ]:
            # If only command name provided, show its help
            sys.argv.append('--help')

        cli(prog_name=APP_NAME)

    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)

    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        if '--debug' in sys.argv or '-d' in sys.argv:
            console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
