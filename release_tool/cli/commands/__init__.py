"""CLI commands"""

from . import setup_command
from . import deploy
from . import rollback
from . import status
from . import history

__all__ = [
    "setup_command",
    "deploy",
    "rollback",
    "status",
    "history",
]
