"""
Commands module for branch-promoter CLI

Provides all individual command implementations.
"""

from .promote import promote
from .pull_request import pull_request
from .create_release import create_release

# Registry of all available commands
ALL_COMMANDS = {
    'promote': promote,
    'pull-request': pull_request,
    'create-release': create_release,
}

__all__ = [
    'promote',
    'pull_request',
    'create_release',
    'ALL_COMMANDS'
]
