"""
Conversion of PromotionError into click exceptions carrying the
documented exit codes.
"""

import click

from branch_promoter.exceptions import PromotionError


class CommandError(click.ClickException):
    """click exception built from a PromotionError, optionally followed by usage."""

    def __init__(self, error: PromotionError, usage: str = None):
        super().__init__(str(error))
        self.exit_code = error.exit_code
        self.usage = usage

    def show(self, file=None):
        super().show(file)
        if self.usage:
            click.echo('', err=True)
            click.echo(self.usage, err=True)
