"""
Main CLI module - Creates and configures the CLI group
"""

import click

from branch_promoter import utils
from branch_promoter.repo import Repo
from branch_promoter.exceptions import PromotionError
from .commands import ALL_COMMANDS, promote, pull_request


def create_cli_group():
    """
    Creates and returns the CLI group with all commands.

    Returns:
        click.Group: Configured CLI group
    """

    @click.group(invoke_without_command=True)
    @click.option('--pipeline-file', type=str, default=None,
                  help='Pipeline file, relative to the repository root (default: rh/pipeline.json)')
    @click.option('--remote', type=str, default=None,
                  help='Git remote to fetch from and push to (default: origin)')
    @click.version_option(version=utils.promoter_version(), prog_name='branch-promoter')
    @click.pass_context
    def dev(ctx, pipeline_file, remote):
        """Promotion branches and pull requests between pipeline stages"""
        ctx.obj = {'pipeline_file': pipeline_file, 'remote': remote}
        if ctx.invoked_subcommand is None:
            # Show repo state when no subcommand is provided
            try:
                click.echo(Repo(**ctx.obj).state)
            except PromotionError as err:
                click.echo(utils.Color.red(str(err)))
            click.echo(f"\n{utils.Color.bold('Available commands:')}")
            click.echo(f"  • {utils.Color.bold('promote [source]')} - Promote to the root pipeline stage")
            click.echo(f"  • {utils.Color.bold('pull-request [source] <target>')} - Promote to an explicit branch")
            click.echo(f"  • {utils.Color.bold('create-release')} - Create the next release/<LETTER> branch")
            click.echo(f"\nTry {utils.Color.bold('promote-dev promote --help')} for more information.\n")

    for command in ALL_COMMANDS.values():
        dev.add_command(command)

    return dev


def main():
    "Entry point of promote-dev"
    create_cli_group()(prog_name='promote-dev')


def promote_main():
    "Entry point of the standalone promote command"
    promote(prog_name='promote')


def pull_request_main():
    "Entry point of the standalone pull-request command"
    pull_request(prog_name='pull-request')
