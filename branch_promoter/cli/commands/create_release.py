"""
Create-release command implementation.

Thin CLI layer that delegates to ReleaseManager for business logic.
"""

import click

from branch_promoter.repo import Repo
from branch_promoter.exceptions import PromotionError
from branch_promoter.cli.errors import CommandError


@click.command('create-release')
@click.pass_context
def create_release(ctx) -> None:
    """
    Create the next release branch (release/A, release/B, ... release/Z).

    The next letter follows the highest existing release/<LETTER> branch,
    local or remote. The branch is cut from the pipeline root stage branch,
    pushed with upstream tracking, and the original branch is checked out
    again. An existing release branch is only checked out.
    """
    try:
        repo = Repo(**(ctx.obj or {}))
        result = repo.release_manager.create_release()
    except PromotionError as e:
        raise CommandError(e)
    except Exception as e:
        raise click.ClickException(f"Unexpected error: {e}")

    click.echo()
    if result['created']:
        click.echo(f"✓ Created release branch: {result['branch']} (from {result['base_branch']})")
    else:
        click.echo(f"✓ Release branch already existed: {result['branch']}")
    if result['pushed']:
        click.echo("✓ Pushed with upstream tracking")
    click.echo(f"✓ Back on branch: {result['on_branch']}")
