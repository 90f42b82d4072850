"""
Promote command implementation.

Thin CLI layer that delegates to PromotionManager for business logic.
"""

from typing import Tuple

import click

from branch_promoter import utils
from branch_promoter.repo import Repo
from branch_promoter.exceptions import ConfigError, PromotionError, UsageError
from branch_promoter.promotion_manager import NOTHING_TO_PROMOTE
from branch_promoter.cli.errors import CommandError


def display_promotion_result(result: dict) -> None:
    "Final status lines shared by promote and pull-request."
    click.echo()
    if result['status'] == NOTHING_TO_PROMOTE:
        click.echo("Nothing to promote. Exiting.")
        return
    request = result['request']
    click.echo("✅ Promotion process completed!")
    click.echo(f"   Promotion branch: {utils.Color.bold(result['promotion_branch'])}")
    click.echo(f"   Commits promoted: {result['commits_ahead']}")
    click.echo(f"   Ready to merge into: {request.target_branch}")
    if result['pr_url']:
        click.echo(f"   Pull request: {result['pr_url']}")
    click.echo(f"   Back on branch: {result['on_branch']}")


@click.command('promote')
@click.argument('branches', nargs=-1, metavar='[SOURCE_BRANCH]')
@click.pass_context
def promote(ctx, branches: Tuple[str, ...]) -> None:
    """
    Promote a branch to the initial pipeline stage.

    SOURCE_BRANCH defaults to the current branch. The target is the branch
    of the stage whose previous is null in the pipeline file.

    \b
    Workflow:
        1. Check out SOURCE_BRANCH and fast-forward it from the remote
        2. Create or update promotion__<source>__<target>, rebased on the source
        3. If origin/<target> already has every source commit, clean up
           the promotion branch created by this run and exit
        4. Otherwise push it (--force-with-lease) and open a pull request
           with the GitHub CLI (gh) when available

    \b
    Examples:
        $ promote-dev promote feature/my-feature
        $ promote-dev promote release
        $ promote-dev promote                 # current branch as source

    \b
    Exit codes:
        0 success (including nothing to promote), 1 usage error,
        2 configuration error, 3 git failure
    """
    try:
        repo = Repo(**(ctx.obj or {}))
        manager = repo.promotion_manager
        request = manager.resolve_promote(branches)
        result = manager.promote(request)
    except (UsageError, ConfigError) as e:
        raise CommandError(e, usage=ctx.get_help())
    except PromotionError as e:
        raise CommandError(e)
    except Exception as e:
        raise click.ClickException(f"Unexpected error: {e}")

    display_promotion_result(result)
