"""
Pull-request command implementation.

Same promotion workflow as `promote`, with an explicit target branch.
"""

from typing import Tuple

import click

from branch_promoter.repo import Repo
from branch_promoter.exceptions import ConfigError, PromotionError, UsageError
from branch_promoter.cli.errors import CommandError
from .promote import display_promotion_result


@click.command('pull-request')
@click.argument('branches', nargs=-1, metavar='[SOURCE_BRANCH] TARGET_BRANCH')
@click.pass_context
def pull_request(ctx, branches: Tuple[str, ...]) -> None:
    """
    Create a promotion pull request from SOURCE_BRANCH into TARGET_BRANCH.

    With a single argument, the current branch is the source.

    \b
    Examples:
        $ promote-dev pull-request feature/my-feature main
        $ promote-dev pull-request main uat
        $ promote-dev pull-request main       # current branch as source
    """
    try:
        repo = Repo(**(ctx.obj or {}))
        manager = repo.promotion_manager
        request = manager.resolve_pull_request(branches)
        result = manager.promote(request)
    except (UsageError, ConfigError) as e:
        raise CommandError(e, usage=ctx.get_help())
    except PromotionError as e:
        raise CommandError(e)
    except Exception as e:
        raise click.ClickException(f"Unexpected error: {e}")

    display_promotion_result(result)
