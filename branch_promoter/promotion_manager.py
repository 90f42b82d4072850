"""
PromotionManager module for branch-promoter

Creates, synchronizes and cleans up promotion branches between two
pipeline stages and opens the matching pull request:

    1. Branch Resolver   - source/target from arguments or pipeline root stage
    2. Sync Stage        - checkout source, fast-forward from the remote
    3. Reconciler        - promotion__<source>__<target> exists and is rebased
    4. Divergence Gate   - nothing ahead: clean up; otherwise push and open PR
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from git.exc import GitCommandError

from branch_promoter import utils
from .exceptions import (
    CheckoutError, ConfigError, PublishError, PullRequestError,
    RebaseConflictError, SyncConflictError, UsageError)

PROMOTION_PREFIX = 'promotion'

PROMOTED = 'promoted'
NOTHING_TO_PROMOTE = 'nothing-to-promote'


def promotion_branch_name(source_branch: str, target_branch: str) -> str:
    """
    Name of the promotion branch for a source/target pair.

    Examples:
        promotion_branch_name("feature/x", "main")  # 'promotion__feature/x__main'
    """
    return f'{PROMOTION_PREFIX}__{source_branch}__{target_branch}'


@dataclass(frozen=True)
class PromotionRequest:
    """Source and target branches of one promotion run."""
    source_branch: str
    target_branch: str

    @property
    def promotion_branch(self) -> str:
        # Recomputed on every access, never stored.
        return promotion_branch_name(self.source_branch, self.target_branch)


class BranchState(Enum):
    """Local/remote presence of the promotion branch before reconciling."""
    ABSENT = 'absent'
    REMOTE_ONLY = 'remote-only'
    LOCAL_ONLY = 'local-only'
    SYNCED = 'synced'


class ReconcileState(Enum):
    """States of the promotion branch while it is being reconciled."""
    FRESH = 'fresh'
    TRACKING = 'tracking'
    REBASED = 'rebased'


@dataclass
class Reconciliation:
    """Outcome of the reconciler for one run."""
    branch: str
    initial_state: BranchState
    state: ReconcileState
    created_this_run: bool
    tip: Optional[str] = None


def _git_message(err: GitCommandError) -> str:
    return (err.stderr or str(err)).strip()


class PromotionManager:
    """
    Manages the promotion branch lifecycle between two pipeline stages.

    Examples:
        manager = PromotionManager(repo)
        request = manager.resolve_promote([])
        result = manager.promote(request)
        if result['status'] == NOTHING_TO_PROMOTE:
            print("Up to date")
    """

    def __init__(self, repo):
        """
        Initialize PromotionManager.

        Args:
            repo: Repository instance providing hgit, config, pipeline and pr_host
        """
        self._repo = repo
        self._transitions = {
            BranchState.ABSENT: self._from_absent,
            BranchState.REMOTE_ONLY: self._from_remote_only,
            BranchState.LOCAL_ONLY: self._from_local_only,
            BranchState.SYNCED: self._from_synced,
        }

    @property
    def remote(self) -> str:
        return self._repo.config.remote

    # ---- Branch Resolver ----

    def resolve_promote(self, args: Sequence[str]) -> PromotionRequest:
        """
        Resolve the request of the `promote [source]` call site.

        The source is the argument or the current branch; the target is
        always the branch of the pipeline root stage.

        Raises:
            UsageError: More than one argument
            ConfigError: Source or target cannot be determined
        """
        args = list(args)
        if len(args) > 1:
            raise UsageError(f"promote takes at most 1 argument, got {len(args)}")
        source = args[0] if args else self._repo.hgit.current_branch()
        target = self._repo.pipeline.root.branch
        return self._build_request(source, target)

    def resolve_pull_request(self, args: Sequence[str]) -> PromotionRequest:
        """
        Resolve the request of the `pull-request [source] <target>` call site.

        Raises:
            UsageError: Zero or more than two arguments
            ConfigError: Source or target cannot be determined
        """
        args = list(args)
        if len(args) == 1:
            source = self._repo.hgit.current_branch()
            target = args[0]
        elif len(args) == 2:
            source, target = args
        else:
            raise UsageError(f"pull-request takes 1 or 2 arguments, got {len(args)}")
        return self._build_request(source, target)

    @staticmethod
    def _build_request(source: Optional[str], target: Optional[str]) -> PromotionRequest:
        if not source:
            raise ConfigError("Could not determine source branch.")
        if not target:
            raise ConfigError("Could not determine target branch.")
        return PromotionRequest(source_branch=source, target_branch=target)

    # ---- Sync Stage ----

    def sync_source(self, request: PromotionRequest) -> str:
        """
        Check out the source branch and fast-forward it from the remote.

        Returns:
            str: the current ref (the source branch)

        Raises:
            CheckoutError: The branch exists neither locally nor remotely
            SyncConflictError: The local branch cannot be fast-forwarded
        """
        hgit = self._repo.hgit
        source = request.source_branch

        utils.step(f"Step 1: Checking out source branch '{source}'...")
        try:
            on_remote = hgit.branch_exists_remote(self.remote, source)
            if hgit.branch_exists_local(source):
                hgit.checkout(source)
            elif on_remote:
                hgit.fetch(self.remote, source)
                hgit.checkout_new(source, f'{self.remote}/{source}')
            else:
                raise CheckoutError(
                    f"Branch '{source}' does not exist locally or on {self.remote}",
                    context={'branch': source})
        except GitCommandError as err:
            raise CheckoutError(f"Cannot check out '{source}': {_git_message(err)}",
                                context={'branch': source})

        utils.step("Step 2: Pulling latest changes...")
        if not on_remote:
            utils.warning(f"  '{source}' has no counterpart on {self.remote}, nothing to pull.")
            return hgit.current_ref
        try:
            return hgit.pull(self.remote, source)
        except GitCommandError as err:
            raise SyncConflictError(
                f"Cannot fast-forward '{source}' from {self.remote}/{source}. "
                f"Resolve the divergence by hand.\n{_git_message(err)}",
                context={'branch': source})

    # ---- Promotion Branch Reconciler ----

    def detect_branch_state(self, branch: str) -> BranchState:
        "Local/remote presence of `branch`, checked once, not cached."
        hgit = self._repo.hgit
        local = hgit.branch_exists_local(branch)
        remote = hgit.branch_exists_remote(self.remote, branch)
        if local and remote:
            return BranchState.SYNCED
        if remote:
            return BranchState.REMOTE_ONLY
        if local:
            return BranchState.LOCAL_ONLY
        return BranchState.ABSENT

    def reconcile(self, request: PromotionRequest) -> Reconciliation:
        """
        Ensure the promotion branch exists, tracks its remote counterpart
        when there is one, and carries the latest source commits.

        ABSENT      -> FRESH    (new branch at the source tip)
        REMOTE_ONLY -> TRACKING (local tracking branch)
        LOCAL_ONLY  -> FRESH    (stale local branch recreated)
        SYNCED      -> TRACKING (checkout + fast-forward pull)
        TRACKING    -> REBASED  (rebase onto source)
        FRESH       -> REBASED  (already at the source tip)

        Raises:
            CheckoutError: The promotion branch cannot be created or checked out
            SyncConflictError: The local promotion branch cannot be fast-forwarded
            RebaseConflictError: The rebase stopped on a conflict
        """
        branch = request.promotion_branch
        utils.step(f"Step 3: Handling promotion branch '{branch}'...")
        try:
            initial_state = self.detect_branch_state(branch)
        except GitCommandError as err:
            raise CheckoutError(f"Cannot query {self.remote} for '{branch}': {_git_message(err)}",
                                context={'branch': branch})

        if initial_state in (BranchState.ABSENT, BranchState.LOCAL_ONLY):
            self._forget_remote_tracking_ref(branch)
        state, created_this_run = self._transitions[initial_state](request)
        if state is ReconcileState.TRACKING:
            state = self._rebase(request)
        elif state is ReconcileState.FRESH:
            state = ReconcileState.REBASED

        return Reconciliation(
            branch=branch,
            initial_state=initial_state,
            state=state,
            created_this_run=created_this_run,
            tip=self._repo.hgit.tip(branch))

    def _forget_remote_tracking_ref(self, branch: str) -> None:
        """
        Drop <remote>/<branch> when the branch is gone from the remote
        (typically deleted after its pull request was merged).

        --force-with-lease compares the remote with this ref: left stale,
        it gets the push of the recreated branch rejected.
        """
        hgit = self._repo.hgit
        tracking_ref = f'{self.remote}/{branch}'
        if not hgit.ref_exists(tracking_ref):
            return
        utils.info(f"  Removing stale tracking ref '{tracking_ref}'...")
        try:
            hgit.delete_remote_tracking_branch(self.remote, branch)
        except GitCommandError as err:
            raise CheckoutError(f"Cannot remove stale ref '{tracking_ref}': {_git_message(err)}",
                                context={'branch': branch})

    def _from_absent(self, request: PromotionRequest) -> Tuple[ReconcileState, bool]:
        utils.info("  Promotion branch doesn't exist, creating new one...")
        self._checkout_new(request.promotion_branch, request.source_branch)
        return ReconcileState.FRESH, True

    def _from_remote_only(self, request: PromotionRequest) -> Tuple[ReconcileState, bool]:
        branch = request.promotion_branch
        utils.info("  Creating local tracking branch for remote promotion branch...")
        try:
            self._repo.hgit.fetch(self.remote, branch)
        except GitCommandError as err:
            raise CheckoutError(f"Cannot fetch {self.remote}/{branch}: {_git_message(err)}",
                                context={'branch': branch})
        self._checkout_new(branch, f'{self.remote}/{branch}')
        return ReconcileState.TRACKING, False

    def _from_local_only(self, request: PromotionRequest) -> Tuple[ReconcileState, bool]:
        hgit = self._repo.hgit
        branch = request.promotion_branch
        # The remote is authoritative once a promotion branch was pushed:
        # a local-only branch is a leftover and is rebuilt from the source.
        utils.warning("  Local promotion branch exists but remote doesn't, deleting local first...")
        try:
            if hgit.current_ref == branch:
                hgit.checkout(request.source_branch)
            hgit.delete_local_branch(branch)
        except GitCommandError as err:
            raise CheckoutError(f"Cannot delete stale branch '{branch}': {_git_message(err)}",
                                context={'branch': branch})
        self._checkout_new(branch, request.source_branch)
        return ReconcileState.FRESH, True

    def _from_synced(self, request: PromotionRequest) -> Tuple[ReconcileState, bool]:
        hgit = self._repo.hgit
        branch = request.promotion_branch
        utils.info("  Local promotion branch exists, switching to it...")
        try:
            hgit.checkout(branch)
        except GitCommandError as err:
            raise CheckoutError(f"Cannot check out '{branch}': {_git_message(err)}",
                                context={'branch': branch})
        utils.info("  Pulling latest changes from remote promotion branch...")
        try:
            hgit.pull(self.remote, branch)
        except GitCommandError as err:
            raise SyncConflictError(
                f"Cannot fast-forward '{branch}' from {self.remote}/{branch}. "
                f"Resolve the divergence by hand.\n{_git_message(err)}",
                context={'branch': branch})
        return ReconcileState.TRACKING, False

    def _checkout_new(self, branch: str, from_ref: str) -> str:
        try:
            return self._repo.hgit.checkout_new(branch, from_ref)
        except GitCommandError as err:
            raise CheckoutError(f"Cannot create '{branch}' from '{from_ref}': {_git_message(err)}",
                                context={'branch': branch})

    def _rebase(self, request: PromotionRequest) -> ReconcileState:
        hgit = self._repo.hgit
        branch = request.promotion_branch
        source = request.source_branch
        utils.info(f"  Rebasing promotion branch with latest changes from '{source}'...")
        before = hgit.tip(branch)
        try:
            hgit.rebase(source)
        except GitCommandError as err:
            raise RebaseConflictError(
                f"Rebasing '{branch}' onto '{source}' stopped on a conflict. "
                f"Resolve it and run 'git rebase --continue', or 'git rebase --abort'.\n"
                f"{_git_message(err)}",
                context={'branch': branch, 'onto': source})
        if hgit.tip(branch) == before:
            utils.info("  Promotion branch already up to date.")
        return ReconcileState.REBASED

    # ---- Divergence Gate & Publisher ----

    def commits_ahead(self, request: PromotionRequest) -> int:
        """
        Number of commits reachable from the source branch and absent from
        the target's remote tip (<remote>/<target>..<source>).

        A target unknown on the remote counts as nothing to promote.
        """
        hgit = self._repo.hgit
        target_ref = f'{self.remote}/{request.target_branch}'
        utils.step(f"Checking for commits between {target_ref} and {request.source_branch}...")
        try:
            hgit.fetch(self.remote, request.target_branch)
        except GitCommandError as err:
            utils.warning(f"  Could not fetch {target_ref}: {_git_message(err)}")
        if not hgit.ref_exists(target_ref):
            utils.warning(f"  {target_ref} not found, nothing to compare against.")
            return 0
        return hgit.count_commits(f'{target_ref}..{request.source_branch}')

    def cleanup(self, request: PromotionRequest, reconciliation: Reconciliation) -> None:
        """
        No-op path: return to the source branch and delete the local
        promotion branch only if this run created it. The remote is never
        touched.
        """
        hgit = self._repo.hgit
        branch = request.promotion_branch
        utils.info(f"No commits found between {self.remote}/{request.target_branch} "
                   f"and {request.source_branch}. Cleaning up.")
        self._return_to_source(request)
        if reconciliation.created_this_run:
            utils.info(f"Deleting local promotion branch '{branch}'...")
            try:
                hgit.delete_local_branch(branch)
                utils.info("Local promotion branch deleted.")
            except GitCommandError as err:
                utils.warning(f"Could not delete local branch '{branch}': {_git_message(err)}")
        else:
            utils.info("Promotion branch pre-existed; leaving it intact.")

    def publish(self, request: PromotionRequest) -> Optional[str]:
        """
        Push the promotion branch with --force-with-lease and open a pull
        request into the target branch.

        Returns:
            Optional[str]: PR URL, None when the PR could not be created

        Raises:
            PublishError: The remote rejected the push
        """
        branch = request.promotion_branch
        utils.step("Step 4: Pushing promotion branch...")
        try:
            self._repo.hgit.push_force_with_lease(self.remote, branch)
        except GitCommandError as err:
            raise PublishError(f"Push of '{branch}' to {self.remote} rejected: {_git_message(err)}",
                               context={'branch': branch, 'remote': self.remote})

        utils.step("Step 5: Creating pull request...")
        return self._open_pull_request(request)

    def pull_request_title(self, request: PromotionRequest) -> str:
        prefix = self._repo.config.title_prefix
        title = f'{request.source_branch} → {request.target_branch}'
        return f'{prefix} {title}' if prefix else title

    def pull_request_body(self, request: PromotionRequest) -> str:
        return (
            f"Automated promotion from `{request.source_branch}` to `{request.target_branch}`\n"
            f"\n"
            f"**Source Branch:** `{request.source_branch}`\n"
            f"**Target Branch:** `{request.target_branch}`\n"
            f"**Promotion Branch:** `{request.promotion_branch}`")

    def _open_pull_request(self, request: PromotionRequest) -> Optional[str]:
        host = self._repo.pr_host
        if not host.is_available():
            utils.warning("⚠️  GitHub CLI (gh) not found. Please install it to automatically create pull requests.")
            self._manual_instructions(request)
            return None
        try:
            pr_url = host.create_pull_request(
                base=request.target_branch,
                head=request.promotion_branch,
                title=self.pull_request_title(request),
                body=self.pull_request_body(request))
        except PullRequestError as err:
            utils.warning(f"⚠️  Pull request creation failed: {err}")
            self._manual_instructions(request)
            return None
        utils.info("✅ Pull request created successfully!")
        utils.info(f"   View it at: {pr_url}")
        return pr_url

    @staticmethod
    def _manual_instructions(request: PromotionRequest) -> None:
        utils.warning(f"   Create the PR manually from branch '{request.promotion_branch}' "
                      f"to '{request.target_branch}'")
        utils.warning("   Branch has been pushed and is ready for PR creation.")

    def _return_to_source(self, request: PromotionRequest) -> Optional[str]:
        "Best-effort checkout of the source branch."
        hgit = self._repo.hgit
        try:
            return hgit.checkout(request.source_branch)
        except GitCommandError as err:
            utils.warning(f"Could not return to '{request.source_branch}': {_git_message(err)}")
            return hgit.current_ref

    # ---- Full run ----

    def promote(self, request: PromotionRequest) -> dict:
        """
        Run the whole promotion for `request`.

        Returns:
            dict: status ('promoted' or 'nothing-to-promote'), request,
                promotion_branch, commits_ahead, created_this_run, pushed,
                pr_url, on_branch

        Raises:
            CheckoutError, SyncConflictError, RebaseConflictError, PublishError
        """
        utils.info("Creating promotional pull request:")
        utils.info(f"  Source branch: {request.source_branch}")
        utils.info(f"  Target branch: {request.target_branch}")
        utils.info(f"  Promotion branch: {request.promotion_branch}")
        utils.info("")

        self.sync_source(request)
        reconciliation = self.reconcile(request)
        ahead = self.commits_ahead(request)

        result = {
            'request': request,
            'promotion_branch': request.promotion_branch,
            'commits_ahead': ahead,
            'created_this_run': reconciliation.created_this_run,
            'pushed': False,
            'pr_url': None,
        }

        if ahead == 0:
            self.cleanup(request, reconciliation)
            result['status'] = NOTHING_TO_PROMOTE
            result['on_branch'] = self._repo.hgit.current_ref
            return result

        try:
            result['pr_url'] = self.publish(request)
            result['pushed'] = True
        finally:
            utils.step(f"Step 6: Returning to source branch '{request.source_branch}'...")
            self._return_to_source(request)

        result['status'] = PROMOTED
        result['on_branch'] = self._repo.hgit.current_ref
        return result
