"""
ReleaseManager module for branch-promoter

Creates the next branch of the release series release/A, release/B, ...
release/Z, cut from the branch of the pipeline root stage.
"""

import re
import string
from typing import Iterable, Optional

from git.exc import GitCommandError

from branch_promoter import utils
from .exceptions import CheckoutError, PublishError, ReleaseError, SyncConflictError

RELEASE_PREFIX = 'release/'
RELEASE_PATTERN = r'^release/[A-Za-z]$'


def next_release_letter(branches: Iterable[str]) -> str:
    """
    Next letter of the release series.

    Only single-letter release/<L> branches count, case-insensitively.

    Examples:
        next_release_letter([])                          # 'A'
        next_release_letter(['release/A', 'release/c'])  # 'D'

    Raises:
        ReleaseError: If release/Z already exists
    """
    letters = [
        branch[len(RELEASE_PREFIX):].upper()
        for branch in branches
        if re.match(RELEASE_PATTERN, branch)
    ]
    if not letters:
        return 'A'
    highest = max(letters)
    if highest == 'Z':
        raise ReleaseError(
            "Existing release branches reached 'Z'. Cannot create next release letter.")
    return string.ascii_uppercase[string.ascii_uppercase.index(highest) + 1]


class ReleaseManager:
    """
    Manages the release/<LETTER> branch series.

    Examples:
        result = ReleaseManager(repo).create_release()
        print(result['branch'])   # 'release/C'
    """

    def __init__(self, repo):
        self._repo = repo

    @property
    def remote(self) -> str:
        return self._repo.config.remote

    def next_release_branch(self) -> str:
        "release/<NEXT> computed from local and remote release branches."
        hgit = self._repo.hgit
        utils.info("Detecting existing release branches...")
        local = hgit.local_branches(RELEASE_PATTERN)
        try:
            remote = hgit.remote_branches(self.remote, RELEASE_PATTERN)
        except GitCommandError as err:
            utils.warning(f"Could not list {self.remote} branches: {(err.stderr or str(err)).strip()}")
            remote = []
        return f'{RELEASE_PREFIX}{next_release_letter(set(local) | set(remote))}'

    def create_release(self) -> dict:
        """
        Create (or check out) the next release branch and return to the
        originally checked-out branch.

        Returns:
            dict: branch, base_branch, created, pushed, on_branch

        Raises:
            ReleaseError: The series is exhausted
            ConfigError: The pipeline root stage cannot be read
            CheckoutError: A branch cannot be checked out or created
            SyncConflictError: The base branch cannot be fast-forwarded
            PublishError: The new branch cannot be pushed
        """
        hgit = self._repo.hgit
        utils.info("Preparing to create next release branch...")
        original_branch = hgit.current_branch()
        utils.info(f"Original branch: {original_branch}")

        utils.info("Fetching latest refs...")
        try:
            hgit.fetch(self.remote, prune=True)
        except GitCommandError as err:
            utils.warning(f"Could not fetch {self.remote}: {(err.stderr or str(err)).strip()}")

        branch = self.next_release_branch()
        utils.info(f"Next release branch will be: {utils.Color.bold(branch)}")

        base_branch = self._repo.pipeline.root.branch
        result = {
            'branch': branch,
            'base_branch': base_branch,
            'created': False,
            'pushed': False,
        }

        try:
            utils.info(f"Checking out production branch: {base_branch}")
            hgit.checkout(base_branch)
        except GitCommandError as err:
            raise CheckoutError(f"Cannot check out '{base_branch}': {(err.stderr or str(err)).strip()}",
                                context={'branch': base_branch})
        utils.info(f"Pulling latest changes for {base_branch}...")
        try:
            hgit.pull(self.remote, base_branch)
        except GitCommandError as err:
            raise SyncConflictError(
                f"Cannot fast-forward '{base_branch}': {(err.stderr or str(err)).strip()}",
                context={'branch': base_branch})

        try:
            if hgit.branch_exists_remote(self.remote, branch):
                utils.info(f"Remote branch '{self.remote}/{branch}' already exists.")
                if hgit.branch_exists_local(branch):
                    utils.info(f"Local branch '{branch}' also exists. Checking it out.")
                    hgit.checkout(branch)
                else:
                    utils.info(f"Creating local tracking branch for '{self.remote}/{branch}'.")
                    hgit.fetch(self.remote, branch)
                    hgit.checkout_new(branch, f'{self.remote}/{branch}')
            elif hgit.branch_exists_local(branch):
                utils.info(f"Local branch '{branch}' already exists. Checking it out.")
                hgit.checkout(branch)
            else:
                utils.info(f"Creating new branch '{branch}' from {base_branch}...")
                hgit.checkout_new(branch)
                result['created'] = True
        except GitCommandError as err:
            raise CheckoutError(f"Cannot set up '{branch}': {(err.stderr or str(err)).strip()}",
                                context={'branch': branch})

        if result['created']:
            utils.info(f"Pushing '{branch}' to {self.remote} and setting upstream...")
            try:
                hgit.push_branch(self.remote, branch, set_upstream=True)
            except GitCommandError as err:
                raise PublishError(f"Push of '{branch}' to {self.remote} rejected: {(err.stderr or str(err)).strip()}",
                                   context={'branch': branch, 'remote': self.remote})
            result['pushed'] = True
            utils.info(f"Branch created and pushed: {branch}")

        result['on_branch'] = self._return_to(original_branch)
        return result

    def _return_to(self, branch: Optional[str]) -> Optional[str]:
        hgit = self._repo.hgit
        if not branch:
            return hgit.current_ref
        utils.info(f"Returning to original branch: {branch}")
        try:
            return hgit.checkout(branch)
        except GitCommandError as err:
            utils.warning(f"Could not return to '{branch}': {(err.stderr or str(err)).strip()}")
            return hgit.current_ref
