"Provides the HGit class"

import re
from typing import List, Optional

import git
from git.exc import GitCommandError

from branch_promoter import utils


class HGit:
    """
    Manages the git operations on the working copy.

    The working copy is process-wide shared state: only one branch can be
    checked out at a time. HGit is its single owner. `current_ref` is the
    branch checked out after the last operation, and every mutating
    operation returns the new current ref.
    """
    def __init__(self, base_dir=None):
        self.__base_dir = base_dir
        self.__git_repo: git.Repo = None
        self.__current_ref: Optional[str] = None
        if base_dir:
            self.__post_init()

    def __post_init(self):
        self.__git_repo = git.Repo(self.__base_dir)
        self.__current_ref = self.current_branch()

    def __str__(self):
        res = ['[Git]']
        res.append(f'- current branch: {self.current_ref or utils.Color.red("detached HEAD")}')
        clean = self.repos_is_clean()
        clean = utils.Color.green(clean) \
            if clean else utils.Color.red(clean)
        res.append(f'- repo is clean: {clean}')
        return '\n'.join(res)

    @property
    def current_ref(self) -> Optional[str]:
        "Branch checked out after the last operation run through HGit."
        return self.__current_ref

    def current_branch(self) -> Optional[str]:
        """
        Returns the active branch, None on a detached HEAD.

        Refreshes `current_ref` from the repository.
        """
        try:
            self.__current_ref = str(self.__git_repo.active_branch)
        except TypeError:
            # GitPython raises TypeError when HEAD is detached
            self.__current_ref = None
        return self.__current_ref

    def repos_is_clean(self):
        "Returns True if the git repository is clean, False otherwise."
        return not self.__git_repo.is_dirty(untracked_files=True)

    def has_remote(self, remote: str = 'origin') -> bool:
        "Returns True if `remote` is configured."
        return any(item.name == remote for item in self.__git_repo.remotes)

    def tip(self, ref: str) -> str:
        "Full SHA-1 of the commit `ref` points to."
        return self.__git_repo.commit(ref).hexsha

    def ref_exists(self, ref: str) -> bool:
        "Returns True if `ref` resolves to a commit (e.g. 'origin/main')."
        try:
            self.__git_repo.git.rev_parse('--verify', '--quiet', f'{ref}^{{commit}}')
            return True
        except GitCommandError:
            return False

    def checkout(self, branch_name: str) -> str:
        """
        Switch the working tree to an existing branch.

        A branch known only as <remote>/<branch_name> is created as a
        tracking branch by git itself.

        Raises:
            GitCommandError: If the branch cannot be checked out
        """
        self.__git_repo.git.checkout(branch_name)
        self.__current_ref = branch_name
        return self.__current_ref

    def checkout_new(self, branch_name: str, from_ref: Optional[str] = None) -> str:
        """
        Create `branch_name` (from `from_ref` or HEAD) and switch to it.

        Raises:
            GitCommandError: If the branch already exists or from_ref is unknown
        """
        args = ['-b', branch_name]
        if from_ref:
            args.append(from_ref)
        self.__git_repo.git.checkout(*args)
        self.__current_ref = branch_name
        return self.__current_ref

    def pull(self, remote: str, branch_name: str, ff_only: bool = True) -> Optional[str]:
        """
        Pull `branch_name` from `remote` into the current branch.

        With ff_only, a pull that would need a merge fails instead.

        Raises:
            GitCommandError: On non fast-forward history or fetch failure
        """
        args = ['--ff-only'] if ff_only else []
        self.__git_repo.git.pull(*args, remote, branch_name)
        return self.__current_ref

    def fetch(self, remote: str, branch_name: Optional[str] = None, prune: bool = False) -> None:
        """
        Fetch from `remote`, optionally a single branch.

        A single branch is fetched with an explicit refspec so that
        <remote>/<branch_name> is created or updated.
        """
        args = ['--prune'] if prune else []
        args.append(remote)
        if branch_name:
            args.append(f'+refs/heads/{branch_name}:refs/remotes/{remote}/{branch_name}')
        self.__git_repo.git.fetch(*args)

    def rebase(self, onto: str) -> str:
        """
        Rebase the current branch onto `onto`.

        An already up to date branch is left unchanged. On conflict the
        rebase stays in progress.

        Raises:
            GitCommandError: If the rebase stops on a conflict
        """
        self.__git_repo.git.rebase(onto)
        return self.__current_ref

    def count_commits(self, range_expr: str) -> int:
        "Number of commits in `range_expr` (e.g. 'origin/main..feature/x')."
        return int(self.__git_repo.git.rev_list('--count', range_expr).strip() or 0)

    def push_force_with_lease(self, remote: str, branch_name: str) -> None:
        """
        Push `branch_name`, overwriting the remote tip only if it still
        matches our last-known remote-tracking ref.

        Raises:
            GitCommandError: If the remote rejects the push
        """
        self.__git_repo.git.push('--force-with-lease', remote, f'{branch_name}:{branch_name}')

    def push_branch(self, remote: str, branch_name: str, set_upstream: bool = True) -> None:
        """
        Push branch to remote, optionally setting upstream tracking.

        Raises:
            GitCommandError: If push fails (no remote, auth issues, etc.)
        """
        args = ['-u'] if set_upstream else []
        self.__git_repo.git.push(*args, remote, branch_name)

    def delete_local_branch(self, branch_name: str) -> None:
        """
        Delete local branch (git branch -D).

        Raises:
            GitCommandError: If deletion fails (unknown or checked out branch)
        """
        self.__git_repo.git.branch('-D', branch_name)

    def delete_remote_tracking_branch(self, remote: str, branch_name: str) -> None:
        """
        Delete the local <remote>/<branch_name> tracking ref (git branch -dr).

        The branch on the remote itself is left alone.

        Raises:
            GitCommandError: If the tracking ref does not exist
        """
        self.__git_repo.git.branch('-dr', f'{remote}/{branch_name}')

    def branch_exists_local(self, branch_name: str) -> bool:
        "Returns True if refs/heads/<branch_name> exists."
        return branch_name in [head.name for head in self.__git_repo.heads]

    def branch_exists_remote(self, remote: str, branch_name: str) -> bool:
        """
        Returns True if refs/heads/<branch_name> exists on `remote`.

        Queries the remote itself (git ls-remote), not the local
        remote-tracking refs.

        Raises:
            GitCommandError: If the remote cannot be reached
        """
        try:
            self.__git_repo.git.ls_remote(
                '--exit-code', '--heads', remote, f'refs/heads/{branch_name}')
            return True
        except GitCommandError as err:
            # --exit-code: status 2 means no matching ref
            if err.status == 2:
                return False
            raise

    def local_branches(self, pattern: Optional[str] = None) -> List[str]:
        "Local branch names, filtered by the regex `pattern` when given."
        names = [head.name for head in self.__git_repo.heads]
        if pattern:
            names = [name for name in names if re.match(pattern, name)]
        return names

    def remote_branches(self, remote: str, pattern: Optional[str] = None) -> List[str]:
        """
        Branch names on `remote` (git ls-remote --heads).

        Raises:
            GitCommandError: If the remote cannot be reached
        """
        output = self.__git_repo.git.ls_remote('--heads', remote)
        names = []
        for line in output.splitlines():
            parts = line.split('\t')
            if len(parts) != 2 or not parts[1].startswith('refs/heads/'):
                continue
            names.append(parts[1][len('refs/heads/'):])
        if pattern:
            names = [name for name in names if re.match(pattern, name)]
        return names
