"""
PR-hosting capability backed by the GitHub CLI (gh).

The promotion workflow treats every call here as best-effort: absence of
the executable or any failure is reported to the caller as
PullRequestError and never fails a promotion.
"""

import re
import shutil
import subprocess
from typing import List, Optional

from .exceptions import PullRequestError


class GitHubCLI:
    """
    Thin wrapper over `gh pr create` / `gh pr view`.

    Examples:
        host = GitHubCLI(cwd=repo.base_dir)
        if host.is_available():
            url = host.create_pull_request(
                base="main", head="promotion__uat__main",
                title="[Promote] uat → main", body="...")
    """

    EXECUTABLE = 'gh'
    GH_CLI_TIMEOUT = 60
    GH_QUERY_TIMEOUT = 30

    def __init__(self, cwd=None, executable: Optional[str] = None):
        self._cwd = cwd
        self._executable = executable or self.EXECUTABLE

    def is_available(self) -> bool:
        "Returns True if the gh executable is on PATH."
        return shutil.which(self._executable) is not None

    def _run(self, args: List[str], timeout: int) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self._executable] + args,
                cwd=self._cwd,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=timeout,
            )
        except FileNotFoundError:
            raise PullRequestError(f"{self._executable} CLI not found. Install from https://cli.github.com/")
        except subprocess.TimeoutExpired:
            raise PullRequestError(f"{self._executable} timed out after {timeout} seconds")

    def create_pull_request(self, base: str, head: str, title: str, body: str) -> str:
        """
        Create a pull request from `head` into `base`.

        When a PR already exists for `head`, its URL is returned instead.

        Returns:
            str: URL of the pull request

        Raises:
            PullRequestError: If gh is missing or the creation fails
        """
        result = self._run(
            ['pr', 'create', '--base', base, '--head', head, '--title', title, '--body', body],
            timeout=self.GH_CLI_TIMEOUT)

        if result.returncode != 0:
            if 'already exists' in result.stderr.lower():
                existing_url = self.pull_request_url(head)
                if existing_url:
                    return existing_url
            raise PullRequestError(
                f"Failed to create pull request: {result.stderr.strip()}",
                context={'base': base, 'head': head})

        pr_url = result.stdout.strip()
        match = re.search(r'https?://\S+/pull/\d+', result.stdout)
        if match:
            pr_url = match.group(0)
        return pr_url

    def pull_request_url(self, head: str) -> Optional[str]:
        "URL of the open pull request for `head`, None if it cannot be found."
        result = self._run(['pr', 'view', head, '--json', 'url', '--jq', '.url'],
                           timeout=self.GH_QUERY_TIMEOUT)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None
