"""
Exception hierarchy for branch-promoter.

Exception Hierarchy:
    PromotionError (base)
    ├── UsageError (bad argument count/shape)
    ├── ConfigError (pipeline or settings cannot be resolved)
    ├── CheckoutError (branch switch impossible)
    ├── SyncConflictError (non-fast-forward pull)
    ├── RebaseConflictError (rebase cannot auto-apply)
    ├── PublishError (push rejected by remote)
    ├── ReleaseError (release series cannot advance)
    └── PullRequestError (PR host failure, best-effort only)

Every error carries the process exit code the CLI uses for it.

Usage:
    >>> try:
    ...     repo.promotion_manager.promote(request)
    ... except PromotionError as e:
    ...     print(f"{e} (exit {e.exit_code})")
"""


class PromotionError(Exception):
    """
    Base exception for all promotion operations.

    Attributes:
        message (str): Human-readable error message
        context (dict): Additional context information (branch names, remote...)
        exit_code (int): Process exit status used by the CLI
    """

    exit_code = 3

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class UsageError(PromotionError):
    """Raised when a command receives the wrong number of arguments."""

    exit_code = 1


class ConfigError(PromotionError):
    """
    Raised when the pipeline configuration or the settings file cannot be
    used to resolve source/target branches.

    Covers:
    - Missing or unreadable pipeline file
    - Invalid JSON or schema
    - Zero or several root stages (previous == null)
    - Cycles in the previous chain
    - Undeterminable source branch (detached HEAD)
    """

    exit_code = 2


class CheckoutError(PromotionError):
    """Raised when the working tree cannot be switched to a branch."""


class SyncConflictError(PromotionError):
    """Raised when a pull cannot fast-forward the local branch."""


class RebaseConflictError(PromotionError):
    """
    Raised when rebasing the promotion branch stops on a conflict.

    The rebase is left in progress: resolve it by hand
    (git rebase --continue) or drop it (git rebase --abort).
    """


class PublishError(PromotionError):
    """Raised when the remote rejects the promotion branch push."""


class ReleaseError(PromotionError):
    """Raised when the release/<LETTER> series cannot produce a next branch."""

    exit_code = 2


class PullRequestError(PromotionError):
    """Raised by the PR host. Callers treat PR creation as best-effort."""
