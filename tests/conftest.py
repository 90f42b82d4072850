"""
Shared pytest fixtures for branch_promoter tests.
"""

import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import git
import pytest

from branch_promoter.pipeline_config import PipelineConfig

PIPELINE = {
    "stages": {
        "production": {"branch": "main", "previous": None},
        "uat": {"branch": "uat", "previous": "production"},
    }
}


def configure_identity(repo: git.Repo) -> None:
    "Local identity so commits work on any CI runner."
    with repo.config_writer() as writer:
        writer.set_value('user', 'name', 'Promoter Test')
        writer.set_value('user', 'email', 'promoter@example.com')
        writer.set_value('commit', 'gpgsign', 'false')


def commit_file(repo: git.Repo, name: str, content: str, message: str = None) -> str:
    "Writes `name`, commits it and returns the new commit SHA."
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.git.add(name)
    repo.git.commit('-m', message or f'Update {name}')
    return repo.head.commit.hexsha


def remote_heads(remote_dir) -> list:
    "Branch names present in the bare remote."
    return [head.name for head in git.Repo(remote_dir).heads]


@pytest.fixture
def git_env(tmp_path):
    """
    Real git setup: a bare remote (origin) and a working clone on `main`
    holding rh/pipeline.json. A second clone (`other`) simulates pushes
    made by someone else.
    """
    remote_dir = tmp_path / 'origin.git'
    git.Repo.init(remote_dir, bare=True)

    local_dir = tmp_path / 'local'
    local = git.Repo.init(local_dir)
    configure_identity(local)
    local.git.checkout('-b', 'main')
    pipeline_file = local_dir / 'rh' / 'pipeline.json'
    pipeline_file.parent.mkdir()
    pipeline_file.write_text(json.dumps(PIPELINE, indent=2))
    local.git.add('rh/pipeline.json')
    commit_file(local, 'README.md', 'base\n', 'Initial commit')
    local.create_remote('origin', str(remote_dir))
    local.git.push('-u', 'origin', 'main')

    other_dir = tmp_path / 'other'
    other = git.Repo.clone_from(str(remote_dir), other_dir, branch='main')
    configure_identity(other)

    return SimpleNamespace(
        remote_dir=remote_dir,
        local_dir=local_dir,
        local=local,
        other_dir=other_dir,
        other=other,
    )


@pytest.fixture
def pipeline():
    return PipelineConfig.from_dict(PIPELINE)


@pytest.fixture
def mock_hgit():
    """
    Mock HGit with a working tree on feature/x where every branch
    operation succeeds and nothing exists yet.
    """
    hgit = Mock()
    hgit.current_ref = 'feature/x'
    hgit.current_branch.return_value = 'feature/x'
    hgit.branch_exists_local.return_value = False
    hgit.branch_exists_remote.return_value = False
    hgit.ref_exists.return_value = True
    hgit.count_commits.return_value = 0
    hgit.tip.return_value = 'a' * 40
    return hgit


@pytest.fixture
def mock_repo(mock_hgit, pipeline):
    """Repository mock exposing config, pipeline, hgit and pr_host."""
    repo = Mock()
    repo.config.remote = 'origin'
    repo.config.title_prefix = '[Promote]'
    repo.pipeline = pipeline
    repo.hgit = mock_hgit
    repo.pr_host = Mock()
    repo.pr_host.is_available.return_value = True
    repo.pr_host.create_pull_request.return_value = 'https://github.com/acme/app/pull/1'
    return repo


@pytest.fixture
def commit():
    "commit_file helper as a fixture: commit(repo, name, content, message=None)."
    return commit_file


@pytest.fixture
def heads_on_remote(git_env):
    "Returns a callable listing the branches of the bare remote."
    return lambda: remote_heads(git_env.remote_dir)
