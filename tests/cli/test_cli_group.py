"""
Tests for the promote-dev group and the create-release command.
"""

import importlib

import pytest
from unittest.mock import patch
from click.testing import CliRunner

from branch_promoter.cli import create_cli_group
from branch_promoter.exceptions import ConfigError, PublishError, ReleaseError
from branch_promoter.utils import promoter_version

MAIN_MODULE = importlib.import_module('branch_promoter.cli.main')
CREATE_RELEASE_MODULE = importlib.import_module('branch_promoter.cli.commands.create_release')


@pytest.fixture
def runner():
    return CliRunner()


class TestGroup:

    def test_commands_registered(self):
        cli = create_cli_group()

        assert set(cli.commands) == {'promote', 'pull-request', 'create-release'}

    def test_version(self, runner):
        result = runner.invoke(create_cli_group(), ['--version'])

        assert result.exit_code == 0
        assert promoter_version() in result.output

    @patch.object(MAIN_MODULE, 'Repo')
    def test_no_command_shows_state(self, mock_repo_class, runner):
        mock_repo_class.return_value.state = '[Repository]\n- remote: origin'

        result = runner.invoke(create_cli_group(), [])

        assert result.exit_code == 0
        assert '[Repository]' in result.output
        assert 'Available commands' in result.output
        assert 'create-release' in result.output

    @patch.object(MAIN_MODULE, 'Repo', side_effect=ConfigError("Not in a git repository: /tmp"))
    def test_no_command_outside_repository(self, mock_repo_class, runner):
        result = runner.invoke(create_cli_group(), [])

        assert result.exit_code == 0
        assert 'Not in a git repository' in result.output

    def test_real_state(self, runner, git_env, monkeypatch):
        monkeypatch.chdir(git_env.local_dir)

        result = runner.invoke(create_cli_group(), [])

        assert result.exit_code == 0
        assert 'production (main)' in result.output


class TestCreateReleaseCommand:

    @patch.object(CREATE_RELEASE_MODULE, 'Repo')
    def test_created(self, mock_repo_class, runner):
        mock_repo_class.return_value.release_manager.create_release.return_value = {
            'branch': 'release/C',
            'base_branch': 'main',
            'created': True,
            'pushed': True,
            'on_branch': 'feature/x',
        }

        result = runner.invoke(create_cli_group(), ['create-release'])

        assert result.exit_code == 0
        assert 'Created release branch: release/C (from main)' in result.output
        assert 'Pushed with upstream tracking' in result.output
        assert 'Back on branch: feature/x' in result.output

    @patch.object(CREATE_RELEASE_MODULE, 'Repo')
    def test_already_existed(self, mock_repo_class, runner):
        mock_repo_class.return_value.release_manager.create_release.return_value = {
            'branch': 'release/C',
            'base_branch': 'main',
            'created': False,
            'pushed': False,
            'on_branch': 'main',
        }

        result = runner.invoke(create_cli_group(), ['create-release'])

        assert result.exit_code == 0
        assert 'Release branch already existed: release/C' in result.output
        assert 'Pushed' not in result.output

    @pytest.mark.parametrize("error,exit_code", [
        (ReleaseError("Existing release branches reached 'Z'."), 2),
        (PublishError("Push of 'release/C' to origin rejected"), 3),
    ])
    @patch.object(CREATE_RELEASE_MODULE, 'Repo')
    def test_errors(self, mock_repo_class, runner, error, exit_code):
        mock_repo_class.return_value.release_manager.create_release.side_effect = error

        result = runner.invoke(create_cli_group(), ['create-release'])

        assert result.exit_code == exit_code
        assert error.message in result.output

    def test_real_repository(self, runner, git_env, heads_on_remote, monkeypatch):
        monkeypatch.chdir(git_env.local_dir)

        result = runner.invoke(create_cli_group(), ['create-release'])

        assert result.exit_code == 0, result.output
        assert 'release/A' in heads_on_remote()


class TestConfigurationErrors:

    def test_pipeline_not_utf8_exits_2(self, runner, git_env, monkeypatch):
        (git_env.local_dir / 'rh' / 'pipeline.json').write_bytes(b'\xff\xfe{"stages": {}}')
        monkeypatch.chdir(git_env.local_dir)

        result = runner.invoke(create_cli_group(), ['promote'])

        assert result.exit_code == 2
        assert 'not valid UTF-8' in result.output
        assert 'Unexpected error' not in result.output
