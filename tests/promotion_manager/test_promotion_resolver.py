"""
Tests for the Branch Resolver of PromotionManager.

Focused on testing:
- promote call site: 0/1 argument, target from pipeline root stage
- pull-request call site: 1/2 arguments
- UsageError / ConfigError classification
- Promotion branch naming
"""

import pytest

from branch_promoter.exceptions import ConfigError, UsageError
from branch_promoter.pipeline_config import PipelineConfig
from branch_promoter.promotion_manager import (
    PromotionManager, PromotionRequest, promotion_branch_name)


class TestPromotionBranchName:
    """Naming is a pure function of source and target."""

    @pytest.mark.parametrize("source,target", [
        ("feature/x", "main"),
        ("uat", "main"),
        ("release/A", "uat"),
        ("", ""),
        ("a__b", "c"),
    ])
    def test_name_convention(self, source, target):
        assert promotion_branch_name(source, target) == f"promotion__{source}__{target}"

    def test_request_recomputes_name(self):
        request = PromotionRequest("feature/x", "main")

        assert request.promotion_branch == "promotion__feature/x__main"

    def test_request_is_immutable(self):
        request = PromotionRequest("feature/x", "main")

        with pytest.raises(AttributeError):
            request.target_branch = "uat"


class TestResolvePromote:
    """promote [source]"""

    def test_no_argument_uses_current_branch_and_root_stage(self, mock_repo):
        """From feature/x with production/main as root stage."""
        manager = PromotionManager(mock_repo)

        request = manager.resolve_promote([])

        assert request == PromotionRequest("feature/x", "main")
        assert request.promotion_branch == "promotion__feature/x__main"

    def test_source_argument(self, mock_repo):
        manager = PromotionManager(mock_repo)

        request = manager.resolve_promote(["release"])

        assert request == PromotionRequest("release", "main")
        mock_repo.hgit.current_branch.assert_not_called()

    def test_too_many_arguments(self, mock_repo):
        manager = PromotionManager(mock_repo)

        with pytest.raises(UsageError) as exc_info:
            manager.resolve_promote(["a", "b"])
        assert exc_info.value.exit_code == 1

    def test_detached_head(self, mock_repo):
        mock_repo.hgit.current_branch.return_value = None
        manager = PromotionManager(mock_repo)

        with pytest.raises(ConfigError, match="source branch") as exc_info:
            manager.resolve_promote([])
        assert exc_info.value.exit_code == 2

    def test_invalid_pipeline(self, mock_repo):
        """Pipeline errors surface as ConfigError from the resolver."""
        def broken_pipeline():
            return PipelineConfig.from_dict({"stages": {
                "production": {"branch": "main", "previous": None},
                "hotfix": {"branch": "hotfix", "previous": None},
            }})
        type(mock_repo).pipeline = property(lambda self: broken_pipeline())
        manager = PromotionManager(mock_repo)

        with pytest.raises(ConfigError, match="exactly one stage"):
            manager.resolve_promote([])


class TestResolvePullRequest:
    """pull-request [source] <target>"""

    def test_target_only(self, mock_repo):
        manager = PromotionManager(mock_repo)

        request = manager.resolve_pull_request(["uat"])

        assert request == PromotionRequest("feature/x", "uat")

    def test_source_and_target_verbatim(self, mock_repo):
        manager = PromotionManager(mock_repo)

        request = manager.resolve_pull_request(["main", "uat"])

        assert request == PromotionRequest("main", "uat")
        mock_repo.hgit.current_branch.assert_not_called()

    @pytest.mark.parametrize("args", [[], ["a", "b", "c"]])
    def test_wrong_argument_count(self, mock_repo, args):
        manager = PromotionManager(mock_repo)

        with pytest.raises(UsageError):
            manager.resolve_pull_request(args)

    def test_empty_target(self, mock_repo):
        manager = PromotionManager(mock_repo)

        with pytest.raises(ConfigError, match="target branch"):
            manager.resolve_pull_request(["main", ""])
