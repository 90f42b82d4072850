"""
Pipeline configuration module for branch-promoter

Parses the pipeline stage graph (rh/pipeline.json by default) once and
validates it at load time:

    {
        "stages": {
            "production": {"branch": "main", "previous": null},
            "uat": {"branch": "uat", "previous": "production"}
        }
    }

The stage whose `previous` is null is the root stage: the default target
of a promotion.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import ConfigError


@dataclass(frozen=True)
class Stage:
    """A named step of the delivery pipeline."""
    name: str
    branch: str
    previous: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.previous is None


class PipelineConfig:
    """
    Read-only view of the pipeline stage graph.

    Invariants checked by the constructor:
    - at least one stage, each with a non-empty string branch
    - previous is null or the name of another declared stage
    - exactly one root stage (previous == null)
    - no cycle in the previous chain

    Examples:
        pipeline = PipelineConfig.load("rh/pipeline.json")
        pipeline.root.branch        # 'main'
        [s.name for s in pipeline.chain()]  # ['production', 'uat']
    """

    def __init__(self, stages: Dict[str, Stage], source: str = '<memory>'):
        self._stages = dict(stages)
        self._source = source
        self._root = self._validate()

    @classmethod
    def load(cls, path) -> 'PipelineConfig':
        """
        Load and validate a pipeline file.

        Args:
            path: Path to the JSON pipeline file

        Returns:
            PipelineConfig: validated configuration

        Raises:
            ConfigError: If the file is missing, unreadable, not JSON or
                does not describe a valid stage graph
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Pipeline file not found: {path}")
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as err:
            raise ConfigError(f"Invalid JSON in pipeline file {path}: {err}")
        except UnicodeDecodeError as err:
            raise ConfigError(f"Pipeline file {path} is not valid UTF-8: {err}")
        except OSError as err:
            raise ConfigError(f"Cannot read pipeline file {path}: {err}")
        return cls.from_dict(data, source=str(path))

    @classmethod
    def from_dict(cls, data, source: str = '<memory>') -> 'PipelineConfig':
        "Builds the configuration from the decoded JSON document."
        if not isinstance(data, dict) or not isinstance(data.get('stages'), dict):
            raise ConfigError(f"Pipeline {source} must contain a 'stages' object")

        stages = {}
        for name, entry in data['stages'].items():
            if not isinstance(entry, dict):
                raise ConfigError(f"Stage '{name}' must be an object", context={'file': source})
            branch = entry.get('branch')
            if not isinstance(branch, str) or not branch.strip():
                raise ConfigError(f"Stage '{name}' has no branch", context={'file': source})
            previous = entry.get('previous')
            if previous is not None and not isinstance(previous, str):
                raise ConfigError(
                    f"Stage '{name}': previous must be a stage name or null",
                    context={'file': source})
            stages[name] = Stage(name=name, branch=branch, previous=previous)
        return cls(stages, source=source)

    def _validate(self) -> Stage:
        "Checks the graph invariants and returns the root stage."
        if not self._stages:
            raise ConfigError(f"Pipeline {self._source} declares no stage")

        for stage in self._stages.values():
            if stage.previous is not None and stage.previous not in self._stages:
                raise ConfigError(
                    f"Stage '{stage.name}' points to unknown previous stage '{stage.previous}'",
                    context={'file': self._source})

        roots = [stage for stage in self._stages.values() if stage.is_root]
        if len(roots) != 1:
            names = ', '.join(stage.name for stage in roots) or 'none'
            raise ConfigError(
                f"Pipeline must have exactly one stage with previous = null (found: {names})",
                context={'file': self._source})

        for stage in self._stages.values():
            seen = {stage.name}
            current = stage
            while current.previous is not None:
                if current.previous in seen:
                    raise ConfigError(
                        f"Cycle in previous chain starting at stage '{stage.name}'",
                        context={'file': self._source})
                seen.add(current.previous)
                current = self._stages[current.previous]

        return roots[0]

    @property
    def root(self) -> Stage:
        "The unique stage with previous == null."
        return self._root

    @property
    def stages(self) -> List[Stage]:
        "Stages in file order."
        return list(self._stages.values())

    def stage(self, name: str) -> Stage:
        try:
            return self._stages[name]
        except KeyError:
            raise ConfigError(f"Unknown pipeline stage '{name}'", context={'file': self._source})

    def successors(self, name: str) -> List[Stage]:
        "Stages whose previous is `name`."
        return [stage for stage in self._stages.values() if stage.previous == name]

    def chain(self) -> List[Stage]:
        """
        Stages ordered from the root outwards (breadth first).

        Stages sharing the same previous keep their file order.
        """
        ordered = []
        queue = [self._root]
        while queue:
            stage = queue.pop(0)
            ordered.append(stage)
            queue.extend(self.successors(stage.name))
        return ordered

    def __str__(self):
        return ' -> '.join(f'{stage.name} ({stage.branch})' for stage in reversed(self.chain()))
