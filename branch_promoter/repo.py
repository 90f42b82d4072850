"""The repo module provides the Config and Repo classes.
"""

import os
from configparser import ConfigParser, Error as ConfigParserError
from typing import Optional

from branch_promoter import utils
from branch_promoter.exceptions import ConfigError
from branch_promoter.hgit import HGit
from branch_promoter.pipeline_config import PipelineConfig
from branch_promoter.pr_host import GitHubCLI
from branch_promoter.promotion_manager import PromotionManager
from branch_promoter.release_manager import ReleaseManager

CONFIG_FILE = os.path.join('.promote', 'config')
CONFIG_SECTION = 'promote'


class Config:
    """
    Settings read from .promote/config (INI, section [promote]).

    The file is optional; every key has a default.
    """
    DEFAULTS = {
        'pipeline_file': os.path.join('rh', 'pipeline.json'),
        'remote': 'origin',
        'title_prefix': '[Promote]',
    }

    def __init__(self, base_dir, **overrides):
        self.__file = os.path.join(base_dir, CONFIG_FILE)
        self.__values = dict(self.DEFAULTS)
        if os.path.exists(self.__file):
            self.read()
        self.__values.update({key: value for key, value in overrides.items() if value})

    def read(self):
        "Reads the [promote] section over the defaults"
        config = ConfigParser()
        try:
            config.read(self.__file, encoding='utf-8')
        except ConfigParserError as err:
            raise ConfigError(f"Malformed configuration file {self.__file}: {err}")
        except UnicodeDecodeError as err:
            raise ConfigError(f"Configuration file {self.__file} is not valid UTF-8: {err}")
        if CONFIG_SECTION not in config:
            raise ConfigError(f"Missing [{CONFIG_SECTION}] section in {self.__file}")
        for key in self.DEFAULTS:
            if key in config[CONFIG_SECTION]:
                self.__values[key] = config[CONFIG_SECTION][key]

    @property
    def file(self):
        return self.__file

    @property
    def pipeline_file(self):
        return self.__values['pipeline_file']

    @property
    def remote(self):
        return self.__values['remote']

    @property
    def title_prefix(self):
        return self.__values['title_prefix']


class Repo:
    """
    The git working tree being promoted, with its settings and managers.

    Examples:
        repo = Repo()
        request = repo.promotion_manager.resolve_promote([])
        repo.promotion_manager.promote(request)
    """

    def __init__(self, base_dir=None, pipeline_file=None, remote=None):
        self.__base_dir = base_dir or self._find_base_dir()
        self.__config = Config(self.__base_dir, pipeline_file=pipeline_file, remote=remote)
        self.__pipeline: Optional[PipelineConfig] = None
        self.hgit = HGit(self.__base_dir)
        self.pr_host = GitHubCLI(cwd=self.__base_dir)
        self._promotion_manager: Optional[PromotionManager] = None
        self._release_manager: Optional[ReleaseManager] = None

    @classmethod
    def _find_base_dir(cls):
        """Walks up from the current directory to the git working tree root."""
        base_dir = os.path.abspath(os.path.curdir)
        while base_dir:
            if os.path.exists(os.path.join(base_dir, '.git')):
                return base_dir
            par_dir = os.path.split(base_dir)[0]
            if par_dir == base_dir:
                break
            base_dir = par_dir
        raise ConfigError(f"Not in a git repository: {os.path.abspath(os.path.curdir)}")

    @property
    def base_dir(self):
        "Returns the base dir of the repository"
        return self.__base_dir

    @property
    def config(self) -> Config:
        return self.__config

    @property
    def pipeline_path(self):
        return os.path.join(self.__base_dir, self.__config.pipeline_file)

    @property
    def pipeline(self) -> PipelineConfig:
        """
        Pipeline stage graph, loaded and validated on first access.

        Raises:
            ConfigError: If the pipeline file is missing or invalid
        """
        if self.__pipeline is None:
            self.__pipeline = PipelineConfig.load(self.pipeline_path)
        return self.__pipeline

    @property
    def promotion_manager(self) -> PromotionManager:
        if self._promotion_manager is None:
            self._promotion_manager = PromotionManager(self)
        return self._promotion_manager

    @property
    def release_manager(self) -> ReleaseManager:
        if self._release_manager is None:
            self._release_manager = ReleaseManager(self)
        return self._release_manager

    @property
    def state(self):
        "Returns the state (str) of the repository."
        res = [f'branch-promoter version: {utils.Color.bold(utils.promoter_version())}\n']
        res += [
            '[Repository]',
            f'- base directory: {self.__base_dir}',
        ]
        remote = self.__config.remote
        if not self.hgit.has_remote(remote):
            remote = f'{remote} {utils.Color.red("(not configured)")}'
        res.append(f'- remote: {remote}')
        res.append(str(self.hgit))
        res.append('[Pipeline]')
        try:
            pipeline = self.pipeline
            res.append(f'- stages: {pipeline}')
            res.append(f'- promotion target: {utils.Color.bold(pipeline.root.branch)}')
        except ConfigError as err:
            res.append(f'- {utils.Color.red(err)}')
        return '\n'.join(res)
