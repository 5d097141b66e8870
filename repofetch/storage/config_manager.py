"""
Manages loading and validation of the dnf-style INI configuration file.
"""

import configparser
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from repofetch.exceptions import ConfigurationError
from repofetch.models.config import REMOTE_OPTION_NAMES, ConfigMain, ConfigRepo

log = logging.getLogger(__name__)

MAIN_SECTION = "main"


@dataclass
class LoadedConfig:
    """The global configuration together with every repository defined beside it."""

    main: ConfigMain
    repos: dict[str, ConfigRepo] = field(default_factory=dict)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = Path(config_file_path)
        # Passwords may contain '%', so values are taken literally
        self._parser = configparser.ConfigParser(interpolation=None)

    def load(self, cli_options: dict[str, Any] | None = None) -> LoadedConfig:
        """
        Loads the configuration file, applies CLI overrides, and validates it.

        Args:
            cli_options: Remote options provided via the command line. They apply
            to `[main]` and are therefore inherited by every repository.

        Returns:
            The validated global and repository configurations.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        main_values = self._section_as_dict(MAIN_SECTION)
        if cli_options:
            main_values.update(cli_options)

        try:
            main = ConfigMain(**main_values)
        except ValidationError as e:
            raise ConfigurationError(
                f"Validation of [{MAIN_SECTION}] failed:\n{e}"
            ) from e

        repos = {}
        for repo_id in self._parser.sections():
            if repo_id == MAIN_SECTION:
                continue
            try:
                repos[repo_id] = ConfigRepo.from_main(
                    main, repo_id, **self._section_as_dict(repo_id)
                )
            except ValidationError as e:
                raise ConfigurationError(
                    f"Validation of repository [{repo_id}] failed:\n{e}"
                ) from e
            log.debug(f"Loaded repository '{repo_id}'.")

        return LoadedConfig(main=main, repos=repos)

    def get_repo(
        self, repo_id: str, cli_options: dict[str, Any] | None = None
    ) -> ConfigRepo:
        """Loads the configuration and returns a single repository."""
        config = self.load(cli_options)
        try:
            return config.repos[repo_id]
        except KeyError:
            known = ", ".join(sorted(config.repos)) or "none"
            raise ConfigurationError(
                f"Unknown repository '{repo_id}' (configured: {known})."
            ) from None

    def _section_as_dict(self, section: str) -> dict[str, Any]:
        """Reads one section into a dictionary, dropping keys that are not options."""
        if not self._parser.has_section(section):
            return {}
        allowed = set(REMOTE_OPTION_NAMES)
        if section != MAIN_SECTION:
            allowed |= set(ConfigRepo.model_fields) - {"id"}

        values = {}
        for key, value in self._parser.items(section):
            if key in allowed:
                values[key] = value
            else:
                log.debug(f"Ignoring unknown option '{key}' in [{section}].")
        return values
