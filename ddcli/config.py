"""Datadog credentials and site configuration.

Configuration
-------------
Values are resolved in this order, later sources winning:
1. ``~/.ddcli.json`` written by ``ddcli configure``
2. environment variables ``DD_API_KEY``, ``DD_APP_KEY``, ``DD_SITE``
   (a ``.env`` file found from the working directory is loaded first, without
   overriding variables that are already set)
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".ddcli.json"
DEFAULT_SITE = "datadoghq.com"

ENV_API_KEY = "DD_API_KEY"
ENV_APP_KEY = "DD_APP_KEY"
ENV_SITE = "DD_SITE"


class Config(BaseModel):
    """Datadog authentication and site."""

    api_key: str = ""
    app_key: str = ""
    site: str = ""  # e.g. "datadoghq.com", "datadoghq.eu", "us5.datadoghq.com"

    @property
    def base_url(self) -> str:
        """API base URL derived from the site."""
        return f"https://api.{self.site or DEFAULT_SITE}"

    def validate_credentials(self) -> None:
        """Raise ConfigError if a key is missing."""
        if not self.api_key:
            raise ConfigError(
                f"{ENV_API_KEY} is not set (use `ddcli configure` or set the {ENV_API_KEY} env var)"
            )
        if not self.app_key:
            raise ConfigError(
                f"{ENV_APP_KEY} is not set (use `ddcli configure` or set the {ENV_APP_KEY} env var)"
            )


def config_path() -> Path:
    return Path.home() / CONFIG_FILE_NAME


def _load_file(path: Path) -> Config:
    """Read the config file; a missing or unreadable file yields empty defaults."""
    try:
        return Config.model_validate_json(path.read_text())
    except FileNotFoundError:
        return Config()
    except (OSError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return Config()


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from the config file and environment.

    Parameters
    ----------
    path : Optional[Path]
        Config file to read (default: ``~/.ddcli.json``).

    Returns
    -------
    Config
        Merged configuration; ``site`` is never empty.
    """
    load_dotenv(find_dotenv(usecwd=True), override=False)

    cfg = _load_file(path or config_path())

    overrides = {
        "api_key": os.getenv(ENV_API_KEY),
        "app_key": os.getenv(ENV_APP_KEY),
        "site": os.getenv(ENV_SITE),
    }
    cfg = cfg.model_copy(update={k: v for k, v in overrides.items() if v})

    if not cfg.site:
        cfg = cfg.model_copy(update={"site": DEFAULT_SITE})
    return cfg


def save_config(cfg: Config, path: Optional[Path] = None) -> Path:
    """Write ``cfg`` as indented JSON readable only by the owner.

    Returns
    -------
    Path
        The file written.
    """
    path = path or config_path()
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(json.dumps(cfg.model_dump(), indent=2))
        os.chmod(path, 0o600)
    except OSError as e:
        raise ConfigError(f"saving config: {e}") from e

    logger.info(f"Saved config to {path}")
    return path
