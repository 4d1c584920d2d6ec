"""Constants used in the project."""

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    CONNECTION_ERROR = 2
    FILE_ERROR = 1
    EXIT_WARNINGS = 3


class Registries(Enum):
    """Package registries a dependency can be resolved against.

    Args:
        Enum (string): Registry identifiers stored on identities and records.
    """

    NPM = "npm"
    GITHUB = "github"
    PYPI = "pypi"
    NUGET = "nuget"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    PACKAGE_URL_NPM = "https://www.npmjs.com/package/"
    REGISTRY_URL_PYPI = "https://pypi.org/pypi/"
    PACKAGE_URL_PYPI = "https://pypi.org/project/"
    REGISTRY_URL_NUGET = "https://api.nuget.org/v3-flatcontainer/"
    PACKAGE_URL_NUGET = "https://www.nuget.org/packages/"
    GITHUB_URL = "https://github.com/"
    GITHUB_API_BASE = "https://api.github.com"
    ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
    USER_AGENT = "licensewalk/1.0"

    UNKNOWN_LICENSE = "UNKNOWN"
    LOCAL_VERSION_MARKER = "0.0.0-use.local"
    REPOSITORY_MARKER = "github:"
    ARCHIVE_URL_MARKER = "__archiveUrl="

    YARN_LOCK_FILE = "yarn.lock"
    PACKAGE_LOCK_FILE = "package-lock.json"
    PNPM_LOCK_FILE = "pnpm-lock.yaml"
    BUN_LOCK_FILE = "bun.lock"
    POETRY_LOCK_FILE = "poetry.lock"
    PYPROJECT_TOML_FILE = "pyproject.toml"
    CSPROJ_SUFFIX = ".csproj"
    SUPPORTED_LOCKFILES = [
        YARN_LOCK_FILE,
        PACKAGE_LOCK_FILE,
        PNPM_LOCK_FILE,
        BUN_LOCK_FILE,
        POETRY_LOCK_FILE,
    ]
    SKIPPED_DIRS = ["node_modules", ".yarn", "bin", "obj"]

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    LICENSE_FETCH_TIMEOUT = 10
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300
    MAX_ARCHIVE_BYTES = 50 * 1024 * 1024
    KEEP_RAW_RESPONSES = False  # set by --debug; attaches registry payloads to records

    CACHE_DIR = ".cache"
    WORKER_COUNT = 4

    CONFIG_FILE_NAMES = ["licensewalk.yml", "licensewalk.yaml", ".licensewalk.yml"]
    USER_CONFIG_PATH = os.path.join("~", ".config", "licensewalk", "config.yml")


def _positive_int(value):
    number = int(value)
    if number < 1:
        raise ValueError(f"expected a positive integer, got {number}")
    return number


# Keys a YAML config may set, mapped to the Constants attribute they override.
_CONFIG_KEYS = {
    "workers": ("WORKER_COUNT", _positive_int),
    "cache_dir": ("CACHE_DIR", str),
    "request_timeout": ("REQUEST_TIMEOUT", _positive_int),
    "retry_max": ("HTTP_RETRY_MAX", _positive_int),
    "github_token_env": ("ENV_GITHUB_TOKEN", str),
}


def _load_yaml_config(path=None):
    """Load the first configuration file found.

    Args:
        path (str, optional): Explicit config path. When omitted the default
            locations are searched in order.

    Returns:
        dict: Parsed configuration, empty when no file was found or readable.
    """
    import yaml  # pylint: disable=import-outside-toplevel

    candidates = [path] if path else [
        *Constants.CONFIG_FILE_NAMES,
        os.path.expanduser(Constants.USER_CONFIG_PATH),
    ]
    for candidate in candidates:
        if not candidate or not os.path.isfile(candidate):
            continue
        try:
            with open(candidate, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Could not read config file %s: %s", candidate, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config file %s: top level is not a mapping", candidate)
            return {}
        logger.debug("Loaded configuration from %s", candidate)
        return data
    return {}


def apply_config(cfg):
    """Apply recognised keys of a loaded config onto Constants.

    Args:
        cfg (dict): Parsed configuration.

    Returns:
        list: Names of the Constants attributes that were overridden.
    """
    applied = []
    for key, (attr, cast) in _CONFIG_KEYS.items():
        if key not in cfg or cfg[key] is None:
            continue
        try:
            setattr(Constants, attr, cast(cfg[key]))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid value for config key '%s': %r", key, cfg[key])
            continue
        applied.append(attr)
    return applied
