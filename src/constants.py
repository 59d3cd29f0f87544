"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    TOOL_ERROR = 3
    USAGE_ERROR = 4


class Ecosystems(Enum):
    """Package ecosystems with a registered backend.

    Args:
        Enum (string): Backend name for the ecosystem.
    """

    PYTHON = "python3-poetry"
    NODEJS = "nodejs-npm"


class DefaultGuess(Enum):
    """Default tunables for the dependency guesser.

    Args:
        Enum (int): Default guesser thresholds.
    """

    POPULARITY_FLOOR = 100
    MULTIPLIER = 5


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_PYPI = "https://pypi.org/pypi/"
    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    REGISTRY_URL_NPM_SEARCH = "https://registry.npmjs.org/-/v1/search"
    NPM_SEARCH_SIZE = 20

    PYPROJECT_TOML_FILE = "pyproject.toml"
    POETRY_LOCK_FILE = "poetry.lock"
    PACKAGE_JSON_FILE = "package.json"
    PACKAGE_LOCK_FILE = "package-lock.json"

    DEFAULT_STORE_LOCATION = ".unipm/store.json"
    DEFAULT_CONFIG_LOCATIONS = [".unipm.yml", ".unipm.yaml"]

    ENV_STORE = "UNIPM_STORE"
    ENV_CONFIG = "UNIPM_CONFIG"
    ENV_POETRY = "UNIPM_POETRY"
    ENV_NPM = "UNIPM_NPM"
    ENV_PYTHON = "UNIPM_PYTHON"
    ENV_PYPI_INDEX = "UNIPM_PYPI_INDEX"
    ENV_LOG_LEVEL = "UNIPM_LOG_LEVEL"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    SEARCH_MAX_WORKERS = 16

    # Never scanned for imports or used for backend detection
    IGNORED_PATHS = [
        ".git",
        ".hg",
        ".svn",
        ".unipm",
        ".venv",
        "venv",
        "__pycache__",
        "node_modules",
        "dist",
        "build",
    ]

    # Trailing comment that pins the package providing an import,
    # e.g. ``import yaml  # unipm package(PyYAML)``
    PRAGMA_PATTERN = r"(?:#|//)\s*unipm\s+package\(\s*([^)\s]+)\s*\)"
