"""Single source of truth for the package version.

Reads the installed distribution metadata, falling back to pyproject.toml
when running from a source checkout that was never installed.
"""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DISTRIBUTION = "microflash-engine"


def get_version() -> str:
    """Return the version string of the engine."""
    try:
        return version(_DISTRIBUTION)
    except PackageNotFoundError:
        pyproject_path = _PROJECT_ROOT / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return data["project"]["version"]


__version__: str = get_version()
