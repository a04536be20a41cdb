"""
Version information for the MBC Patient SDK.

Installed distributions report their metadata version. A source checkout
reads ``pyproject.toml`` instead, and anything else gets ``FALLBACK_VERSION``.
"""
import importlib.metadata
import pathlib
from typing import Optional

import tomli

DISTRIBUTION_NAME = "mbc-patient-sdk"
FALLBACK_VERSION = "0.1.0"

_PYPROJECT = pathlib.Path(__file__).parent.parent / "pyproject.toml"


def _version_from_pyproject(path: pathlib.Path = _PYPROJECT) -> Optional[str]:
    try:
        with path.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        return None


def _resolve_version() -> str:
    try:
        return importlib.metadata.version(DISTRIBUTION_NAME)
    except importlib.metadata.PackageNotFoundError:
        return _version_from_pyproject() or FALLBACK_VERSION


__version__ = _resolve_version()
