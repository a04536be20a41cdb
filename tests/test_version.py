"""
Tests for the version module of the MBC Patient SDK.
"""
import importlib
import re
from importlib import metadata as importlib_metadata
from unittest.mock import mock_open, patch

from mbc_patient_sdk import __version__


def test_version_format():
    """Test that the version string follows semantic versioning"""
    assert re.match(r'^\d+\.\d+\.\d+$', __version__), "Version should follow semantic versioning"


@patch('importlib.metadata.version')
@patch('pathlib.Path.open', new_callable=mock_open, read_data=b'[project]\nversion = "1.2.3"\n')
def test_version_from_file(mock_open_file, mock_metadata_version):
    """When metadata lookup fails, pyproject.toml is read"""
    mock_metadata_version.side_effect = importlib_metadata.PackageNotFoundError
    import mbc_patient_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "1.2.3"


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version):
    """When metadata lookup succeeds, version comes from metadata"""
    mock_metadata_version.return_value = "2.3.4"
    import mbc_patient_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "2.3.4"


def test_version_file_not_found(monkeypatch):
    """If pyproject.toml is missing, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', lambda name: (_ for _ in ()).throw(importlib_metadata.PackageNotFoundError()))
    monkeypatch.setattr('pathlib.Path.open', lambda *args, **kwargs: (_ for _ in ()).throw(FileNotFoundError()))
    import mbc_patient_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == vmod.FALLBACK_VERSION


def test_version_key_error(monkeypatch):
    """If TOML exists but missing version key, fallback to default"""
    monkeypatch.setattr(importlib_metadata, 'version', lambda name: (_ for _ in ()).throw(importlib_metadata.PackageNotFoundError()))
    m = mock_open(read_data=b'[project]\nname = "mbc-patient-sdk"\n')
    monkeypatch.setattr('pathlib.Path.open', m)
    import mbc_patient_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == vmod.FALLBACK_VERSION


def test_fallback_matches_pyproject():
    """The hard-coded fallback tracks the project version"""
    import mbc_patient_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod._version_from_pyproject() in (None, vmod.FALLBACK_VERSION)


def test_malformed_pyproject(tmp_path):
    """An unparsable pyproject.toml yields no version"""
    import mbc_patient_sdk.version as vmod
    bad = tmp_path / "pyproject.toml"
    bad.write_text("[project\nversion = ")
    assert vmod._version_from_pyproject(bad) is None
