import tomllib
from pathlib import Path

import ritualdrill


def _project_version() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    project = tomllib.loads(pyproject.read_text(encoding="utf-8"))["project"]
    assert project["name"] == ritualdrill.DISTRIBUTION_NAME
    return project["version"]


def test_package_version_matches_pyproject() -> None:
    assert ritualdrill.__version__ == _project_version()
