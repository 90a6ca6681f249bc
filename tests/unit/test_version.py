from __future__ import annotations

import json
from pathlib import Path

import dynamorepo


def test_version_matches_version_json() -> None:
    version_file = Path(__file__).resolve().parents[2] / "src" / "dynamorepo" / "version.json"
    data = json.loads(version_file.read_text(encoding="utf-8"))
    assert dynamorepo.__repo_version__ == data["version"]
    if "-rc." in data["version"]:
        assert "-rc." not in dynamorepo.__version__
        assert "rc" in dynamorepo.__version__
    else:
        assert dynamorepo.__version__ == data["version"]


def test_release_candidate_versions_are_normalized() -> None:
    assert dynamorepo._normalize_repo_version("1.2.3-rc.4") == "1.2.3rc4"
    assert dynamorepo._normalize_repo_version("1.2.3") == "1.2.3"
