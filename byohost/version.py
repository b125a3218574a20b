"""Build and runtime version information for the agent."""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass, fields

# Filled in by the build; empty when running from a checkout.
GIT_MAJOR = ""
GIT_MINOR = ""
GIT_VERSION = ""
GIT_COMMIT = ""
GIT_TREE_STATE = ""
BUILD_DATE = ""

_JSON_KEYS = {
    "major": "major",
    "minor": "minor",
    "git_version": "gitVersion",
    "git_commit": "gitCommit",
    "git_tree_state": "gitTreeState",
    "build_date": "buildDate",
    "python_version": "pythonVersion",
    "compiler": "compiler",
    "platform": "platform",
}


@dataclass(frozen=True)
class Info:
    """Version details of the running code."""

    major: str = ""
    minor: str = ""
    git_version: str = ""
    git_commit: str = ""
    git_tree_state: str = ""
    build_date: str = ""
    python_version: str = ""
    compiler: str = ""
    platform: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the JSON form, leaving out empty fields."""
        return {
            _JSON_KEYS[f.name]: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name)
        }


def get() -> Info:
    """Return version information for the current process."""
    return Info(
        major=GIT_MAJOR,
        minor=GIT_MINOR,
        git_version=GIT_VERSION,
        git_commit=GIT_COMMIT,
        git_tree_state=GIT_TREE_STATE,
        build_date=BUILD_DATE,
        python_version=platform.python_version(),
        compiler=platform.python_implementation(),
        platform=f"{sys.platform}/{platform.machine().lower()}",
    )