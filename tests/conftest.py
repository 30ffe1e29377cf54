import os
import subprocess
from pathlib import Path

import pytest


class RunRecorder:
    """Stands in for subprocess.run and remembers every command"""

    def __init__(self, returncode: int = 0):
        self.returncode = returncode
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        return subprocess.CompletedProcess(cmd, self.returncode)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    for key in list(os.environ):
        if key.upper().startswith("SHED_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SHED_CONFIG", str(tmp_path / "config.yaml"))


@pytest.fixture
def run_recorder(monkeypatch):
    recorder = RunRecorder()
    monkeypatch.setattr(subprocess, "run", recorder)
    return recorder


@pytest.fixture
def compose_prefix(tmp_path: Path) -> list[str]:
    return [
        "docker",
        "compose",
        "-f",
        str(tmp_path / "_build" / "compose.yaml"),
        "--project-name",
        "shed",
    ]
