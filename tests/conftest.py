"""
Shared fixtures: throwaway git repositories with deterministic history.
"""

import os
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest

BASE_TIME = 1700000000


def git(repo, *args) -> str:
    """Run git in repo and return stripped stdout; raises on failure."""
    result = subprocess.run(
        ['git', *args], cwd=repo, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


class RepoBuilder:
    """
    Builds a repository commit by commit.

    Each commit gets a committer/author date one minute after the previous
    one, so the walk order is fully determined.
    """

    def __init__(self, path: Path):
        self.path = path
        self.commits = []
        self._tick = 0
        path.mkdir(parents=True, exist_ok=True)
        git(path, 'init', '-q')
        git(path, 'symbolic-ref', 'HEAD', 'refs/heads/main')
        git(path, 'config', 'user.name', 'Test User')
        git(path, 'config', 'user.email', 'test@example.com')
        git(path, 'config', 'commit.gpgsign', 'false')

    def _env(self) -> Dict[str, str]:
        self._tick += 1
        stamp = f"{BASE_TIME + self._tick * 60} +0000"
        return dict(os.environ, GIT_AUTHOR_DATE=stamp, GIT_COMMITTER_DATE=stamp)

    def write(self, files: Dict[str, str]) -> None:
        for name, content in files.items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)

    def commit(
        self,
        message: str,
        files: Optional[Dict[str, str]] = None,
        remove: Iterable[str] = ()
    ) -> str:
        self.write(files or {})
        for name in remove:
            git(self.path, 'rm', '-q', name)
        git(self.path, 'add', '-A')
        subprocess.run(
            ['git', 'commit', '-q', '--allow-empty', '-m', message],
            cwd=self.path, env=self._env(), capture_output=True, check=True
        )
        sha = self.head()
        self.commits.append(sha)
        return sha

    def merge(self, branch: str, message: str) -> str:
        subprocess.run(
            ['git', 'merge', '-q', '--no-ff', '-m', message, branch],
            cwd=self.path, env=self._env(), capture_output=True, check=True
        )
        sha = self.head()
        self.commits.append(sha)
        return sha

    def head(self) -> str:
        return git(self.path, 'rev-parse', 'HEAD')

    def branch(self) -> Optional[str]:
        result = subprocess.run(
            ['git', 'symbolic-ref', '--quiet', '--short', 'HEAD'],
            cwd=self.path, capture_output=True, text=True
        )
        return result.stdout.strip() if result.returncode == 0 else None

    def status(self) -> str:
        return git(self.path, 'status', '--porcelain')


@pytest.fixture
def repo(tmp_path):
    """An empty repository on branch main."""
    return RepoBuilder(tmp_path / 'repo')


@pytest.fixture
def checker(tmp_path):
    """
    Verification command that passes when its argument file reads "good".

    Lives outside the repository so checkouts never touch it.
    """
    script = tmp_path / 'check.py'
    script.write_text(
        "import sys\n"
        "with open(sys.argv[1]) as f:\n"
        "    sys.exit(0 if f.read().strip() == 'good' else 1)\n"
    )
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's real configuration out of every test."""
    monkeypatch.setenv('TRACE_WORKING_CONFIG', str(tmp_path / 'no-config.json'))
    for key in list(os.environ):
        if key.startswith('TRACE_WORKING_') and key != 'TRACE_WORKING_CONFIG':
            monkeypatch.delenv(key)
