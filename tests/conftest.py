import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

from checkout_action.git import GitCommandError
from checkout_action.models import CheckoutConfig, CheckoutContext

REPOSITORY = "octocat/hello-world"

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def run_git(*args: str, cwd: Path, env: dict[str, str]) -> str:
    res = subprocess.run(
        ["git", *args], cwd=cwd, env=env, check=True, capture_output=True, text=True
    )
    return res.stdout.strip()


@dataclass
class GitServer:
    """Bare repositories under ``root``, reachable as ``file://<root>/<owner>/<name>.git``."""

    root: Path
    scratch: Path
    env: dict[str, str]

    @property
    def url(self) -> str:
        return self.root.as_uri()

    def bare(self, repository: str) -> Path:
        return self.root / f"{repository}.git"

    def work(self, repository: str) -> Path:
        return self.scratch / repository

    def create(self, repository: str, files: dict[str, str]) -> str:
        work = self.work(repository)
        work.mkdir(parents=True)
        run_git("init", "-b", "main", cwd=work, env=self.env)
        self.commit(repository, files, "initial")
        bare = self.bare(repository)
        bare.parent.mkdir(parents=True, exist_ok=True)
        run_git("clone", "--bare", str(work), str(bare), cwd=self.scratch, env=self.env)
        run_git("config", "uploadpack.allowAnySHA1InWant", "true", cwd=bare, env=self.env)
        run_git("remote", "add", "origin", str(bare), cwd=work, env=self.env)
        return self.head(repository)

    def commit(self, repository: str, files: dict[str, str], message: str) -> str:
        work = self.work(repository)
        for name, content in files.items():
            target = work / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        run_git("add", "-A", cwd=work, env=self.env)
        run_git("commit", "-m", message, cwd=work, env=self.env)
        return self.head(repository)

    def push(self, repository: str, *refspecs: str) -> None:
        run_git("push", "origin", *(refspecs or ("main",)), cwd=self.work(repository), env=self.env)

    def head(self, repository: str) -> str:
        return run_git("rev-parse", "HEAD", cwd=self.work(repository), env=self.env)


@dataclass
class Checkout:
    """Workspace, home and output sink for one test's checkouts."""

    workspace: Path
    ctx: CheckoutContext
    server: GitServer

    def config(self, **overrides) -> CheckoutConfig:
        values = dict(
            repository=REPOSITORY,
            server_url=self.server.url,
            ref="main",
            set_safe_directory=False,
            workspace=self.workspace,
        )
        values.update(overrides)
        return CheckoutConfig(**values)

    def git(self, *args: str, path: Path | None = None) -> str:
        return run_git(*args, cwd=path or self.workspace, env=self.ctx.environ)


@pytest.fixture
def home(tmp_path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    (home / ".gitconfig").write_text(
        "[user]\n"
        "\tname = Test User\n"
        "\temail = test@example.com\n"
        "[init]\n"
        "\tdefaultBranch = main\n"
        '[protocol "file"]\n'
        "\tallow = always\n"
    )
    return home


@pytest.fixture
def git_env(home) -> dict[str, str]:
    env = dict(os.environ)
    env["HOME"] = str(home)
    env["GIT_CONFIG_NOSYSTEM"] = "1"
    for name in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        env.pop(name, None)
    return env


@pytest.fixture
def server(tmp_path, git_env) -> GitServer:
    root = tmp_path / "server"
    scratch = tmp_path / "scratch"
    root.mkdir()
    scratch.mkdir()
    return GitServer(root=root, scratch=scratch, env=git_env)


@pytest.fixture
def hello_world(server) -> GitServer:
    """octocat/hello-world with two commits on main and a ``feature`` branch."""
    server.create(REPOSITORY, {"README.md": "hello\n"})
    server.commit(REPOSITORY, {"src/app.txt": "v1\n"}, "second")
    server.push(REPOSITORY)
    work = server.work(REPOSITORY)
    run_git("checkout", "-b", "feature", cwd=work, env=server.env)
    server.commit(REPOSITORY, {"feature.txt": "feature\n"}, "feature work")
    server.push(REPOSITORY, "feature")
    run_git("checkout", "main", cwd=work, env=server.env)
    return server


@pytest.fixture
def checkout(tmp_path, home, git_env, server) -> Checkout:
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    ctx = CheckoutContext(home=home, output_path=tmp_path / "output", environ=git_env)
    return Checkout(workspace=workspace, ctx=ctx, server=server)


class RecordingGit:
    """Stand-in for ``Git`` that records commands instead of running them.

    ``failing`` holds argument tuples (or prefixes) that should fail.
    """

    def __init__(self, failing=(), outputs=None):
        self.calls: list[tuple[str, ...]] = []
        self.failing = [tuple(f) for f in failing]
        self.outputs = outputs or {}

    def _fails(self, args):
        return any(args[: len(f)] == f for f in self.failing)

    def run(self, *args, check=True, capture=False):
        self.calls.append(args)
        returncode = 1 if self._fails(args) else 0
        if check and returncode:
            raise GitCommandError(["git", *args], returncode, "simulated failure")
        return subprocess.CompletedProcess(["git", *args], returncode, self.outputs.get(args, ""), "")

    def succeeds(self, *args):
        return self.run(*args, check=False, capture=True).returncode == 0

    def output(self, *args):
        return self.run(*args, capture=True).stdout.strip()

    def rev_parse(self, rev="HEAD"):
        return self.output("rev-parse", rev)

    def current_branch(self):
        return self.output("rev-parse", "--abbrev-ref", "HEAD")

    def at(self, cwd):
        return self
