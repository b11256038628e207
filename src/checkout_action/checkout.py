"""Checkout steps: prepare the path, clone or update, then finish the tree.

Each step receives the resolved config, the context and a ``Git`` runner;
none of them touches the process's working directory or environment.
"""

import os
import tempfile
from pathlib import Path

from .git import Git
from .models import (
    CheckoutConfig,
    CheckoutContext,
    CheckoutResult,
    RemoteProtocol,
    RemoteUrl,
    SubmoduleMode,
    WorkdirState,
)
from .remote import credential_line, prepare_ssh, resolve_remote_url, token_free_url
from .utils import log_info, log_warn, move_contents, try_best_effort, write_private_file


def detect_state(path: Path) -> WorkdirState:
    # ".git" may also be a file (worktrees, submodules)
    if (path / ".git").exists():
        return WorkdirState.EXISTING
    return WorkdirState.ABSENT


def clone_args(config: CheckoutConfig) -> list[str]:
    args: list[str] = []
    if config.fetch_depth != 0:
        args.append(f"--depth={config.fetch_depth}")
    if config.ref:
        args.append(f"--branch={config.ref}")
    return args


def fetch_args(config: CheckoutConfig) -> list[str]:
    if config.fetch_depth == 0:
        return ["fetch", "origin"]
    return ["fetch", f"--depth={config.fetch_depth}", "origin"]


def git_environ(ctx: CheckoutContext, extra: dict[str, str] | None = None) -> dict[str, str]:
    env = dict(ctx.environ)
    env["HOME"] = str(ctx.home)
    # Fail instead of waiting for a password nobody will type.
    env["GIT_TERMINAL_PROMPT"] = "0"
    if extra:
        env.update(extra)
    return env


def prepare_path(config: CheckoutConfig, git: Git) -> None:
    path = config.checkout_path
    path.mkdir(parents=True, exist_ok=True)
    if config.set_safe_directory:
        log_info(f"Setting {path} as safe directory...")
        git.run("config", "--global", "--add", "safe.directory", str(path))


def update_existing(config: CheckoutConfig, remote: RemoteUrl, git: Git) -> None:
    log_info("Existing repository detected")

    if config.clean:
        log_info("Cleaning working directory...")
        git.run("clean", "-ffdx")
        git.run("reset", "--hard", "HEAD")

    if not git.succeeds("remote", "set-url", "origin", remote.url):
        git.run("remote", "add", "origin", remote.url)

    log_info("Fetching updates...")
    git.run(*fetch_args(config))

    if config.ref:
        log_info(f"Checking out {config.ref}...")
        if not git.succeeds("checkout", config.ref):
            # Only known as origin/<ref>; a failure here is final.
            git.run("checkout", "-b", config.ref, f"origin/{config.ref}")
    elif config.commit:
        log_info(f"Checking out commit {config.commit}...")
        git.run("checkout", config.commit)


def clone_fresh(config: CheckoutConfig, remote: RemoteUrl, git: Git) -> None:
    log_info("Cloning repository...")
    path = config.checkout_path

    # The final path only ever receives whole entries moved out of the clone.
    with tempfile.TemporaryDirectory(
        prefix="checkout-clone-", ignore_cleanup_errors=True
    ) as tmpdir:
        clone_dir = Path(tmpdir)
        git.at(clone_dir).run("clone", *clone_args(config), remote.url, str(clone_dir))
        skipped = move_contents(clone_dir, path)
        if skipped:
            log_warn(f"Left behind {len(skipped)} entries that could not be moved")

    if config.commit and git.rev_parse("HEAD") != config.commit:
        log_info(f"Fetching specific commit {config.commit}...")
        git.run("fetch", "--depth=1", "origin", config.commit)
        git.run("checkout", config.commit)


def materialize(config: CheckoutConfig, git: Git) -> None:
    if config.submodules is not SubmoduleMode.FALSE:
        log_info("Initializing submodules...")
        args = ["submodule", "update", "--init"]
        if config.submodules is SubmoduleMode.RECURSIVE:
            args.append("--recursive")
        git.run(*args)

    if config.lfs:
        log_info("Pulling Git LFS files...")
        git.run("lfs", "install", "--local")
        git.run("lfs", "pull")


def handle_credentials(
    config: CheckoutConfig, ctx: CheckoutContext, remote: RemoteUrl, git: Git
) -> None:
    if remote.protocol is not RemoteProtocol.HTTPS_TOKEN:
        return
    if config.persist_credentials:
        log_info("Persisting credentials in git config...")
        store = ctx.credentials_file
        write_private_file(store, credential_line(config) + "\n", append=True)
        git.run("config", "--global", "credential.helper", f"store --file={store}")
    else:
        log_info("Removing credentials from remote URL...")
        git.run("remote", "set-url", "origin", token_free_url(config))


def write_outputs(ctx: CheckoutContext, result: CheckoutResult) -> None:
    if ctx.output_path is None:
        return
    output_path = ctx.output_path

    def append() -> None:
        with output_path.open("a", encoding="utf-8") as f:
            f.write(f"commit-sha={result.commit_sha}\n")
            f.write(f"branch={result.branch}\n")

    try_best_effort(append, f"Writing outputs to {output_path}")


def report_result(ctx: CheckoutContext, git: Git) -> CheckoutResult:
    result = CheckoutResult(commit_sha=git.rev_parse("HEAD"), branch=git.current_branch())
    log_info("Checkout complete!")
    log_info(f"Current commit: {result.commit_sha}")
    log_info(f"Current branch: {result.branch}")
    write_outputs(ctx, result)
    return result


def run_checkout(config: CheckoutConfig, ctx: CheckoutContext) -> CheckoutResult:
    """Bring ``config.checkout_path`` to the requested state and report it."""
    if config.ssh_key and config.token:
        log_warn("Both ssh-key and token are set; using SSH and ignoring the token")

    extra_env: dict[str, str] = {}
    if config.ssh_key:
        extra_env = prepare_ssh(config, ctx)
    git = Git(config.checkout_path, git_environ(ctx, extra_env))

    prepare_path(config, git)

    remote = resolve_remote_url(config)
    if remote.protocol is RemoteProtocol.HTTPS_TOKEN:
        log_info("Using HTTPS with authentication token")
    elif remote.protocol is RemoteProtocol.HTTPS_ANONYMOUS:
        log_info("Using HTTPS without authentication (public repository)")
    log_info(f"Repository URL: {remote.masked}")

    if detect_state(config.checkout_path) is WorkdirState.EXISTING:
        update_existing(config, remote, git)
    else:
        clone_fresh(config, remote, git)

    materialize(config, git)
    handle_credentials(config, ctx, remote, git)
    return report_result(ctx, git)


def context_from_env(env: dict[str, str]) -> CheckoutContext:
    output = env.get("GITHUB_OUTPUT")
    home = env.get("HOME") or os.path.expanduser("~")
    return CheckoutContext(
        home=Path(home),
        output_path=Path(output) if output else None,
        environ=dict(env),
    )
