import os

import typer

from .checkout import context_from_env, run_checkout
from .config import ConfigError, input_envvar, log_config, log_environment, resolve_config
from .git import GitCommandError
from .utils import log_error, mask_url

app = typer.Typer(
    help="Check out a Git repository inside a CI job container.",
    add_completion=False,
)


def _input(name: str, description: str) -> typer.models.OptionInfo:
    return typer.Option(None, f"--{name}", envvar=input_envvar(name), help=description)


@app.command()
def checkout(
    repository: str | None = _input(
        "repository", "Repository to check out as owner/name (default: GITHUB_REPOSITORY)."
    ),
    ref: str | None = _input(
        "ref", "Branch, tag or SHA to check out (default: GITHUB_REF_NAME or 'main')."
    ),
    token: str | None = _input("token", "Token used to authenticate over HTTPS."),
    ssh_key: str | None = _input("ssh-key", "SSH private key; switches the remote to SSH."),
    ssh_known_hosts: str | None = _input(
        "ssh-known-hosts", "Known hosts content; probed with ssh-keyscan when omitted."
    ),
    persist_credentials: str | None = _input(
        "persist-credentials", "Keep the token in a credential store after checkout (true/false)."
    ),
    path: str | None = _input("path", "Checkout path relative to the workspace."),
    clean: str | None = _input(
        "clean", "Remove untracked files and reset an existing checkout first (true/false)."
    ),
    fetch_depth: str | None = _input(
        "fetch-depth", "Number of commits to fetch; 0 fetches full history."
    ),
    lfs: str | None = _input("lfs", "Download Git LFS content (true/false)."),
    submodules: str | None = _input("submodules", "Check out submodules (true/false/recursive)."),
    set_safe_directory: str | None = _input(
        "set-safe-directory", "Add the checkout path to git's safe.directory (true/false)."
    ),
) -> None:
    """
    Clone or update a repository at the requested ref and report the result.
    """
    env = dict(os.environ)
    inputs = {
        "repository": repository,
        "ref": ref,
        "token": token,
        "ssh-key": ssh_key,
        "ssh-known-hosts": ssh_known_hosts,
        "persist-credentials": persist_credentials,
        "path": path,
        "clean": clean,
        "fetch-depth": fetch_depth,
        "lfs": lfs,
        "submodules": submodules,
        "set-safe-directory": set_safe_directory,
    }

    log_environment(env)
    try:
        config = resolve_config(inputs, env)
    except ConfigError as e:
        log_error(str(e))
        for line in e.hint.splitlines():
            log_error(line)
        raise typer.Exit(code=1) from e
    log_config(config)

    try:
        run_checkout(config, context_from_env(env))
    except GitCommandError as e:
        log_error(f"Git command failed: {e}")
        raise typer.Exit(code=e.returncode or 1) from e
    except OSError as e:
        log_error(f"Filesystem operation failed: {mask_url(str(e))}")
        raise typer.Exit(code=1) from e
