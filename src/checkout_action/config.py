"""Resolution of action inputs and CI environment into a ``CheckoutConfig``.

Every input can be given explicitly (CLI option or ``INPUT_*`` variable);
otherwise the CI environment's value is used, otherwise a hardcoded default.
Empty strings count as "not given".
"""

from collections.abc import Mapping
from pathlib import Path

from .models import CheckoutConfig, SubmoduleMode
from .utils import is_unresolved, log_info, log_warn

DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_REF = "main"

INPUT_NAMES = (
    "repository",
    "ref",
    "token",
    "ssh-key",
    "ssh-known-hosts",
    "persist-credentials",
    "path",
    "clean",
    "fetch-depth",
    "lfs",
    "submodules",
    "set-safe-directory",
)

ENVIRONMENT_NAMES = (
    "GITHUB_REPOSITORY",
    "GITHUB_SERVER_URL",
    "GITHUB_REF_NAME",
    "GITHUB_SHA",
    "GITHUB_WORKSPACE",
    "GITHUB_OUTPUT",
)

REDACTED = "***set***"


class ConfigError(ValueError):
    def __init__(self, input_name: str, message: str, hint: str = "") -> None:
        self.input_name = input_name
        self.hint = hint
        super().__init__(message)


def input_envvar(name: str) -> str:
    # "fetch-depth" -> "INPUT_FETCH_DEPTH"
    return "INPUT_" + name.upper().replace("-", "_")


def inputs_from_env(env: Mapping[str, str]) -> dict[str, str | None]:
    return {name: env.get(input_envvar(name)) for name in INPUT_NAMES}


def _pick(*values: str | None) -> str | None:
    for v in values:
        if v:
            return v
    return None


def parse_flag(name: str, value: str | None, default: bool) -> bool:
    if not value:
        return default
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise ConfigError(name, f"Input '{name}' must be 'true' or 'false', got '{value}'")


def parse_submodules(value: str | None) -> SubmoduleMode:
    if not value:
        return SubmoduleMode.FALSE
    try:
        return SubmoduleMode(value.strip().lower())
    except ValueError:
        allowed = ", ".join(f"'{m.value}'" for m in SubmoduleMode)
        raise ConfigError(
            "submodules", f"Input 'submodules' must be one of {allowed}, got '{value}'"
        ) from None


def parse_fetch_depth(value: str | None) -> int:
    if not value:
        return 1
    try:
        depth = int(value.strip())
    except ValueError:
        depth = -1
    if depth < 0:
        raise ConfigError(
            "fetch-depth",
            f"Input 'fetch-depth' must be a non-negative integer, got '{value}'",
        )
    return depth


def parse_token(value: str | None) -> str | None:
    # Unset secrets sometimes arrive as the literal string "null".
    if not value or value == "null":
        return None
    return value


def resolve_config(
    inputs: Mapping[str, str | None], env: Mapping[str, str]
) -> CheckoutConfig:
    """Merge inputs with environment fallbacks and validate the result.

    Raises ``ConfigError`` before anything touches the network or disk.
    """
    repository = _pick(inputs.get("repository"), env.get("GITHUB_REPOSITORY")) or ""
    if not repository or is_unresolved(repository):
        raise ConfigError(
            "repository",
            f"Input 'repository' is not set correctly (value: '{repository}')",
            hint=(
                "The action did not receive the runner's environment. "
                "Set the repository input explicitly, e.g.\n"
                "  with:\n"
                "    repository: owner/repo-name"
            ),
        )

    server_url = env.get("GITHUB_SERVER_URL") or ""
    if not server_url or is_unresolved(server_url):
        log_warn(f"GITHUB_SERVER_URL not set, defaulting to {DEFAULT_SERVER_URL}")
        server_url = DEFAULT_SERVER_URL

    commit = env.get("GITHUB_SHA") or ""
    if commit and repository.casefold() != (env.get("GITHUB_REPOSITORY") or "").casefold():
        # The triggering commit belongs to another repository.
        commit = ""

    return CheckoutConfig(
        repository=repository,
        server_url=server_url,
        ref=_pick(inputs.get("ref"), env.get("GITHUB_REF_NAME")) or DEFAULT_REF,
        token=parse_token(inputs.get("token")),
        ssh_key=inputs.get("ssh-key") or None,
        ssh_known_hosts=inputs.get("ssh-known-hosts") or None,
        persist_credentials=parse_flag(
            "persist-credentials", inputs.get("persist-credentials"), True
        ),
        path=inputs.get("path") or ".",
        clean=parse_flag("clean", inputs.get("clean"), True),
        fetch_depth=parse_fetch_depth(inputs.get("fetch-depth")),
        lfs=parse_flag("lfs", inputs.get("lfs"), False),
        submodules=parse_submodules(inputs.get("submodules")),
        set_safe_directory=parse_flag(
            "set-safe-directory", inputs.get("set-safe-directory"), True
        ),
        commit=commit,
        workspace=Path(env.get("GITHUB_WORKSPACE") or "."),
    )


def log_environment(env: Mapping[str, str]) -> None:
    log_info("Environment variables:")
    for name in ENVIRONMENT_NAMES:
        log_info(f"  {name}={env.get(name) or 'not set'}")
    for name in ("repository", "ref"):
        log_info(f"  {input_envvar(name)}={env.get(input_envvar(name)) or 'not set'}")
    token_envvar = input_envvar("token")
    log_info(f"  {token_envvar}={REDACTED if env.get(token_envvar) else 'not set'}")


def log_config(config: CheckoutConfig) -> None:
    log_info("Starting checkout process...")
    log_info(f"Repository: {config.repository}")
    log_info(f"Reference: {config.ref}")
    log_info(f"Path: {config.checkout_path}")
    log_info(f"Fetch depth: {config.fetch_depth}")
    log_info(f"Server URL: {config.server_url}")
    log_info(f"Token: {REDACTED if config.token else 'not set'}")
    log_info(f"SSH key: {REDACTED if config.ssh_key else 'not set'}")
    log_info(f"SSH known hosts: {'provided' if config.ssh_known_hosts else 'not set'}")
    log_info(f"Persist credentials: {str(config.persist_credentials).lower()}")
    log_info(f"Clean: {str(config.clean).lower()}")
    log_info(f"LFS: {str(config.lfs).lower()}")
    log_info(f"Submodules: {config.submodules.value}")
    log_info(f"Set safe directory: {str(config.set_safe_directory).lower()}")
    if config.commit:
        log_info(f"Commit: {config.commit}")
