import os
import re
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import typer

# Userinfo part of a URL, up to the last "@" before the host; the secret itself
# may contain "/" or "@".
_URL_CREDENTIALS_RE = re.compile(r"(://)\S*@")

DEFAULT_BEST_EFFORT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    subprocess.SubprocessError,
)


def log_info(message: str) -> None:
    typer.echo(f"{typer.style('[INFO]', fg=typer.colors.GREEN)} {message}")


def log_warn(message: str) -> None:
    typer.echo(f"{typer.style('[WARN]', fg=typer.colors.YELLOW, bold=True)} {message}", err=True)


def log_error(message: str) -> None:
    typer.echo(f"{typer.style('[ERROR]', fg=typer.colors.RED)} {message}", err=True)


def mask_url(text: str) -> str:
    """Replace the credential segment of every URL in ``text`` with ``***``."""
    return _URL_CREDENTIALS_RE.sub(r"\1***@", text)


def is_unresolved(value: str) -> bool:
    # A literal "${" means the runner failed to substitute a workflow expression.
    return "${" in value


def strip_scheme(url: str) -> str:
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            return url[len(scheme) :]
    return url


def server_host(server_url: str) -> str:
    # "https://git.example.com:3000/sub" -> "git.example.com:3000"
    return strip_scheme(server_url).split("/", 1)[0]


def try_best_effort(
    action: Callable[[], object],
    description: str,
    errors: tuple[type[BaseException], ...] = DEFAULT_BEST_EFFORT_ERRORS,
) -> bool:
    """Run ``action``, tolerating the listed errors.

    Returns ``True`` when the action completed. A tolerated failure is logged
    as a warning and reported as ``False``; any other exception propagates.
    """
    try:
        action()
    except errors as e:
        log_warn(f"{description} failed (ignored): {mask_url(str(e))}")
        return False
    return True


def move_contents(source_dir: Path, dest_dir: Path) -> list[str]:
    """Move every entry of ``source_dir`` (hidden ones included) into ``dest_dir``.

    Entries that cannot be moved, e.g. because ``dest_dir`` already holds
    something with the same name, are skipped. Returns the skipped names.
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    skipped: list[str] = []
    for entry in sorted(os.listdir(source_dir)):
        target = dest_dir / entry
        if target.exists() or target.is_symlink():
            log_warn(f"Not overwriting existing {target}")
            skipped.append(entry)
            continue
        if not try_best_effort(
            lambda: shutil.move(str(source_dir / entry), str(target)),
            f"Moving {entry} into {dest_dir}",
        ):
            skipped.append(entry)
    return skipped


def write_private_file(path: Path, content: str, append: bool = False) -> None:
    """Write ``content`` to ``path`` readable and writable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    flags = os.O_WRONLY | os.O_CREAT | (os.O_APPEND if append else os.O_TRUNC)
    # Mode is 0600 before any content is written, for new and existing files.
    path.touch(mode=0o600, exist_ok=True)
    path.chmod(0o600)
    with os.fdopen(os.open(path, flags, 0o600), "w", encoding="utf-8") as f:
        f.write(content)
