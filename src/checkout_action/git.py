import subprocess
from pathlib import Path

from .utils import mask_url


class GitCommandError(Exception):
    """A git invocation exited non-zero (or could not be started)."""

    def __init__(self, command: list[str], returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"'{mask_url(' '.join(command))}' exited with code {returncode}"
        if stderr.strip():
            message += f": {mask_url(stderr.strip())}"
        super().__init__(message)


class Git:
    """Runs git in a fixed working directory with a fixed environment.

    Nothing here changes the process's own working directory or environment;
    every step gets both from the runner it is handed.
    """

    def __init__(self, cwd: Path, env: dict[str, str] | None = None) -> None:
        self.cwd = cwd
        self.env = env

    def at(self, cwd: Path) -> "Git":
        return Git(cwd, self.env)

    def run(
        self, *args: str, check: bool = True, capture: bool = False
    ) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        try:
            res = subprocess.run(
                cmd,
                cwd=self.cwd,
                env=self.env,
                check=False,
                capture_output=capture,
                text=True,
            )
        except OSError as e:
            raise GitCommandError(cmd, 127, str(e)) from e
        if check and res.returncode != 0:
            raise GitCommandError(cmd, res.returncode, res.stderr or "")
        return res

    def succeeds(self, *args: str) -> bool:
        """Run quietly and report whether git exited zero."""
        return self.run(*args, check=False, capture=True).returncode == 0

    def output(self, *args: str) -> str:
        return self.run(*args, capture=True).stdout.strip()

    def rev_parse(self, rev: str = "HEAD") -> str:
        return self.output("rev-parse", rev)

    def current_branch(self) -> str:
        # "HEAD" when detached
        return self.output("rev-parse", "--abbrev-ref", "HEAD")
