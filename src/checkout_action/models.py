from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .utils import mask_url


class SubmoduleMode(str, Enum):
    FALSE = "false"
    TRUE = "true"
    RECURSIVE = "recursive"


class RemoteProtocol(str, Enum):
    SSH = "ssh"
    HTTPS_TOKEN = "https-token"
    HTTPS_ANONYMOUS = "https-anonymous"


class WorkdirState(Enum):
    ABSENT = "absent"
    EXISTING = "existing"


@dataclass(frozen=True)
class CheckoutConfig:
    repository: str
    server_url: str
    ref: str = "main"
    token: str | None = field(default=None, repr=False)
    ssh_key: str | None = field(default=None, repr=False)
    ssh_known_hosts: str | None = None
    persist_credentials: bool = True
    path: str = "."
    clean: bool = True
    fetch_depth: int = 1
    lfs: bool = False
    submodules: SubmoduleMode = SubmoduleMode.FALSE
    set_safe_directory: bool = True
    # Commit pinned by the environment; empty when nothing should be pinned.
    commit: str = ""
    workspace: Path = Path(".")

    @property
    def checkout_path(self) -> Path:
        return (self.workspace / self.path).absolute()


@dataclass(frozen=True)
class RemoteUrl:
    url: str = field(repr=False)
    protocol: RemoteProtocol
    host: str

    @property
    def masked(self) -> str:
        return mask_url(self.url)

    def __str__(self) -> str:
        return self.masked


@dataclass
class CheckoutContext:
    """Process state shared by the checkout steps.

    ``home`` stands in for the invoking user's home directory: the SSH files,
    the credential store and git's global configuration all live under it.
    """

    home: Path
    output_path: Path | None = None
    environ: dict[str, str] = field(default_factory=dict)

    @property
    def ssh_dir(self) -> Path:
        return self.home / ".ssh"

    @property
    def credentials_file(self) -> Path:
        return self.home / ".config" / "git" / "credentials"


@dataclass(frozen=True)
class CheckoutResult:
    commit_sha: str
    branch: str
