import shlex
import subprocess

from .models import CheckoutConfig, CheckoutContext, RemoteProtocol, RemoteUrl
from .utils import log_info, log_warn, server_host, try_best_effort, write_private_file

DEFAULT_HOST = "github.com"
WELL_KNOWN_SSH_HOSTS = ("github.com", "gitlab.com")
SSH_PORT = 22


def _scheme_and_host(server_url: str) -> tuple[str, str]:
    server = server_url.rstrip("/")
    for scheme in ("https", "http"):
        prefix = f"{scheme}://"
        if server.startswith(prefix):
            return scheme, server[len(prefix) :]
    return "https", server


def ssh_hostname(server_url: str) -> str:
    # ssh takes the port separately, so "host:3000" becomes "host".
    return server_host(server_url).split(":", 1)[0]


def resolve_remote_url(config: CheckoutConfig) -> RemoteUrl:
    """Build the URL ``origin`` should point at.

    An SSH key selects SSH; otherwise a token is spliced into an HTTPS URL;
    otherwise the plain HTTPS URL is used.
    """
    if config.ssh_key:
        host = ssh_hostname(config.server_url)
        if host == DEFAULT_HOST:
            url = f"git@{DEFAULT_HOST}:{config.repository}.git"
        else:
            url = f"git@{host}:{config.repository}.git"
        return RemoteUrl(url=url, protocol=RemoteProtocol.SSH, host=host)

    scheme, host = _scheme_and_host(config.server_url)
    if config.token:
        url = f"{scheme}://{config.token}@{host}/{config.repository}.git"
        return RemoteUrl(url=url, protocol=RemoteProtocol.HTTPS_TOKEN, host=host)

    return RemoteUrl(
        url=f"{config.server_url.rstrip('/')}/{config.repository}.git",
        protocol=RemoteProtocol.HTTPS_ANONYMOUS,
        host=host,
    )


def token_free_url(config: CheckoutConfig) -> str:
    scheme, host = _scheme_and_host(config.server_url)
    return f"{scheme}://{host}/{config.repository}.git"


def credential_line(config: CheckoutConfig) -> str:
    """Entry for git's ``store`` credential helper: ``protocol://token@host``."""
    scheme, host = _scheme_and_host(config.server_url)
    return f"{scheme}://{config.token}@{host}"


def keyscan(host: str, port: int | None = None) -> str:
    cmd = ["ssh-keyscan"]
    if port is not None:
        cmd += ["-p", str(port)]
    cmd.append(host)
    res = subprocess.run(cmd, check=True, capture_output=True, text=True)
    return res.stdout


def prepare_ssh(config: CheckoutConfig, ctx: CheckoutContext) -> dict[str, str]:
    """Install the SSH key and known hosts under ``ctx.home``.

    Returns the environment variables git needs to use them.
    """
    log_info("Configuring SSH key...")
    ssh_dir = ctx.ssh_dir
    ssh_dir.mkdir(parents=True, exist_ok=True)
    ssh_dir.chmod(0o700)

    key_file = ssh_dir / "id_rsa"
    key = config.ssh_key or ""
    write_private_file(key_file, key if key.endswith("\n") else key + "\n")

    known_hosts = ssh_dir / "known_hosts"
    if config.ssh_known_hosts:
        text = config.ssh_known_hosts
        known_hosts.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
    else:
        targets: list[tuple[str, int | None]] = [(h, None) for h in WELL_KNOWN_SSH_HOSTS]
        host = ssh_hostname(config.server_url)
        if host and host not in WELL_KNOWN_SSH_HOSTS:
            log_info(f"Adding SSH key for self-hosted Git server: {host}")
            targets.append((host, SSH_PORT))
        for target, port in targets:

            def scan(target: str = target, port: int | None = port) -> None:
                found = keyscan(target, port)
                with known_hosts.open("a", encoding="utf-8") as f:
                    f.write(found)

            try_best_effort(scan, f"Scanning SSH host keys of {target}")
        if not known_hosts.exists():
            log_warn("No SSH host keys could be collected; host verification may fail")

    return {
        "GIT_SSH_COMMAND": (
            f"ssh -i {shlex.quote(str(key_file))} -o IdentitiesOnly=yes"
            f" -o UserKnownHostsFile={shlex.quote(str(known_hosts))}"
        )
    }
