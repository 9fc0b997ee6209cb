"""
SSH session manager (paramiko) for remote command execution
"""
import socket
from pathlib import Path
from typing import Optional

import paramiko

from ..config import ServerConfig, CONNECT_TIMEOUT, KEEPALIVE_INTERVAL
from ..errors import RemoteCommandError, SyncTimeout
from ..utils.logging import log, vlog
from ..utils.retry import retried

CHUNK_SIZE = 64 * 1024
SSH_CONFIG_PATH = Path("~/.ssh/config")


def split_host(identifier: str) -> tuple[Optional[str], str]:
    """'me@devbox' → ('me', 'devbox'); 'devbox' → (None, 'devbox')."""
    if "@" in identifier:
        user, host = identifier.rsplit("@", 1)
        return user or None, host
    return None, identifier


def lookup_ssh_config(host: str) -> dict:
    """Resolve *host* through ~/.ssh/config (Host aliases, HostName, Port, …)."""
    path = SSH_CONFIG_PATH.expanduser()
    if not path.is_file():
        return {"hostname": host}
    return dict(paramiko.SSHConfig.from_path(str(path)).lookup(host))


class SSHManager:
    """
    One paramiko session to a ServerConfig's host.

    All commands run through ``run()`` / ``run_streaming()``, which return
    ``(exit_code, combined_output)`` and honour an optional Deadline.
    """

    def __init__(self, server: ServerConfig):
        self.server = server
        self._ssh: Optional[paramiko.SSHClient] = None

    # ── connection ─────────────────────────────────────────────────────────

    def connect_kwargs(self) -> dict:
        user, host = split_host(self.server.ssh)
        entry = lookup_ssh_config(host)
        kw: dict = dict(
            hostname=entry.get("hostname", host),
            port=self.server.port or int(entry.get("port", 22)),
            timeout=CONNECT_TIMEOUT, banner_timeout=30, auth_timeout=30,
        )
        username = user or entry.get("user")
        if username:
            kw["username"] = username
        if self.server.ssh_key:
            kw["key_filename"] = self.server.ssh_key
        elif entry.get("identityfile"):
            kw["key_filename"] = [str(Path(p).expanduser()) for p in entry["identityfile"]]
        return kw

    @retried(giveup=(paramiko.AuthenticationException, paramiko.BadHostKeyException))
    def connect(self):
        kw = self.connect_kwargs()
        log(f"[SSH] connecting to {self.server.ssh} ({kw['hostname']}:{kw['port']}) …")
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(**kw)
        client.get_transport().set_keepalive(KEEPALIVE_INTERVAL)
        self._ssh = client
        vlog("[SSH] connected ✓")

    def ensure_connected(self):
        """Call before any remote operation."""
        if self._ssh is not None:
            transport = self._ssh.get_transport()
            if transport is not None and transport.is_active():
                return
            self.close()
        self.connect()

    def close(self):
        if self._ssh is not None:
            try:
                self._ssh.close()
            finally:
                self._ssh = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── exec ────────────────────────────────────────────────────────────────

    def run(self, cmd: str, input_data=None, deadline=None) -> tuple[int, str]:
        """
        Run *cmd*, optionally feeding *input_data* (str or bytes) on stdin.
        Returns (exit_code, stdout+stderr). Never raises on non-zero exit.
        """
        if isinstance(input_data, str):
            input_data = input_data.encode("utf-8")
        chan = self._open(cmd, deadline)
        try:
            if input_data:
                chan.sendall(input_data)
            chan.shutdown_write()
            output = self._drain(chan, cmd, deadline)
            rc = self._exit_status(chan, cmd, deadline)
        except socket.timeout:
            raise SyncTimeout(f"remote command timed out: {cmd!r}")
        finally:
            chan.close()
        return rc, output

    def run_streaming(self, cmd: str, source, deadline=None) -> tuple[int, str]:
        """
        Run *cmd* with the binary file-like *source* copied onto its stdin
        as it is produced. Output is drained between chunks so the channel
        window never stalls the writer.

        If the remote command exits before consuming all of *source*, the
        rest is dropped and its own exit code and output are returned.
        """
        chan = self._open(cmd, deadline)
        collected: list[bytes] = []
        try:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                self._settimeout(chan, cmd, deadline)
                try:
                    chan.sendall(chunk)
                except socket.timeout:
                    raise
                except OSError as exc:
                    vlog(f"  [SSH] remote stopped reading stdin: {exc}")
                    break
                while chan.recv_ready():
                    collected.append(chan.recv(CHUNK_SIZE))
            chan.shutdown_write()
            output = b"".join(collected).decode("utf-8", errors="replace")
            output += self._drain(chan, cmd, deadline)
            rc = self._exit_status(chan, cmd, deadline)
        except socket.timeout:
            raise SyncTimeout(f"remote command timed out: {cmd!r}")
        finally:
            chan.close()
        return rc, output

    def exec(self, cmd: str, deadline=None) -> str:
        """Run a command; return its output. Raises on non-zero exit."""
        rc, output = self.run(cmd, deadline=deadline)
        if rc != 0:
            raise RemoteCommandError(cmd, rc, output)
        return output

    # ── channel helpers ─────────────────────────────────────────────────────

    def _open(self, cmd: str, deadline):
        self.ensure_connected()
        vlog(f"  [SSH] $ {cmd}")
        chan = self._ssh.get_transport().open_session()
        chan.set_combine_stderr(True)
        self._settimeout(chan, cmd, deadline)
        chan.exec_command(cmd)
        return chan

    @staticmethod
    def _settimeout(chan, cmd: str, deadline):
        chan.settimeout(deadline.remaining(repr(cmd)) if deadline else None)

    def _drain(self, chan, cmd: str, deadline) -> str:
        buf: list[bytes] = []
        while True:
            self._settimeout(chan, cmd, deadline)
            chunk = chan.recv(CHUNK_SIZE)
            if not chunk:
                break
            buf.append(chunk)
        return b"".join(buf).decode("utf-8", errors="replace")

    @staticmethod
    def _exit_status(chan, cmd: str, deadline) -> int:
        timeout = deadline.remaining(repr(cmd)) if deadline else None
        if not chan.status_event.wait(timeout):
            raise SyncTimeout(f"remote command timed out: {cmd!r}")
        return chan.recv_exit_status()
