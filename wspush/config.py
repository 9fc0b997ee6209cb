"""
Configuration for wspush

The global config lives at $XDG_CONFIG_HOME/wspush/config.yaml:

    code_root: ~/Code
    servers:
      devbox:
        ssh: me@devbox
        code_root: ~/Code
        port: 22
        ssh_key: ~/.ssh/id_ed25519
    defaults:
      timeout: 3600

Values are loaded once per invocation into frozen Config / ServerConfig
objects and passed down explicitly.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigError

# ══════════════════════════════════════════════════════════════════════════════
#  CONSTANTS
# ══════════════════════════════════════════════════════════════════════════════

PROJECT_FILE = "project.json"
CONFIG_FILE = "config.yaml"

DEFAULT_CODE_ROOT = "~/Code"
DEFAULT_REMOTE_ROOT = "~/Code"

# Whole-pipeline deadline per workspace, in seconds (0 disables it)
DEFAULT_TIMEOUT = 3600

# SSH connection settings
CONNECT_TIMEOUT = 20
KEEPALIVE_INTERVAL = 30

# Retry settings (connection establishment only)
RETRY_MAX = 3
RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt


# ══════════════════════════════════════════════════════════════════════════════
#  MODEL
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ServerConfig:
    """A sync target: an ssh-style host identifier plus a remote code root."""
    name: str
    ssh: str
    code_root: str = DEFAULT_REMOTE_ROOT
    port: Optional[int] = None
    ssh_key: Optional[str] = None

    def remote_path(self, slug: str) -> str:
        validate_slug(slug)
        root = self.code_root
        if root.startswith("~") and root != "~" and not root.startswith("~/"):
            raise ConfigError(f"server {self.name!r}: ~user paths are not supported: {root}")
        return f"{root.rstrip('/')}/{slug}"


@dataclass(frozen=True)
class Config:
    code_root: Path = field(default_factory=lambda: Path(DEFAULT_CODE_ROOT).expanduser())
    servers: dict = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT
    path: Optional[Path] = None

    def get_server(self, name: str) -> ServerConfig:
        """Return the named server, or treat *name* itself as an ssh host."""
        server = self.servers.get(name)
        if server is not None:
            return server
        return ServerConfig(name=name, ssh=name)

    def workspace_path(self, slug: str) -> Path:
        validate_slug(slug)
        return self.code_root / slug


def validate_slug(slug: str):
    """A slug becomes a single directory name, locally and on the remote."""
    if not slug or slug in (".", "..") or "/" in slug or "\\" in slug:
        raise ConfigError(f"invalid workspace slug: {slug!r}")


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL CONFIG FILE  ── $XDG_CONFIG_HOME/wspush/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for wspush."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "wspush"
    if os.name == "nt":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "wspush"
    return Path.home() / ".config" / "wspush"


def get_global_config_path() -> Path:
    return get_global_config_dir() / CONFIG_FILE


def load_config_data(path: Path) -> dict:
    """Parse a YAML config file and return its contents as a dict."""
    import yaml

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def parse_server(name: str, raw) -> ServerConfig:
    if isinstance(raw, str):
        return ServerConfig(name=name, ssh=raw)
    if not isinstance(raw, dict):
        raise ConfigError(f"server {name!r}: expected a mapping")
    ssh = str(raw.get("ssh") or name)
    code_root = str(raw.get("code_root") or DEFAULT_REMOTE_ROOT)
    try:
        port = int(raw["port"]) if raw.get("port") else None
    except (TypeError, ValueError):
        raise ConfigError(f"server {name!r}: port must be a number")
    key = raw.get("ssh_key")
    return ServerConfig(
        name=name,
        ssh=ssh,
        code_root=code_root,
        port=port,
        ssh_key=str(Path(str(key)).expanduser()) if key else None,
    )


def build_config(data: dict, path: Optional[Path] = None) -> Config:
    """Turn a parsed config dict into a Config, applying defaults."""
    code_root = Path(str(data.get("code_root") or DEFAULT_CODE_ROOT)).expanduser()

    servers_raw = data.get("servers") or {}
    if not isinstance(servers_raw, dict):
        raise ConfigError("'servers' must be a mapping of name -> server")
    servers = {str(n): parse_server(str(n), s) for n, s in servers_raw.items()}

    defaults = data.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ConfigError("'defaults' must be a mapping")
    try:
        timeout = float(defaults.get("timeout", DEFAULT_TIMEOUT))
    except (TypeError, ValueError):
        raise ConfigError("defaults.timeout must be a number of seconds")

    return Config(code_root=code_root, servers=servers, timeout=timeout, path=path)


def load_config(explicit: Optional[str] = None) -> Config:
    """
    Load the config from *explicit* (must exist) or the global location
    (optional). Falls back to built-in defaults when no file is present.
    """
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"config file not found: {path}")
        return build_config(load_config_data(path), path)

    path = get_global_config_path()
    if not path.is_file():
        return Config()
    return build_config(load_config_data(path), path)
