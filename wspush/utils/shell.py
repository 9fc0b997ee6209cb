"""
Shell quoting and the typed remote-action builder

Every value interpolated into a remote command goes through shell_quote().
Repository names, paths and URLs come from project.json and local git
config, so they are treated as untrusted text: the remote shell must only
ever see them as single-quoted literals.
"""
from dataclasses import dataclass

# Machine-readable status lines printed by the clone script
CLONED_TAG = "CLONED"
SKIP_TAG = "SKIP"
FIELD_SEP = "|"


def shell_quote(value: str) -> str:
    """Quote *value* as a single POSIX shell word."""
    if value == "":
        return "''"
    return "'" + value.replace("'", "'\"'\"'") + "'"


def remote_path_expr(path: str) -> str:
    """
    Quote a remote path, keeping a leading ``~`` expandable.

        ~            → "$HOME"
        ~/Code/x     → "$HOME"/'Code/x'
        /srv/code    → '/srv/code'

    ``~user`` forms are rejected; they would need a remote lookup.
    """
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        rest = path[2:]
        return '"$HOME"' + ("/" + shell_quote(rest) if rest else "")
    if path.startswith("~"):
        raise ValueError(f"unsupported remote path (only ~ and ~/ are expanded): {path}")
    return shell_quote(path)


# ── typed remote actions ────────────────────────────────────────────────────

@dataclass(frozen=True)
class EnsureDir:
    """mkdir -p <root>/<rel>"""
    rel: str

    def render(self) -> list[str]:
        if not self.rel:
            return ['mkdir -p "$root"']
        return [f"mkdir -p \"$root\"/{shell_quote(self.rel)}"]


@dataclass(frozen=True)
class CloneIfAbsent:
    """Clone *url* into <root>/<rel> unless that directory already exists."""
    name: str
    rel: str
    url: str

    def render(self) -> list[str]:
        status = "printf '%s|%s|%s|%s\\n'"
        return [
            f"name={shell_quote(self.name)}",
            f"rel={shell_quote(self.rel)}",
            f"url={shell_quote(self.url)}",
            'dest="$root/$rel"',
            'if [ -d "$dest" ]; then',
            f'  {status} {SKIP_TAG} "$name" "$rel" exists',
            "else",
            '  mkdir -p "$(dirname "$dest")"',
            '  git clone -- "$url" "$dest" </dev/null',
            f'  {status} {CLONED_TAG} "$name" "$rel" "$url"',
            "fi",
        ]


def render_script(root: str, actions) -> str:
    """
    Render a POSIX sh program that runs *actions* relative to *root*.
    The program is meant to be fed to ``sh -s`` on the remote.
    """
    lines = [
        "set -e",
        "GIT_TERMINAL_PROMPT=0",
        "export GIT_TERMINAL_PROMPT",
        f"root={remote_path_expr(root)}",
    ]
    for action in actions:
        lines.extend(action.render())
    return "\n".join(lines) + "\n"
