"""
Exclude patterns: built-in defaults, pattern files, and rendering to
rsync / tar flag syntax
"""
from pathlib import Path
from typing import Iterable

from ..errors import ExcludeFileError

BUILTIN_EXCLUDES: tuple[str, ...] = (
    # dependencies
    "node_modules/",
    "vendor/",
    ".pnpm-store/",
    "bower_components/",
    # build output
    "target/",
    "dist/",
    "build/",
    "out/",
    "bin/",
    "obj/",
    "_build/",
    ".output/",
    ".nuxt/",
    ".next/",
    ".svelte-kit/",
    ".vercel/",
    ".netlify/",
    # test & coverage
    "coverage/",
    ".nyc_output/",
    "htmlcov/",
    ".tox/",
    ".nox/",
    # caches
    ".cache/",
    "__pycache__/",
    ".pytest_cache/",
    ".mypy_cache/",
    ".ruff_cache/",
    "*.pyc",
    ".turbo/",
    ".parcel-cache/",
    ".webpack/",
    ".eslintcache",
    ".stylelintcache",
    # virtualenvs
    ".venv/",
    "venv/",
    ".virtualenv/",
    # editors
    ".idea/",
    "*.swp",
    "*.swo",
    "*~",
    ".project",
    ".classpath",
    ".settings/",
    # OS junk
    ".DS_Store",
    "Thumbs.db",
    "Desktop.ini",
    # logs
    "*.log",
    "logs/",
    "npm-debug.log*",
    "yarn-debug.log*",
    "yarn-error.log*",
    "pnpm-debug.log*",
    # secrets
    ".env",
    ".env.*",
    "secrets/",
    "*.pem",
    "*.key",
    ".secret*",
    # terraform
    ".terraform/",
    "*.tfstate",
    "*.tfstate.*",
)

# Dropped from the defaults by --include-env / sync.include_env
ENV_EXCLUDE_PATTERNS: tuple[str, ...] = (".env", ".env.*")

# Repository content reaches the remote via git clone, never via bulk copy
FORCE_EXCLUDE_PATTERNS: tuple[str, ...] = ("repos/",)

GIT_EXCLUDE_PATTERN = ".git/"


class ExcludeList:
    """Ordered, duplicate-free list of exclude patterns."""

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns: list[str] = dedupe(patterns)

    def __iter__(self):
        return iter(self.patterns)

    def __len__(self):
        return len(self.patterns)

    def __contains__(self, pattern):
        return pattern in self.patterns

    def __eq__(self, other):
        if isinstance(other, ExcludeList):
            return self.patterns == other.patterns
        return NotImplemented

    def __repr__(self):
        return f"ExcludeList({self.patterns!r})"

    def extend_missing(self, additional: Iterable[str]) -> "ExcludeList":
        """Append patterns not already present, keeping first-seen order."""
        return ExcludeList([*self.patterns, *additional])

    def to_rsync_args(self) -> list[str]:
        return [f"--exclude={p}" for p in self.patterns]

    def to_tar_args(self) -> list[str]:
        return [f"--exclude={tar_exclude_pattern(p)}" for p in self.patterns]


def tar_exclude_pattern(pattern: str) -> str:
    """
    rsync treats ``dir/`` as "a directory named dir at any depth"; GNU tar
    needs that spelled out as ``*/dir/*`` (tar paths are relative to ``.``).
    """
    if pattern.endswith("/"):
        return f"*/{pattern[:-1]}/*"
    return pattern


def dedupe(patterns: Iterable[str]) -> list[str]:
    seen = set()
    result = []
    for p in patterns:
        if p not in seen:
            seen.add(p)
            result.append(p)
    return result


def parse_exclude_file(path) -> list[str]:
    """
    Read one pattern per line. Lines are trimmed; blank lines and lines
    starting with '#' are dropped. File order is kept.
    """
    f = Path(path).expanduser()
    try:
        text = f.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ExcludeFileError(f"failed to read exclude file {f}: {exc}") from exc

    patterns = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)
    return patterns


def build_exclude_list(additional: Iterable[str] = (),
                       remove: Iterable[str] = (),
                       no_git: bool = False,
                       include_env: bool = False) -> ExcludeList:
    """
    Built-in defaults minus *remove*, then ``.git/`` when *no_git* is set,
    then *additional*.

    *remove* only filters the built-ins: a pattern that is also listed in
    *additional* stays.
    """
    removed = set(remove)
    if include_env:
        removed.update(ENV_EXCLUDE_PATTERNS)

    patterns = [p for p in BUILTIN_EXCLUDES if p not in removed]
    if no_git:
        patterns.append(GIT_EXCLUDE_PATTERN)
    patterns.extend(additional)
    return ExcludeList(patterns)


def resolve_excludes(options) -> ExcludeList:
    """
    Compute the effective exclude list for one sync invocation.

    Precedence, low to high: built-in defaults → workspace ``add`` → CLI
    patterns (``--exclude`` then ``--exclude-from``). With
    ``skip_default_excludes`` only the CLI patterns are used. The
    force-exclude patterns are appended in every mode.
    """
    cli_patterns = list(options.exclude_patterns)
    if options.exclude_from:
        cli_patterns.extend(parse_exclude_file(options.exclude_from))

    if options.skip_default_excludes:
        return ExcludeList([*options.force_exclude_patterns, *cli_patterns])

    excludes = build_exclude_list(
        additional=[*options.workspace_add, *cli_patterns],
        remove=options.workspace_remove,
        no_git=options.no_git,
        include_env=options.include_env,
    )
    return excludes.extend_missing(options.force_exclude_patterns)
