#!/usr/bin/env python3
"""
wspush: push workspaces to a remote host
========================================

Subcommands:
  sync        Sync one workspace to a server (exit 10 if it already exists there).
  sync-batch  Sync several workspaces to a server, one after another.
  excludes    Print the effective exclude pattern list.
  init        Add a server to the global config file.

Run 'wspush <subcommand> --help' for more details.
"""
import argparse
import json
import sys
from pathlib import Path

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REMOTE_EXISTS = 10


def _die(msg: str, hint: str = ""):
    print(f"error: {msg}", file=sys.stderr)
    if hint:
        print(hint, file=sys.stderr)
    sys.exit(EXIT_ERROR)


def _load_config(args):
    from wspush.config import load_config
    from wspush.errors import ConfigError

    try:
        return load_config(args.config)
    except ConfigError as exc:
        _die(str(exc))


def _options_from_args(args, cfg):
    """Build the immutable SyncOptions for this invocation from CLI flags."""
    from wspush.core.options import SyncOptions

    timeout = cfg.timeout if args.timeout is None else args.timeout
    return SyncOptions(
        force=getattr(args, "force", False),
        dry_run=getattr(args, "dry_run", False),
        no_git=args.no_git,
        include_env=args.include_env,
        exclude_patterns=tuple(args.exclude or ()),
        exclude_from=args.exclude_from,
        timeout=timeout or None,
    )


def _print_json(data):
    print(json.dumps(data, indent=2))


def _print_result(args, result):
    from wspush.result import format_result, format_repo_results

    if args.json:
        _print_json(result.to_dict())
        return
    print(format_result(result), end="")
    print(format_repo_results(result), end="")


# ── sync ─────────────────────────────────────────────────────────────────────

def cmd_sync(args):
    """Sync one workspace to a server."""
    from wspush.core.sync_engine import sync_workspace
    from wspush.errors import SyncError, WspushError
    from wspush.result import ACTION_SKIPPED
    from wspush.workspace import load_workspace

    cfg = _load_config(args)
    try:
        local_path = cfg.workspace_path(args.slug)
        if not local_path.is_dir():
            _die(f"workspace not found: {args.slug} ({local_path})")
        server = cfg.get_server(args.server)
        options = _options_from_args(args, cfg).with_workspace(load_workspace(local_path))
    except WspushError as exc:
        _die(str(exc))

    if not args.json:
        print(f"Syncing {args.slug} to {server.ssh}:{server.code_root.rstrip('/')}/{args.slug}")

    try:
        result = sync_workspace(local_path, server, args.slug, options)
    except SyncError as exc:
        if exc.result is not None:
            _print_result(args, exc.result)
        _die(str(exc))

    _print_result(args, result)
    if result.action_taken == ACTION_SKIPPED:
        if not args.json:
            print("Remote path already exists. Use --force to overwrite.", file=sys.stderr)
        sys.exit(EXIT_REMOTE_EXISTS)


# ── sync-batch ───────────────────────────────────────────────────────────────

def cmd_sync_batch(args):
    """Sync several workspaces sequentially."""
    from wspush.core.sync_engine import sync_batch
    from wspush.result import format_result, format_repo_results
    from wspush.workspace import list_workspaces

    cfg = _load_config(args)
    slugs = list(args.slugs)
    if args.all:
        slugs += [s for s in list_workspaces(cfg.code_root) if s not in slugs]
    if not slugs:
        _die("no workspaces selected.", "Pass slugs or --all.")

    server = cfg.get_server(args.server)
    entries = sync_batch(slugs, server, _options_from_args(args, cfg), cfg.workspace_path)

    if args.json:
        _print_json([e.to_dict() for e in entries])
    else:
        for entry in entries:
            print(f"\n{entry.slug}")
            if entry.result is not None:
                print(format_result(entry.result), end="")
                print(format_repo_results(entry.result), end="")
            if entry.error:
                print(f"error: {entry.error}", file=sys.stderr)

    if any(e.error for e in entries):
        sys.exit(EXIT_ERROR)


# ── excludes ─────────────────────────────────────────────────────────────────

def cmd_excludes(args):
    """Print the exclude list a sync with these flags would use."""
    from wspush.errors import WspushError
    from wspush.workspace import load_workspace

    cfg = _load_config(args)
    options = _options_from_args(args, cfg)
    try:
        if args.workspace:
            options = options.with_workspace(load_workspace(cfg.workspace_path(args.workspace)))
        excludes = options.build_excludes()
    except WspushError as exc:
        _die(str(exc))

    if args.json:
        _print_json(excludes.patterns)
        return
    print("Effective exclude patterns:")
    for p in excludes:
        print(f"  {p}")


# ── init ─────────────────────────────────────────────────────────────────────

def cmd_init(args):
    """Add (or replace, with --force) a server entry in the config file."""
    import yaml
    from wspush import config as _cfg
    from wspush.errors import ConfigError

    target = Path(args.config).expanduser() if args.config else _cfg.get_global_config_path()

    if target.is_file():
        try:
            data = _cfg.load_config_data(target)
        except ConfigError as exc:
            _die(str(exc))
    else:
        data = {
            "code_root": _cfg.DEFAULT_CODE_ROOT,
            "servers": {},
            "defaults": {"timeout": _cfg.DEFAULT_TIMEOUT},
        }

    servers = data.setdefault("servers", {}) or {}
    data["servers"] = servers
    if args.name in servers and not args.force:
        _die(f"server {args.name!r} already exists in {target}", "Use --force to overwrite.")

    entry = {"ssh": args.ssh, "code_root": args.remote_root or _cfg.DEFAULT_REMOTE_ROOT}
    if args.port:
        entry["port"] = args.port
    if args.ssh_key:
        entry["ssh_key"] = args.ssh_key
    servers[args.name] = entry
    if args.code_root:
        data["code_root"] = args.code_root

    content = "# wspush configuration\n" + yaml.safe_dump(data, sort_keys=False)

    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(content)
        return

    existed = target.exists()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    print(f"{'Updated' if existed else 'Created'} {target}")
    if args.verbose:
        print(content)


# ── main ──────────────────────────────────────────────────────────────────────

def _add_common_flags(p):
    p.add_argument("--config", metavar="PATH",
                   help="Config file (default: $XDG_CONFIG_HOME/wspush/config.yaml)")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Show extra output")


def _add_exclude_flags(p):
    p.add_argument("--no-git", action="store_true",
                   help="Exclude .git directories from the copy")
    p.add_argument("--include-env", action="store_true",
                   help="Include .env files (overrides the default exclude)")
    p.add_argument("--exclude", action="append", metavar="PATTERN",
                   help="Add an exclude pattern (repeatable)")
    p.add_argument("--exclude-from", metavar="FILE",
                   help="Read exclude patterns from FILE (one per line, # comments ignored)")
    p.add_argument("--json", action="store_true",
                   help="Machine-readable output")
    p.add_argument("--timeout", type=float, metavar="SECONDS", default=None,
                   help="Give up on a workspace after this long (0 = no limit)")


def _add_sync_flags(p):
    p.add_argument("-f", "--force", action="store_true",
                   help="Sync even if the remote path exists")
    p.add_argument("-n", "--dry-run", action="store_true",
                   help="Check the remote and report, without changing anything")
    _add_exclude_flags(p)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wspush",
        description="Push workspaces to a remote host; repos are cloned there, not copied",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── sync ──────────────────────────────────────────────────────────────────
    sync_p = subparsers.add_parser(
        "sync",
        help="Sync a workspace to a remote server",
        description="Sync a workspace to <server>:<code_root>/<slug>. Does nothing "
                    "(exit 10) if the remote path already exists, unless --force.",
    )
    sync_p.add_argument("slug", help="Workspace slug")
    sync_p.add_argument("server", help="Server name from config, or an ssh host")
    _add_sync_flags(sync_p)
    _add_common_flags(sync_p)

    # ── sync-batch ────────────────────────────────────────────────────────────
    batch_p = subparsers.add_parser(
        "sync-batch",
        help="Sync several workspaces to a remote server",
        description="Sync each workspace in turn. Repos are cloned on the target; "
                    "existing repos are skipped.",
    )
    batch_p.add_argument("server", help="Server name from config, or an ssh host")
    batch_p.add_argument("slugs", nargs="*", metavar="SLUG", help="Workspace slugs")
    batch_p.add_argument("--all", action="store_true",
                         help="Sync every workspace under code_root")
    _add_sync_flags(batch_p)
    _add_common_flags(batch_p)

    # ── excludes ──────────────────────────────────────────────────────────────
    excl_p = subparsers.add_parser(
        "excludes",
        help="Print the effective exclude list",
        description="Print the exclude patterns a sync with the same flags would use.",
    )
    excl_p.add_argument("--workspace", metavar="SLUG",
                        help="Apply this workspace's project.json sync settings")
    _add_exclude_flags(excl_p)
    _add_common_flags(excl_p)

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser(
        "init",
        help="Add a server to the config file",
        description="Create the wspush config file, or add a server to it.",
    )
    init_p.add_argument("--name", required=True, metavar="NAME",
                        help="Server name used on the command line")
    init_p.add_argument("--ssh", required=True, metavar="HOST",
                        help="ssh destination, e.g. me@devbox or an ~/.ssh/config alias")
    init_p.add_argument("--remote-root", metavar="PATH",
                        help="Remote directory holding workspaces (default: ~/Code)")
    init_p.add_argument("--code-root", metavar="PATH",
                        help="Local directory holding workspaces")
    init_p.add_argument("--port", type=int, metavar="N", help="ssh port")
    init_p.add_argument("--ssh-key", metavar="PATH", help="Private key file")
    init_p.add_argument("--force", action="store_true",
                        help="Overwrite an existing server entry")
    init_p.add_argument("-n", "--dry-run", action="store_true",
                        help="Preview without writing files")
    _add_common_flags(init_p)

    return parser


def main(argv=None):
    """CLI entry point for wspush"""
    from wspush.utils.logging import set_verbose

    parser = build_parser()
    args = parser.parse_args(argv)
    set_verbose(getattr(args, "verbose", False))

    if args.command == "sync":
        cmd_sync(args)
    elif args.command == "sync-batch":
        cmd_sync_batch(args)
    elif args.command == "excludes":
        cmd_excludes(args)
    elif args.command == "init":
        cmd_init(args)
    else:
        parser.print_help()
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
