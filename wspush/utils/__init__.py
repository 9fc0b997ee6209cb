"""Utilities (logging, retry, deadlines, shell quoting, excludes, git)"""
from .logging import log, vlog, warn, set_verbose
from .deadline import Deadline
from .shell import shell_quote, remote_path_expr
from .excludes import ExcludeList, build_exclude_list, parse_exclude_file, resolve_excludes

__all__ = [
    "log", "vlog", "warn", "set_verbose",
    "Deadline",
    "shell_quote", "remote_path_expr",
    "ExcludeList", "build_exclude_list", "parse_exclude_file", "resolve_excludes",
]
