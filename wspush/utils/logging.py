"""
Logging utilities for wspush

stdout carries only the command's result: the human-readable report, or
the JSON document under --json. Every progress line, warning and error
message goes through log() / vlog() / warn() to stderr, prefixed with an
HH:MM:SS timestamp and flushed immediately.

vlog() is silent unless set_verbose(True) was called (``-v``). Child
processes that print progress of their own (rsync) check is_verbose()
and are pointed at stderr, never at stdout.
"""
import sys
from datetime import datetime

_verbose = False


def set_verbose(verbose: bool):
    """Set the verbose flag"""
    global _verbose
    _verbose = verbose


def is_verbose() -> bool:
    return _verbose


def log(msg: str):
    """Log a message with timestamp"""
    ts = datetime.now().strftime("%H:%M:%S")
    print(f"[{ts}] {msg}", file=sys.stderr, flush=True)


def vlog(msg: str):
    """Log a verbose message (only if verbose mode is enabled)"""
    if _verbose:
        log(msg)


def warn(msg: str):
    """Log a warning message"""
    log(f"⚠  {msg}")
