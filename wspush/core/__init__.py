"""Core functionality"""
from .options import SyncOptions
from .ssh_manager import SSHManager
from .sync_engine import sync_workspace, sync_batch

__all__ = ["SyncOptions", "SSHManager", "sync_workspace", "sync_batch"]
