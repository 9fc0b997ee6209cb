"""wspush: push workspaces to remote hosts, cloning repos instead of copying them"""

__version__ = "0.1.0"
