"""MySQL backup for lazy sysadmins."""

__version__ = "0.8"
