"""
MOA Core Locks — Errors
=========================
"""


class LockError(Exception):
    """Base error for named lock operations."""
    pass


class LockTimeout(LockError):
    """The lock stayed held by someone else for the whole wait window."""

    def __init__(self, name: str, timeout: float):
        self.name = name
        self.timeout = timeout
        super().__init__(
            f"Could not acquire lock '{name}' within {timeout:g}s."
        )
