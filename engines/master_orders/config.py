"""
MOA Master Orders — Engine Settings
=====================================
Read from `settings.MASTER_ORDERS`; unknown keys are ignored,
missing keys fall back to the defaults below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

TERMINAL_PROPAGATE_PREPARED = "prepared"
TERMINAL_PROPAGATE_COMPLETED = "completed"
VALID_TERMINAL_PROPAGATION = frozenset(
    {TERMINAL_PROPAGATE_PREPARED, TERMINAL_PROPAGATE_COMPLETED}
)


@dataclass(frozen=True)
class MasterOrderSettings:
    allocation_lock_timeout: float = 10.0
    allocation_lock_ttl: float = 30.0
    removal_lock_ttl: float = 30.0
    terminal_member_propagation: str = TERMINAL_PROPAGATE_PREPARED

    def __post_init__(self):
        if self.allocation_lock_timeout < 0:
            raise ValueError("allocation_lock_timeout must be >= 0.")
        if self.allocation_lock_ttl <= 0:
            raise ValueError("allocation_lock_ttl must be positive.")
        if self.removal_lock_ttl <= 0:
            raise ValueError("removal_lock_ttl must be positive.")
        if self.terminal_member_propagation not in VALID_TERMINAL_PROPAGATION:
            raise ValueError(
                "terminal_member_propagation must be one of "
                f"{sorted(VALID_TERMINAL_PROPAGATION)}."
            )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "MasterOrderSettings":
        values = values or {}
        defaults = cls()
        return cls(
            allocation_lock_timeout=float(
                values.get("ALLOCATION_LOCK_TIMEOUT", defaults.allocation_lock_timeout)
            ),
            allocation_lock_ttl=float(
                values.get("ALLOCATION_LOCK_TTL", defaults.allocation_lock_ttl)
            ),
            removal_lock_ttl=float(
                values.get("REMOVAL_LOCK_TTL", defaults.removal_lock_ttl)
            ),
            terminal_member_propagation=str(
                values.get(
                    "TERMINAL_MEMBER_PROPAGATION",
                    defaults.terminal_member_propagation,
                )
            ).strip().lower(),
        )


def load_settings() -> MasterOrderSettings:
    from django.conf import settings

    return MasterOrderSettings.from_mapping(getattr(settings, "MASTER_ORDERS", None))
