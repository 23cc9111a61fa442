"""External Schedule Status Value Object.

Appointment statuses as stored by the external scheduling system.
"""

from enum import Enum


class ScheduleStatus(str, Enum):
    """Status de um agendamento no sistema externo."""

    PENDING = "pendente"
    CONFIRMED = "confirmado"
    DONE = "realizado"
    CANCELLED = "cancelado"
    NO_SHOW = "faltou"

    @classmethod
    def parse(cls, value: str | None) -> "ScheduleStatus | str | None":
        """Map a raw status, keeping unknown values as plain strings."""
        if value is None:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return value
