"""Consultation Status Value Object.

Lifecycle states of a consultation and their valid transitions.
"""

from enum import Enum


class ConsultationStatus(str, Enum):
    """Estados da consulta com máquina de estados."""

    WAITING = "waiting"  # Paciente aguardando / consulta pausada
    IN_PROGRESS = "in_progress"  # Em atendimento
    COMPLETED = "completed"  # Finalizada (prontuário gerado)
    CANCELLED = "cancelled"  # Cancelada

    @property
    def display_name(self) -> str:
        names = {
            "waiting": "Aguardando",
            "in_progress": "Em andamento",
            "completed": "Finalizada",
            "cancelled": "Cancelada",
        }
        return names.get(self.value, self.value)

    def can_transition_to(self, new_status: "ConsultationStatus") -> bool:
        """Check whether the transition is allowed.

        State machine:
        - waiting -> in_progress, cancelled
        - in_progress -> completed, waiting (pause), cancelled
        - completed -> (final state)
        - cancelled -> (final state)
        """
        transitions: dict[str, list[str]] = {
            "waiting": ["in_progress", "cancelled"],
            "in_progress": ["completed", "waiting", "cancelled"],
            "completed": [],
            "cancelled": [],
        }
        return new_status.value in transitions.get(self.value, [])

    def is_open(self) -> bool:
        """Open consultations are the ones crash recovery brings back."""
        return self.value in ["waiting", "in_progress"]

    def is_final(self) -> bool:
        return self.value in ["completed", "cancelled"]

    @classmethod
    def open_states(cls) -> list["ConsultationStatus"]:
        return [status for status in cls if status.is_open()]


class ExternalSyncStatus(str, Enum):
    """Outcome of writing the consultation result back to the external schedule."""

    NOT_APPLICABLE = "not_applicable"  # No linked appointment
    PENDING = "pending"  # Completed, write-back not confirmed yet
    SYNCED = "synced"
    FAILED = "failed"

    def needs_retry(self) -> bool:
        return self in (ExternalSyncStatus.PENDING, ExternalSyncStatus.FAILED)
