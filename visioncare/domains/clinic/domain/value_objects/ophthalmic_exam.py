"""Ophthalmic Exam Value Object.

Structured, version-tagged physical exam of a consultation. Every field is
optional but named; the payload is validated whenever it crosses the storage
boundary.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from visioncare.core.domain.exceptions import ValidationError
from visioncare.core.shared.merge import deep_merge

CURRENT_EXAM_SCHEMA_VERSION = 1


class _ExamSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)


class VisualAcuity(_ExamSection):
    """Acuidade visual (notação livre, ex. 20/20)."""

    right_eye: str | None = None  # OD
    left_eye: str | None = None  # OE
    both_eyes: str | None = None  # AO


class IntraocularPressure(_ExamSection):
    """Pressão intraocular em mmHg."""

    right_eye: float | None = Field(None, ge=0, le=80)
    left_eye: float | None = Field(None, ge=0, le=80)


class Refraction(_ExamSection):
    """Refração de um olho."""

    spherical: str | None = None
    cylindrical: str | None = None
    axis: int | None = Field(None, ge=0, le=180)
    addition: str | None = None
    dnp: float | None = Field(None, ge=0, le=100)
    acuity: str | None = None


class OphthalmicExam(_ExamSection):
    """Exame físico oftalmológico."""

    schema_version: int = CURRENT_EXAM_SCHEMA_VERSION
    visual_acuity: VisualAcuity = Field(default_factory=VisualAcuity)
    intraocular_pressure: IntraocularPressure = Field(default_factory=IntraocularPressure)
    refraction_od: Refraction = Field(default_factory=Refraction)
    refraction_oe: Refraction = Field(default_factory=Refraction)
    biomicroscopy: str | None = None
    fundoscopy: str | None = None
    ocular_motility: str | None = None
    pupillary_reflexes: str | None = None
    visual_field: str | None = None
    contact_lenses: bool | None = None
    contact_lens_type: str | None = None

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int) -> int:
        if v != CURRENT_EXAM_SCHEMA_VERSION:
            raise ValueError(f"unsupported exam schema version {v}")
        return v

    @classmethod
    def from_storage(cls, data: Mapping[str, Any] | None) -> "OphthalmicExam":
        """Build an exam from its stored JSON, validating it.

        An empty or missing payload is an empty exam. Payloads written before
        the version tag existed are read as the current version.

        Raises:
            ValidationError: If the payload does not match the exam schema.
        """
        if not data:
            return cls()
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid physical exam payload",
                field="physical_exam",
                details={"errors": _error_summary(e)},
            ) from e

    def to_storage(self) -> dict[str, Any]:
        """JSON-ready payload, empty fields omitted, version always present."""
        payload = self.model_dump(mode="json", exclude_none=True)
        for section in ("visual_acuity", "intraocular_pressure", "refraction_od", "refraction_oe"):
            if not payload.get(section):
                payload.pop(section, None)
        payload["schema_version"] = self.schema_version
        return payload

    def merged_with(self, changes: Mapping[str, Any]) -> "OphthalmicExam":
        """Return a new exam with ``changes`` deep-merged in.

        Setting a field to None clears it.
        """
        return OphthalmicExam.from_storage(deep_merge(self.model_dump(mode="json"), changes))

    def is_empty(self) -> bool:
        return self.to_storage() == {"schema_version": self.schema_version}


def _error_summary(error: PydanticValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(loc) for loc in item["loc"]), "message": item["msg"]}
        for item in error.errors()
    ]
