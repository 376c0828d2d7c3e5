"""Validation result models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from invoicing.models.entities import utc_now


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'mismatch', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating an invoice before it is saved.

    Stage 1: Required selections (client, business, number)
    Stage 2: Arithmetic and consistency checks
    """

    invoice_id: UUID = Field(
        ...,
        description="ID of the invoice being validated"
    )
    validated_at: datetime = Field(default_factory=utc_now)

    required_fields_valid: bool
    arithmetic_valid: bool
    is_valid: bool = Field(
        ...,
        description="True if nothing blocks saving"
    )

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]
