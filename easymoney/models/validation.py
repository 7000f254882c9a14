"""
Validation Result Models

What the record validator reports. Validation never fixes anything;
it describes problems so the caller can decide.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from easymoney.models.records import DocumentRecord


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'malformed', 'future_date', 'duplicate')"
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
    Result of the two-stage validation.

    Stage 1: Schema validation (document decodes into a record)
    Stage 2: Semantic validation (logic checks on the decoded record)
    """

    entity_type: str
    record: Optional[DocumentRecord] = Field(
        default=None,
        description="The decoded record, None when stage 1 failed"
    )
    validated_at: datetime = Field(default_factory=datetime.now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)
