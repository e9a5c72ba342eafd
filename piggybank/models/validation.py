"""
Validation Result Models

Validators never raise on the first problem they find; they collect
every issue, then the caller decides whether to reject the request.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'too_short')"
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


class ValidationResult(BaseModel):
    """
    Result of a validation pass.

    Stage 1: Schema validation (presence, types)
    Stage 2: Semantic validation (value checks)
    """

    schema_valid: bool = True
    semantic_valid: bool = True
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def first_error(self) -> Optional[str]:
        """Message of the first error, which is what the API reports."""
        errors = self.errors
        return errors[0].message if errors else None
