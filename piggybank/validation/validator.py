"""
Two-Stage Request Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Basic shape of the request body
- This catches malformed shortcut and client payloads

STAGE 2 - SEMANTIC VALIDATION:
- Amount is a usable number within limits
- Type is one of the known transaction types
- Field lengths are sane
- This catches values that parse but make no sense

Stage 2 is skipped if stage 1 fails: there is nothing to check yet.

IMPORTANT: The first error's message is what the client sees, so the
messages are written for humans.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from piggybank.config import get_settings
from piggybank.models.finance import TransactionType
from piggybank.models.push import PushKeys
from piggybank.models.validation import ValidationIssue, ValidationResult


logger = structlog.get_logger(__name__)


MISSING_USER_OR_DATA = "Missing UserID or Data"
MISSING_REQUIRED_FIELDS = "Missing required fields: Amount, Category, Type"
INVALID_TYPE = "Type must be 'income' or 'expense'"

MAX_CATEGORY_LENGTH = 100
MAX_NOTES_LENGTH = 1000

# Shortest keys iOS Safari is known to produce
IOS_MIN_AUTH_LENGTH = 16
IOS_MIN_P256DH_LENGTH = 65
APPLE_PUSH_HOST = "web.push.apple.com"


class IngestValidationError(ValueError):
    """The transaction ingest body was rejected."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.message = message
        self.issues = issues or []


class SubscriptionValidationError(ValueError):
    """The push subscription payload was rejected."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class IngestRequest(BaseModel):
    """A validated ingest body, ready to become a Transaction."""

    user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0, description="Absolute value of the submitted amount")
    category: str = Field(..., min_length=1, max_length=MAX_CATEGORY_LENGTH)
    type: TransactionType
    notes: str = Field(default="", max_length=MAX_NOTES_LENGTH)


def _parse_amount(value: Any) -> Optional[Decimal]:
    """Decimal for ints, floats and numeric strings; None for anything else."""
    if isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    # 0 counts as missing, like any falsy amount
    return not value


class TransactionIngestValidator:
    """
    Validates the body of POST /transactions.

    Expected shape:
        {"UserID": "...", "Data": {"Amount": 12.5, "Category": "F&B",
                                   "Notes": "...", "Type": "expense"}}
    """

    def __init__(self, max_amount: Optional[Decimal] = None):
        """
        Args:
            max_amount: Largest accepted absolute amount.
                        Defaults to the configured maximum.
        """
        if max_amount is None:
            max_amount = Decimal(str(get_settings().app.max_transaction_amount))
        self._max_amount = max_amount

    def _validate_schema(self, body: Any) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: the envelope and the required fields.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not isinstance(body, dict):
            issues.append(ValidationIssue(
                field="body",
                issue_type="missing",
                message=MISSING_USER_OR_DATA,
                severity="error",
            ))
            return False, issues

        user_id = body.get("UserID")
        data = body.get("Data")
        if not isinstance(user_id, str) or not user_id.strip() or not isinstance(data, dict):
            issues.append(ValidationIssue(
                field="Data" if isinstance(user_id, str) and user_id.strip() else "UserID",
                issue_type="missing",
                message=MISSING_USER_OR_DATA,
                severity="error",
            ))
            return False, issues

        missing = [
            name for name in ("Amount", "Category", "Type")
            if _is_blank(data.get(name))
        ]
        if missing:
            issues.append(ValidationIssue(
                field=",".join(missing),
                issue_type="missing",
                message=MISSING_REQUIRED_FIELDS,
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(self, data: dict) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: values.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        type_value = data.get("Type")
        if not isinstance(type_value, str) or type_value.strip().lower() not in {
            t.value for t in TransactionType
        }:
            issues.append(ValidationIssue(
                field="Type",
                issue_type="invalid_value",
                message=INVALID_TYPE,
                severity="error",
            ))

        amount = _parse_amount(data.get("Amount"))
        if amount is None:
            issues.append(ValidationIssue(
                field="Amount",
                issue_type="invalid_format",
                message="Amount must be a number",
                severity="error",
            ))
        elif abs(amount) > self._max_amount:
            issues.append(ValidationIssue(
                field="Amount",
                issue_type="invalid_value",
                message=f"Amount cannot exceed {self._max_amount:,.0f}",
                severity="error",
            ))
        elif amount < 0:
            issues.append(ValidationIssue(
                field="Amount",
                issue_type="normalized",
                message="Negative amount stored as its absolute value",
                severity="info",
            ))

        category = data.get("Category")
        if not isinstance(category, str):
            issues.append(ValidationIssue(
                field="Category",
                issue_type="invalid_format",
                message="Category must be a string",
                severity="error",
            ))
        elif len(category.strip()) > MAX_CATEGORY_LENGTH:
            issues.append(ValidationIssue(
                field="Category",
                issue_type="too_long",
                message=f"Category cannot exceed {MAX_CATEGORY_LENGTH} characters",
                severity="error",
            ))

        notes = data.get("Notes")
        if notes is not None and len(str(notes)) > MAX_NOTES_LENGTH:
            issues.append(ValidationIssue(
                field="Notes",
                issue_type="too_long",
                message=f"Notes cannot exceed {MAX_NOTES_LENGTH} characters",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, body: Any) -> ValidationResult:
        """
        Run the full two-stage pipeline.

        Returns:
            ValidationResult with all issues found
        """
        schema_valid, issues = self._validate_schema(body)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(body["Data"])
            issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
        )

    def parse(self, body: Any) -> IngestRequest:
        """
        Validate and convert the body.

        Raises:
            IngestValidationError: With the first error's message
        """
        result = self.validate(body)
        if not result.is_valid:
            raise IngestValidationError(result.first_error, result.issues)

        data = body["Data"]
        notes = data.get("Notes")
        return IngestRequest(
            user_id=body["UserID"].strip(),
            amount=abs(_parse_amount(data["Amount"])),
            category=data["Category"].strip(),
            type=data["Type"].strip().lower(),
            notes="" if notes is None else str(notes),
        )


def validate_subscription_payload(subscription: Any, is_ios_safari: bool) -> PushKeys:
    """
    Check a browser PushSubscription before it is stored.

    iOS Safari keys are held to minimum lengths; a non-Apple endpoint on
    iOS is suspicious but only logged.

    Returns:
        The validated keys

    Raises:
        SubscriptionValidationError: With a message naming the bad field
    """
    if not isinstance(subscription, dict):
        raise SubscriptionValidationError("Invalid subscription object")

    endpoint = subscription.get("endpoint")
    if not endpoint or not isinstance(endpoint, str):
        raise SubscriptionValidationError("Missing or invalid endpoint")

    keys = subscription.get("keys")
    if not keys or not isinstance(keys, dict):
        raise SubscriptionValidationError("Missing or invalid keys object")

    auth = keys.get("auth")
    if not auth or not isinstance(auth, str):
        raise SubscriptionValidationError("Missing or invalid auth key")

    p256dh = keys.get("p256dh")
    if not p256dh or not isinstance(p256dh, str):
        raise SubscriptionValidationError("Missing or invalid p256dh key")

    if is_ios_safari:
        if APPLE_PUSH_HOST not in endpoint:
            logger.warning("ios_subscription_not_apple_endpoint", endpoint=endpoint)
        if len(auth) < IOS_MIN_AUTH_LENGTH or len(p256dh) < IOS_MIN_P256DH_LENGTH:
            raise SubscriptionValidationError("iOS push keys appear to be too short")

    return PushKeys(auth=auth, p256dh=p256dh)
