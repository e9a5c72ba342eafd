"""Request validation package."""

from piggybank.validation.validator import (
    IngestRequest,
    IngestValidationError,
    SubscriptionValidationError,
    TransactionIngestValidator,
    validate_subscription_payload,
)

__all__ = [
    "IngestRequest",
    "IngestValidationError",
    "SubscriptionValidationError",
    "TransactionIngestValidator",
    "validate_subscription_payload",
]
