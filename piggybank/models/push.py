"""
Push Notification Models

Models for the Web Push subscription lifecycle:
1. A device registers a subscription (endpoint + encryption keys)
2. After a transaction is ingested, every registered device is notified
3. Each send produces a DeliveryResult
4. Expired endpoints are removed from the registration set

DESIGN DECISION: Delivery results are an explicit variant type
(DeliveryOutcome) rather than exceptions bubbling out of the transport.
The cleanup policy can then be tested without any network.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def build_subscription_id(endpoint: str) -> str:
    """
    Document key for a subscription: the endpoint with '/' replaced by '_'.

    Registration upserts on this key, so registering the same endpoint
    twice leaves exactly one record.
    """
    return endpoint.replace("/", "_")


class PushKeys(BaseModel):
    """Client encryption keys from the browser's PushSubscription."""
    model_config = ConfigDict(str_strip_whitespace=True)

    auth: str = Field(..., min_length=1)
    p256dh: str = Field(..., min_length=1)


class PushSubscription(BaseModel):
    """A registered device endpoint."""
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    endpoint: str = Field(..., min_length=1)
    keys: PushKeys
    is_ios_safari: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_ios_safari", "isIOSSafari"),
    )
    user_agent: str = Field(
        default="unknown",
        validation_alias=AliasChoices("user_agent", "userAgent"),
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_seen: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("last_seen", "lastSeen"),
    )

    @property
    def subscription_id(self) -> str:
        return build_subscription_id(self.endpoint)

    def to_subscription_info(self) -> dict[str, Any]:
        """Shape expected by Web Push libraries."""
        return {
            "endpoint": self.endpoint,
            "keys": {"auth": self.keys.auth, "p256dh": self.keys.p256dh},
        }

    def to_public_dict(self) -> dict[str, Any]:
        """Camel-cased view returned by the API."""
        return {
            "id": self.subscription_id,
            "endpoint": self.endpoint,
            "keys": {"auth": self.keys.auth, "p256dh": self.keys.p256dh},
            "isIOSSafari": self.is_ios_safari,
            "userAgent": self.user_agent,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "lastSeen": self.last_seen.isoformat() if self.last_seen else None,
        }


class DeliveryOutcome(str, Enum):
    """Result of sending one notification to one endpoint."""
    DELIVERED = "delivered"
    EXPIRED = "expired"                      # endpoint gone: delete, never retry
    TRANSIENT_FAILURE = "transient_failure"  # log and drop


class DeliveryResult(BaseModel):
    """Outcome of one send."""

    outcome: DeliveryOutcome
    endpoint: str
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.outcome == DeliveryOutcome.DELIVERED


class PushNotification(BaseModel):
    """What the user sees, plus data for the service worker."""

    title: str = Field(default="piggybank", max_length=100)
    body: str = Field(..., max_length=500)
    url: str = Field(default="/")
    tag: Optional[str] = None
    data: dict[str, str] = Field(default_factory=dict)

    def to_payload(self, timestamp_ms: int) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "body": self.body,
            "url": self.url,
            "data": dict(self.data),
            "timestamp": timestamp_ms,
        }
        if self.tag:
            payload["tag"] = self.tag
        return payload


class PushFanoutSummary(BaseModel):
    """Counts from notifying every device of one user."""

    sent: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    expired: int = Field(default=0, ge=0, description="Subset of failed that were removed")
    total: int = Field(default=0, ge=0)
    skipped_reason: Optional[str] = None
