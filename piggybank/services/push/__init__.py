"""Web Push notification services."""

from piggybank.services.push.notifier import PushNotifier
from piggybank.services.push.subscriptions import (
    IOS_SAFARI_HEADER,
    is_ios_safari_request,
    is_ios_safari_user_agent,
)
from piggybank.services.push.transport import (
    EXPIRED_STATUS_CODES,
    PushTransport,
    WebPushTransport,
    classify_delivery,
)

__all__ = [
    "EXPIRED_STATUS_CODES",
    "IOS_SAFARI_HEADER",
    "PushNotifier",
    "PushTransport",
    "WebPushTransport",
    "classify_delivery",
    "is_ios_safari_request",
    "is_ios_safari_user_agent",
]
