"""
Device Detection for Push Subscriptions

iOS Safari (installed as a home-screen app) is the most restrictive Web
Push client: it needs Apple endpoints, full-length keys and a longer TTL.
Requests are flagged as iOS Safari either by an explicit header from our
own client or by the user agent.
"""

import re
from typing import Optional

IOS_SAFARI_HEADER = "x-ios-safari"

_IOS_DEVICE = re.compile(r"iPad|iPhone|iPod")
_SAFARI = re.compile(r"Safari")
# Chrome and Firefox on iOS also say "Safari" in their user agent
_OTHER_IOS_BROWSER = re.compile(r"CriOS|FxiOS")


def is_ios_safari_user_agent(user_agent: Optional[str]) -> bool:
    ua = user_agent or ""
    return bool(
        _IOS_DEVICE.search(ua)
        and _SAFARI.search(ua)
        and not _OTHER_IOS_BROWSER.search(ua)
    )


def is_ios_safari_request(user_agent: Optional[str], ios_header: Optional[str] = None) -> bool:
    """
    Args:
        user_agent: The request's User-Agent header
        ios_header: Value of the x-ios-safari header, if sent
    """
    return ios_header == "true" or is_ios_safari_user_agent(user_agent)
