"""
User agent parsing backed by the user-agents library
"""

from typing import Optional

from user_agents import parse as parse_user_agent

from .models import DeviceInfo


def _family(value: Optional[str]) -> Optional[str]:
    if not value or value == "Other":
        return None
    return value


class UserAgentsParser:
    """UserAgentParserProtocol implementation over user_agents.parse"""

    def parse(self, user_agent: str) -> DeviceInfo:
        if not user_agent:
            return DeviceInfo()

        ua = parse_user_agent(user_agent)
        if ua.is_bot:
            device_type = "bot"
        elif ua.is_tablet:
            device_type = "tablet"
        elif ua.is_mobile:
            device_type = "mobile"
        elif ua.is_pc:
            device_type = "desktop"
        else:
            device_type = None

        return DeviceInfo(
            device_type=device_type,
            browser=_family(ua.browser.family),
            os=_family(ua.os.family),
        )


__all__ = ["UserAgentsParser"]
