"""
Messaging hand-off helpers.

The service never sends anything: it builds a URI such as
``sms:+12025550172?body=Hello%20there`` and asks the environment to open it.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional
from urllib.parse import quote


logger = logging.getLogger(__name__)

HandoffLauncher = Callable[[str], None]

_MOBILE_AGENT = re.compile(
    r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini",
    re.IGNORECASE,
)

# Characters left unescaped by a browser's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


def build_handoff_uri(phone_number: str, message: str, scheme: str = "sms") -> str:
    """Build ``<scheme>:<phone>?body=<url-encoded message>``."""
    return f"{scheme}:{phone_number}?body={quote(message, safe=_URI_COMPONENT_SAFE)}"


def is_mobile_user_agent(user_agent: Optional[str]) -> bool:
    return bool(user_agent and _MOBILE_AGENT.search(user_agent))


def log_launcher(uri: str) -> None:
    """Default launcher: the client navigates to the returned URI itself."""
    logger.info(f"📤 Hand-off link ready: {uri}")
