import base64
import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)

WAHA_BASE_URL = os.getenv("WAHA_BASE_URL", "http://waha:3000").rstrip("/")
WAHA_API_KEY = os.getenv("WAHA_API_KEY", "")
WAHA_SESSION = os.getenv("WAHA_SESSION", "default")


@dataclass(frozen=True)
class OutboundReply:
    chat_id: str
    text: str
    reply_to: Optional[str] = None


class WahaClient:
    """Sends text replies through a WAHA (WhatsApp HTTP API) gateway."""

    def __init__(
        self,
        base_url: str = WAHA_BASE_URL,
        api_key: str = WAHA_API_KEY,
        session: str = WAHA_SESSION,
        timeout_s: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session
        self.timeout_s = timeout_s

    def send_text(self, reply: OutboundReply) -> bool:
        """Returns False when the gateway could not be reached or refused the message."""
        body = {"session": self.session, "chatId": reply.chat_id, "text": reply.text}
        if reply.reply_to:
            body["reply_to"] = reply.reply_to

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key

        try:
            resp = requests.post(
                f"{self.base_url}/api/sendText", json=body, headers=headers, timeout=self.timeout_s
            )
            resp.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning(f"Failed to send reply to {reply.chat_id}: {e}")
            return False

    def fetch_media_base64(self, url: str) -> Optional[str]:
        """Download an attachment the gateway stored and return it base64-encoded."""
        headers = {"X-Api-Key": self.api_key} if self.api_key else {}
        try:
            resp = requests.get(url, headers=headers, timeout=self.timeout_s)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Failed to download media {url}: {e}")
            return None
        return base64.b64encode(resp.content).decode("ascii")
