import logging
from functools import lru_cache

import requests

from commerce_bot.core.config import settings

logger = logging.getLogger(__name__)


class WhatsAppCloudNotifier:
    def __init__(self, access_token=None, phone_number_id=None, api_url=None, timeout=10):
        self.access_token = access_token or settings.whatsapp_access_token
        self.phone_number_id = phone_number_id or settings.whatsapp_phone_number_id
        self.api_url = api_url or settings.whatsapp_api_url
        self.timeout = timeout

    def send_text(self, recipient: str, text: str):
        if not self.access_token or not self.phone_number_id:
            raise ValueError("WhatsApp credentials missing")

        url = f"{self.api_url}/{self.phone_number_id}/messages"

        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {
                "body": text
            }
        }

        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)

        if response.status_code != 200:
            logger.error("WhatsApp text error: %s", response.text)
            response.raise_for_status()

        logger.info("WhatsApp reply sent to %s", recipient)
        return response.json()


@lru_cache
def get_notifier() -> WhatsAppCloudNotifier:
    return WhatsAppCloudNotifier()
