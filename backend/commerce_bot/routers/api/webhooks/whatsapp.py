import asyncio
import logging

import requests
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from commerce_bot.chatbot.handler import handle_message
from commerce_bot.core.config import settings
from commerce_bot.database.session import get_db
from commerce_bot.services.erp_service import get_erp_gateway
from commerce_bot.services.whatsapp_service import get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["whatsapp"])


# -------------------------------
# Webhook Verification (GET)
# -------------------------------
@router.get("/webhooks/whatsapp")
def verify_webhook(request: Request):
    hub_mode = request.query_params.get("hub.mode")
    hub_token = request.query_params.get("hub.verify_token")
    hub_challenge = request.query_params.get("hub.challenge", "")

    if hub_mode == "subscribe" and hub_token and hub_token == settings.whatsapp_webhook_verify_token:
        return PlainTextResponse(hub_challenge)

    return PlainTextResponse("Invalid token", status_code=403)


# -------------------------------
# Receive WhatsApp Messages (POST)
# -------------------------------
@router.post("/webhooks/whatsapp")
async def receive_message(
    request: Request,
    db: Session = Depends(get_db),
    gateway=Depends(get_erp_gateway),
    notifier=Depends(get_notifier),
):
    data = await request.json()
    handled = 0

    for entry in data.get("entry", []):
        for change in entry.get("changes", []):
            value = change.get("value", {})
            channel_id = value.get("metadata", {}).get("phone_number_id")

            for msg in value.get("messages", []):
                if msg.get("type") != "text":
                    logger.info("Skipping WhatsApp %s message", msg.get("type"))
                    continue

                phone = msg.get("from")
                text = msg.get("text", {}).get("body", "").strip()

                if not phone or not text:
                    continue

                # turns block on the database and the sender lock, keep them off the loop
                reply = await asyncio.to_thread(handle_message, phone, text, db, gateway, channel_id=channel_id)
                handled += 1
                try:
                    await asyncio.to_thread(notifier.send_text, phone, reply)
                except (requests.RequestException, ValueError):
                    logger.exception("Could not deliver reply to %s", phone)

    return {"status": "ok", "handled": handled}
