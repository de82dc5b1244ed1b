from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from commerce_bot.chatbot.handler import handle_message
from commerce_bot.database.session import get_db
from commerce_bot.schemas.chat import InboundMessage, ReplyOut
from commerce_bot.services.erp_service import get_erp_gateway

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/messages", response_model=ReplyOut, response_model_by_alias=True)
def receive_chat_message(
    payload: InboundMessage,
    db: Session = Depends(get_db),
    gateway=Depends(get_erp_gateway),
):
    reply = handle_message(payload.sender, payload.text, db, gateway, channel_id=payload.channel_id)
    return ReplyOut(reply_text=reply)
