from pydantic import BaseModel, ConfigDict, Field


class InboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(..., min_length=1)
    text: str = ""
    channel_id: str | None = Field(default=None, alias="channelId")


class ReplyOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply_text: str = Field(..., serialization_alias="replyText")
