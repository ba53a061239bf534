import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import get_pipeline, get_waha_client
from api.pipeline import InboundMessage, MessagePipeline
from integration.waha_client import WahaClient
from marbot.timeutil import truncate_for_log

router = APIRouter()
logger = logging.getLogger(__name__)

HANDLED_EVENTS = {"message", "message.any"}


class WahaMedia(BaseModel):
    url: Optional[str] = None
    mimetype: Optional[str] = None


class WahaReplyTo(BaseModel):
    id: Optional[str] = None
    body: Optional[str] = None


class WahaMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    chat_id: str = Field(..., alias="from")
    from_me: bool = Field(False, alias="fromMe")
    participant: Optional[str] = None
    body: Optional[str] = ""
    has_media: bool = Field(False, alias="hasMedia")
    media: Optional[WahaMedia] = None
    reply_to: Optional[WahaReplyTo] = Field(None, alias="replyTo")


class WahaEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str
    session: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


async def _image_of(message: WahaMessage, waha: Optional[WahaClient]) -> Optional[str]:
    media = message.media
    if not message.has_media or media is None or not media.url or waha is None:
        return None
    if not (media.mimetype or "").startswith("image/"):
        return None
    return await asyncio.to_thread(waha.fetch_media_base64, media.url)


@router.post("/webhook")
async def receive_webhook(
    event: WahaEvent,
    pipeline: Optional[MessagePipeline] = Depends(get_pipeline),
    waha: Optional[WahaClient] = Depends(get_waha_client),
) -> dict:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="pipeline not initialized")
    if event.event not in HANDLED_EVENTS:
        return {"status": "ignored", "reason": "event"}

    message = WahaMessage.model_validate(event.payload)
    if message.from_me:
        return {"status": "ignored", "reason": "own message"}

    logger.info(f"Message {message.id} in {message.chat_id}: {truncate_for_log(message.body or '')}")

    inbound = InboundMessage(
        sender_id=message.participant or message.chat_id,
        chat_id=message.chat_id,
        text=message.body or "",
        message_id=message.id,
        image_base64=await _image_of(message, waha),
        quoted_text=message.reply_to.body if message.reply_to else None,
    )
    replies = await pipeline.handle(inbound)

    sent = 0
    for reply in replies:
        if waha is not None and await asyncio.to_thread(waha.send_text, reply):
            sent += 1

    return {"status": "processed", "replies": len(replies), "sent": sent}
