"""
Twilio WhatsApp webhook
Acknowledges immediately; the reply is built and sent in a background task
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form
from fastapi.responses import PlainTextResponse

from roho.api.deps import get_dispatcher, get_sender
from roho.core.security import mask_phone, verify_twilio_signature
from roho.schemas.messages import InboundMessage
from roho.services.chatbot.orchestrator import MessageDispatcher
from roho.services.messaging.twilio_sender import TwilioSender

logger = logging.getLogger(__name__)

router = APIRouter()


async def reply_to_message(
    dispatcher: MessageDispatcher,
    sender: TwilioSender,
    message: InboundMessage,
) -> None:
    reply = await dispatcher.dispatch(message)
    await sender.send(message.sender, reply)


@router.post(
    "/webhook",
    response_class=PlainTextResponse,
    dependencies=[Depends(verify_twilio_signature)],
)
async def whatsapp_webhook(
    background_tasks: BackgroundTasks,
    from_address: str = Form(..., alias="From"),
    body: str = Form("", alias="Body"),
    message_sid: Optional[str] = Form(None, alias="MessageSid"),
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
    sender: TwilioSender = Depends(get_sender),
):
    """
    Receive an inbound WhatsApp message.

    Twilio retries on slow responses, so this only queues the work.
    """
    message = InboundMessage(sender=from_address, text=body, message_id=message_sid)
    logger.info(f"📥 Message {message_sid} from {mask_phone(from_address)}")

    background_tasks.add_task(reply_to_message, dispatcher, sender, message)
    return "OK"
