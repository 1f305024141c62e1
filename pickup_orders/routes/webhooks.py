"""
Twilio Webhook Routes for Pickup Orders
=======================================

Twilio posts every SMS sent to the shop's number here. Customers use it to
answer replacement suggestions with YES or NO.

Endpoints:
----------
- POST /webhooks/sms: Inbound SMS (form fields From, To, Body, MessageSid)

Response:
---------
Always 200 with a TwiML document containing one reply message. Twilio
retries non-2xx responses, which would apply the customer's answer twice,
so processing errors are answered with a "please call us" reply instead.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool
from twilio.twiml.messaging_response import MessagingResponse

from ..dependencies import get_negotiation
from ..services.messaging import MessageKind, render_message
from ..services.replacement import ReplacementNegotiation
from ..sms import parse_incoming_sms


logger = logging.getLogger(__name__)

# Router definition
webhooks_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@webhooks_router.post("/sms", response_class=Response)
async def inbound_sms(
    request: Request,
    negotiation: ReplacementNegotiation = Depends(get_negotiation),
) -> Response:
    """Handle a customer text and reply with TwiML."""
    try:
        form = await request.form()
        incoming = parse_incoming_sms(form)
        reply = await run_in_threadpool(negotiation.handle_inbound_sms, incoming)
    except Exception:
        logger.exception("Failed to process inbound SMS")
        reply = render_message(MessageKind.ERROR_FALLBACK)

    twiml = MessagingResponse()
    twiml.message(reply)
    return Response(content=str(twiml), media_type="text/xml")
