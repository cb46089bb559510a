from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from orderflow.core.dependencies import get_webhook_receiver
from orderflow.core.webhook_receiver import WebhookReceiver
from orderflow.db.session import get_db
from orderflow.schemas.payment import WebhookAck

router = APIRouter()


@router.post("/{gateway}", response_model=WebhookAck)
async def receive_webhook(
    gateway: str,
    request: Request,
    db: Session = Depends(get_db),
    receiver: WebhookReceiver = Depends(get_webhook_receiver),
):
    """
    Gateway notifications. The raw body is needed for signature checks, so it is
    read before any parsing.
    """
    raw_payload = await request.body()
    outcome = await run_in_threadpool(receiver.handle, db, gateway, raw_payload, dict(request.headers))
    return WebhookAck(outcome=outcome)
