"""
Courier webhook endpoints.

Vendors retry aggressively on anything but their expected acknowledgment,
so failures on our side are logged and the vendor still gets its ack.
"""
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging
from app.database import get_db
from app.config import settings
from app.couriers.pathao import INTEGRATION_SECRET_HEADER, is_handshake
from app.couriers.registry import CourierRegistry, get_courier_registry
from app.exceptions import FulfillmentError, OrderNotFound, WebhookUnauthorized
from app.services.courier_events import ingest_courier_event
from app.utils.notifications import get_notifier

logger = logging.getLogger(__name__)

# /api/v1/webhooks
router = APIRouter()
# /api/v1/couriers/steadfast
steadfast_router = APIRouter()


def _pathao_ack() -> Response:
    return Response(
        status_code=status.HTTP_202_ACCEPTED,
        headers={INTEGRATION_SECRET_HEADER: settings.PATHAO_WEBHOOK_SECRET},
    )


@router.post("/pathao/status-update", status_code=status.HTTP_202_ACCEPTED)
async def pathao_status_update(
    request: Request,
    db: Session = Depends(get_db),
    registry: CourierRegistry = Depends(get_courier_registry),
    notifier=Depends(get_notifier)
):
    """
    Pathao order events; always answered with 202.
    The integration header echoes our secret, so it is only sent to a
    verified caller with a well-formed body.
    """
    adapter = registry.get("pathao")
    try:
        adapter.verify_webhook(request.headers)
    except WebhookUnauthorized as e:
        logger.warning(f"Rejected Pathao webhook: {e.message}")
        return Response(status_code=status.HTTP_202_ACCEPTED)

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Pathao webhook with a non-JSON body ignored")
        return Response(status_code=status.HTTP_202_ACCEPTED)

    if is_handshake(payload):
        logger.info("Pathao webhook integration verification received")
        return _pathao_ack()

    try:
        event = adapter.parse_webhook_event(payload)
        if event is None:
            logger.warning(f"Unrecognised Pathao webhook payload: {payload}")
        else:
            order = ingest_courier_event(db, event, notifier=notifier)
            logger.info(f"Pathao webhook applied to order {order.id}: {event.raw_status}")
    except OrderNotFound as e:
        logger.warning(f"Pathao webhook for unknown order: {e.details}")
    except FulfillmentError as e:
        logger.warning(f"Pathao webhook not applied: {e.message}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error processing Pathao webhook: {e}", exc_info=True)

    return _pathao_ack()


@steadfast_router.post("/webhook")
async def steadfast_webhook(
    request: Request,
    db: Session = Depends(get_db),
    registry: CourierRegistry = Depends(get_courier_registry),
    notifier=Depends(get_notifier)
):
    """Steadfast delivery_status and tracking_update notifications"""
    adapter = registry.get("steadfast")
    try:
        adapter.verify_webhook(request.headers)
    except WebhookUnauthorized as e:
        logger.warning(f"Rejected Steadfast webhook: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"status": "error", "message": "Unauthorized"},
        )

    try:
        payload = await request.json()
    except ValueError:
        payload = None

    event = adapter.parse_webhook_event(payload)
    if event is None:
        logger.warning(f"Invalid Steadfast webhook data: {payload}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"status": "error", "message": "Invalid webhook data"},
        )

    message = "Webhook received successfully."
    try:
        ingest_courier_event(db, event, notifier=notifier)
    except OrderNotFound as e:
        logger.warning(f"Steadfast webhook for unknown order: {e.details}")
        message = "Webhook received but order not found"
    except FulfillmentError as e:
        logger.warning(f"Steadfast webhook not applied: {e.message}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error processing Steadfast webhook: {e}", exc_info=True)

    return {"status": "success", "message": message}


@steadfast_router.get("/webhook")
async def steadfast_webhook_status():
    """Reachability check used when configuring the webhook in Steadfast"""
    return {"status": "success", "message": "Steadfast webhook endpoint is active"}
