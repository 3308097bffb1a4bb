"""
Price alert and notification endpoints
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from wallet_api.api.dependencies import get_db, get_notifier, require_admin
from wallet_api.api.schemas.wallet import PriceAlertCreate, SendNotificationRequest
from wallet_api.database import queries
from wallet_api.services.price_alerts import alert_to_dict, create_alert
from wallet_api.utils.exceptions import NotFoundError

router = APIRouter()


@router.get("/price-alerts/{user_id}")
async def list_price_alerts(user_id: str, db: Session = Depends(get_db)):
    return [alert_to_dict(alert) for alert in queries.get_price_alerts_by_user(db, user_id)]


@router.post("/price-alerts", status_code=201)
async def create_price_alert(body: PriceAlertCreate, request: Request, db: Session = Depends(get_db)):
    alert = create_alert(
        db,
        user_id=body.user_id,
        symbol=body.symbol,
        target_price=body.target_price,
        condition=body.condition,
        symbols=request.app.state.ledger.symbols
    )
    return alert_to_dict(alert)


@router.delete("/price-alerts/{alert_id}")
async def delete_price_alert(alert_id: str, db: Session = Depends(get_db)):
    queries.delete_price_alert(db, alert_id)
    return {"success": True}


@router.post("/admin/send-notification", dependencies=[Depends(require_admin)])
async def send_notification(
    body: SendNotificationRequest,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
):
    """Push an admin-written message to one user"""
    if queries.get_user(db, body.user_id) is None:
        raise NotFoundError("User", body.user_id)

    delivered = await notifier.send(body.user_id, {
        "title": body.title,
        "body": body.body,
        "data": {"type": "admin"},
    })
    return {"success": True, "delivered": delivered}
