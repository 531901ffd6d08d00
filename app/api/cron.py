"""
Cron endpoints for an external scheduler.
Guarded by `Authorization: Bearer <CRON_SECRET>` instead of a user token.
"""

import hmac
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from app.api.deps import DbSession
from app.config import get_settings
from app.services.booking_alerts import run_daily_alerts

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)


class AlertsRunResponse(BaseModel):
    passport_alerts: int
    trip_alerts: int
    abandoned_leads: int
    completed_leads: int


async def verify_cron_secret(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> None:
    secret = get_settings().cron_secret
    if not secret or not credentials or not hmac.compare_digest(credentials.credentials, secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
            headers={"WWW-Authenticate": "Bearer"},
        )


@router.post("/alerts", response_model=AlertsRunResponse, dependencies=[Depends(verify_cron_secret)])
async def run_alerts(db: DbSession):
    """Run the daily alert job now."""
    try:
        counts = await run_daily_alerts(db)
    except Exception:
        logger.exception("Alert job failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Alert job failed",
        )
    return AlertsRunResponse(**counts)
