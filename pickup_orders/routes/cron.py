"""
Scheduled Job Routes for Pickup Orders
======================================

Endpoints called by an external scheduler (e.g. every 5 minutes).

Endpoints:
----------
- GET /cron/expire-orders: Mark ready orders past their pickup deadline as
  no-shows

Authentication:
---------------
`Authorization: Bearer <CRON_SECRET>`. Returns 503 if CRON_SECRET is not
configured and 401 if the token is missing or wrong.
"""

import logging

from fastapi import APIRouter, Depends

from ..auth import verify_cron_secret
from ..dependencies import get_sweeper
from ..schemas.orders import SweepResponse
from ..services.expiration import ExpirationSweeper


logger = logging.getLogger(__name__)

# Router definition
cron_router = APIRouter(prefix="/cron", tags=["Cron"])


@cron_router.get(
    "/expire-orders",
    response_model=SweepResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def expire_orders(
    sweeper: ExpirationSweeper = Depends(get_sweeper),
) -> SweepResponse:
    """Run the expiration sweeper once and report what it did."""
    now = sweeper.clock()
    result = sweeper.sweep(now)
    return SweepResponse(
        timestamp=now,
        checked=result.checked,
        expired=result.expired_ids,
        expired_count=len(result.expired_ids),
    )
