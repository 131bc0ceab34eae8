"""Request dependencies shared by the routers."""

from fastapi import HTTPException, Request

from ..analysis.insights import InsightTier, tier_for_plan
from ..services import VaultServices


def get_services(request: Request) -> VaultServices:
    return request.app.state.services


def get_user_id(request: Request) -> str:
    """Verified user id placed in a header by the fronting identity proxy."""
    header = request.app.state.config.api.user_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def get_insight_tier(request: Request) -> InsightTier:
    header = request.app.state.config.api.plan_header
    return tier_for_plan(request.headers.get(header))
