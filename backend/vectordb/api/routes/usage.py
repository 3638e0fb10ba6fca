"""
Usage reporting endpoints (admin only).
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import date

from vectordb.api.deps import Principal, require_capability
from vectordb.core.permissions import Action
from vectordb.db.platform import PlatformClient, get_platform
from vectordb.models.billing import (
    Plan,
    Subscription,
    SubscriptionStatus,
    UsageMetric,
    current_month,
)

router = APIRouter()

HISTORY_MONTHS = 12


class PlanLimits(BaseModel):
    name: str = Field(examples=["Starter"])
    max_records: int = Field(examples=[1000])
    max_queries_per_month: int = Field(examples=[10000])
    is_free: bool


class CurrentUsageResponse(BaseModel):
    month: date
    record_count: int
    query_count: int
    plan: Optional[PlanLimits] = None


class MonthlyUsage(BaseModel):
    month: date
    record_count: int
    query_count: int


class UsageHistoryResponse(BaseModel):
    months: List[MonthlyUsage]


async def _active_plan(platform: PlatformClient, organization_id: UUID) -> Optional[Plan]:
    subscription = await platform.fetch_one(
        Subscription,
        {"organization_id": organization_id, "status": SubscriptionStatus.ACTIVE.value},
    )
    if not subscription:
        return None
    return await platform.fetch_one(Plan, {"id": subscription.plan_id})


@router.get("/current", response_model=CurrentUsageResponse)
async def get_current_usage(
    principal: Principal = Depends(require_capability(Action.VIEW_USAGE)),
    platform: PlatformClient = Depends(get_platform),
):
    """This month's counters next to the active plan's limits."""
    organization_id = UUID(principal.organization_id)
    month = current_month()

    usage = await platform.fetch_one(
        UsageMetric, {"organization_id": organization_id, "month": month}
    )
    plan = await _active_plan(platform, organization_id)

    return CurrentUsageResponse(
        month=month,
        record_count=usage.record_count if usage else 0,
        query_count=usage.query_count if usage else 0,
        plan=PlanLimits(
            name=plan.name,
            max_records=plan.max_records,
            max_queries_per_month=plan.max_queries_per_month,
            is_free=plan.is_free,
        ) if plan else None,
    )


@router.get("/history", response_model=UsageHistoryResponse)
async def get_usage_history(
    principal: Principal = Depends(require_capability(Action.VIEW_USAGE)),
    platform: PlatformClient = Depends(get_platform),
):
    """Counters for the last 12 months that have any usage, newest first."""
    rows = await platform.fetch_all(
        UsageMetric,
        {"organization_id": UUID(principal.organization_id)},
        order_by="month",
        descending=True,
        limit=HISTORY_MONTHS,
    )
    return UsageHistoryResponse(
        months=[
            MonthlyUsage(month=row.month, record_count=row.record_count, query_count=row.query_count)
            for row in rows
        ]
    )
