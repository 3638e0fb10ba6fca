"""
Plan limits, subscriptions and monthly usage counters.

Counters are written only by stored procedures and triggers; the service
reads them for reporting.
"""
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
from enum import Enum
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


class UsageMetricKind(str, Enum):
    """Counter checked by the quota gate."""
    RECORDS = "records"
    QUERIES = "queries"


class Plan(SQLModel, table=True):
    """Subscription tier with its monthly limits."""
    __tablename__ = "plans"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    )
    name: str = Field(
        max_length=100,
        sa_column=Column(String(100), nullable=False)
    )
    max_records: int = Field(
        sa_column=Column(Integer, nullable=False)
    )
    max_queries_per_month: int = Field(
        sa_column=Column(Integer, nullable=False)
    )
    is_free: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False)
    )


class Subscription(SQLModel, table=True):
    __tablename__ = "subscriptions"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    )
    organization_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    plan_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("plans.id"), nullable=False)
    )
    status: str = Field(
        default=SubscriptionStatus.ACTIVE.value,
        max_length=20,
        sa_column=Column(String(20), nullable=False, default="active", index=True)
    )
    current_period_start: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )
    current_period_end: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class UsageMetric(SQLModel, table=True):
    """
    Per-organization, per-month usage counters.

    `month` is the first day of the month.
    """
    __tablename__ = "usage_metrics"

    organization_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)
    )
    month: date = Field(
        sa_column=Column(Date, primary_key=True)
    )
    record_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0, server_default=text("0"))
    )
    query_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0, server_default=text("0"))
    )


def current_month(now: Optional[datetime] = None) -> date:
    """First day of the current UTC month, the key used by usage_metrics."""
    now = now or datetime.now(timezone.utc)
    return date(now.year, now.month, 1)
