"""
Organization (tenant root) and user profile models.

Rows are owned by the managed platform; user profile ids are the platform's
auth user ids.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, DateTime, text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from vectordb.core.permissions import Role


class Organization(SQLModel, table=True):
    """
    Tenant root.

    Reachable at "{slug}.{ROOT_DOMAIN}" or at its custom domain.
    """
    __tablename__ = "organizations"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    )
    name: str = Field(
        max_length=255,
        sa_column=Column(String(255), nullable=False)
    )
    slug: str = Field(
        max_length=63,
        sa_column=Column(String(63), unique=True, index=True, nullable=False),
        description="Subdomain identifier (e.g., 'acme' for acme.vectordb.app)"
    )
    custom_domain: Optional[str] = Field(
        default=None,
        max_length=255,
        sa_column=Column(String(255), unique=True, nullable=True),
        description="Optional custom domain"
    )
    logo_url: Optional[str] = Field(
        default=None,
        max_length=500,
        sa_column=Column(String(500), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )


class UserProfile(SQLModel, table=True):
    """
    Membership of a platform user in exactly one organization.
    """
    __tablename__ = "user_profiles"

    id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True),
        description="Platform auth user id"
    )
    organization_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    role: str = Field(
        default=Role.VIEWER.value,
        max_length=20,
        sa_column=Column(String(20), nullable=False, default="viewer")
    )
    first_name: Optional[str] = Field(
        default=None,
        max_length=255,
        sa_column=Column(String(255), nullable=True)
    )
    last_name: Optional[str] = Field(
        default=None,
        max_length=255,
        sa_column=Column(String(255), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )
