"""
Shared views and API keys: the two ways an organization exposes data
outside an interactive session.
"""
from datetime import datetime, timezone
from typing import Optional, List
from uuid import UUID, uuid4
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, Boolean, DateTime, text, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID, ARRAY


class SharedView(SQLModel, table=True):
    """
    Named, filtered, read-only projection of an organization's documents.

    Public views are served at /shared/{slug} without authentication.
    """
    __tablename__ = "shared_views"
    __table_args__ = (
        UniqueConstraint("organization_id", "slug", name="uq_shared_views_org_slug"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    )
    organization_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    name: str = Field(
        max_length=255,
        sa_column=Column(String(255), nullable=False)
    )
    slug: str = Field(
        max_length=100,
        sa_column=Column(String(100), nullable=False, index=True)
    )
    collection_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("collections.id", ondelete="SET NULL"), nullable=True)
    )
    filter_categories: List[UUID] = Field(
        default_factory=list,
        sa_column=Column(ARRAY(PG_UUID(as_uuid=True)), nullable=False, server_default=text("'{}'"))
    )
    is_public: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False)
    )
    created_by: Optional[UUID] = Field(
        default=None,
        sa_column=Column(PG_UUID(as_uuid=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )


class ApiKey(SQLModel, table=True):
    """
    Credential for programmatic access on behalf of an organization.

    Only the SHA-256 digest of the key is stored.
    """
    __tablename__ = "api_keys"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    )
    organization_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    name: str = Field(
        max_length=255,
        sa_column=Column(String(255), nullable=False)
    )
    key_hash: str = Field(
        max_length=64,
        sa_column=Column(String(64), unique=True, index=True, nullable=False)
    )
    key_prefix: str = Field(
        max_length=20,
        sa_column=Column(String(20), nullable=False)
    )
    permissions: List[str] = Field(
        default_factory=list,
        sa_column=Column(ARRAY(String(20)), nullable=False, server_default=text("'{}'"))
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    last_used_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_by: Optional[UUID] = Field(
        default=None,
        sa_column=Column(PG_UUID(as_uuid=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )
