"""
Document, category and collection models.

The `documents.embedding` vector column is maintained by the platform
(automatic embeddings) and is deliberately absent from these models.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, DateTime, Text, text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID as PG_UUID, JSONB


class Collection(SQLModel, table=True):
    """Grouping container for documents."""
    __tablename__ = "collections"

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
    description: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )


class Category(SQLModel, table=True):
    """Tag applied to documents within an organization."""
    __tablename__ = "categories"

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
    color: str = Field(
        default="#6366f1",
        max_length=20,
        sa_column=Column(String(20), nullable=False, default="#6366f1")
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )


class Document(SQLModel, table=True):
    """
    Text entry stored for similarity search.

    Created and updated through stored procedures so that category links
    are written in the same transaction.
    """
    __tablename__ = "documents"

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    )
    organization_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    collection_id: Optional[UUID] = Field(
        default=None,
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("collections.id", ondelete="SET NULL"), nullable=True, index=True)
    )
    title: str = Field(
        max_length=500,
        sa_column=Column(String(500), nullable=False)
    )
    content: str = Field(
        sa_column=Column(Text, nullable=False)
    )
    external_id: Optional[str] = Field(
        default=None,
        max_length=255,
        sa_column=Column(String(255), nullable=True, index=True),
        description="Caller-supplied key used to deduplicate imports"
    )
    extra_metadata: dict = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSONB, nullable=False, server_default=text("'{}'")),
    )
    created_by: Optional[UUID] = Field(
        default=None,
        sa_column=Column(PG_UUID(as_uuid=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    )


class DocumentCategory(SQLModel, table=True):
    """Join table between documents and categories."""
    __tablename__ = "document_categories"

    document_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True)
    )
    category_id: UUID = Field(
        sa_column=Column(PG_UUID(as_uuid=True), ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True)
    )
