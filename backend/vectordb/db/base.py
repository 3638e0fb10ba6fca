"""
SQLModel base configuration and metadata.

This module sets up the base SQLModel configuration used across all models.
"""
from sqlmodel import SQLModel

# Import all models here to ensure they are registered with SQLModel metadata
# This is required for table creation

# Tenant root (referenced by every other table)
from vectordb.models.organization import Organization, UserProfile

# Billing
from vectordb.models.billing import Plan, Subscription, UsageMetric

# Content and access
from vectordb.models.document import Collection, Category, Document, DocumentCategory
from vectordb.models.access import SharedView, ApiKey

__all__ = [
    "SQLModel",
    "Organization",
    "UserProfile",
    "Plan",
    "Subscription",
    "UsageMetric",
    "Collection",
    "Category",
    "Document",
    "DocumentCategory",
    "SharedView",
    "ApiKey",
]
