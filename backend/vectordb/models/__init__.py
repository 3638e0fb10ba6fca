# Models Package
from vectordb.models.organization import Organization, UserProfile
from vectordb.models.document import Document, DocumentCategory, Category, Collection
from vectordb.models.access import SharedView, ApiKey
from vectordb.models.billing import (
    Plan,
    Subscription,
    SubscriptionStatus,
    UsageMetric,
    UsageMetricKind,
    current_month,
)

__all__ = [
    # Tenant root
    "Organization",
    "UserProfile",
    # Content
    "Document",
    "DocumentCategory",
    "Category",
    "Collection",
    # Access
    "SharedView",
    "ApiKey",
    # Billing
    "Plan",
    "Subscription",
    "SubscriptionStatus",
    "UsageMetric",
    "UsageMetricKind",
    "current_month",
]
