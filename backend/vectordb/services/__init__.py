# Services Package

from vectordb.services.quota_gate import QuotaGate
from vectordb.services.document_service import DocumentService
from vectordb.services.api_key_service import ApiKeyService

__all__ = [
    "QuotaGate",
    "DocumentService",
    "ApiKeyService",
]
