"""
Document service: quota-gated writes and similarity search.

Every write and search first passes the quota gate; the actual work is a
stored procedure on the platform. Reads are tenant-filtered table queries.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import HTTPException, status

from vectordb.core.config import settings
from vectordb.db.platform import PlatformClient, PlatformError
from vectordb.models.access import SharedView
from vectordb.models.billing import UsageMetricKind
from vectordb.models.document import Category, Document, DocumentCategory
from vectordb.services.quota_gate import QuotaGate

logger = logging.getLogger(__name__)

RECORD_LIMIT_REACHED = "Record limit reached for current plan"
QUERY_LIMIT_REACHED = "Query limit reached for current plan"


def chunked(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    """Yield consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError("size must be positive")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _parse_id(value: Any, label: str) -> Optional[UUID]:
    """Parse a caller-supplied id; a malformed one is a 400."""
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {label}: {value}",
        )


def _parse_ids(values: Optional[Iterable[Any]], label: str) -> Optional[List[UUID]]:
    if values is None:
        return None
    return [_parse_id(value, label) for value in values]


def _decode_metadata(value: Any) -> dict:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


class DocumentService:
    """
    Document operations for a single organization.

    All queries carry the organization filter, so a document id from
    another tenant behaves exactly like a missing one.
    """

    def __init__(
        self,
        platform: PlatformClient,
        organization_id: str,
        user_id: Optional[str] = None,
        quota_gate: Optional[QuotaGate] = None,
    ):
        """
        Initialize document service.

        Args:
            platform: Platform client for remote calls
            organization_id: Caller's organization
            user_id: Caller's user id, recorded as creator (None for API keys)
            quota_gate: Gate to use; defaults to one over the same platform
        """
        self.platform = platform
        self.organization_id = UUID(str(organization_id))
        self.user_id = UUID(str(user_id)) if user_id else None
        self.quota_gate = quota_gate or QuotaGate(platform)

    # Reads

    async def list_documents(
        self,
        collection_id: Optional[str] = None,
        category_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List documents newest first.

        Returns:
            (documents on the requested page, total matching documents)
        """
        filters: Dict[str, Any] = {"organization_id": self.organization_id}
        if collection_id:
            filters["collection_id"] = _parse_id(collection_id, "collection_id")
        if category_id:
            links = await self.platform.fetch_all(
                DocumentCategory, {"category_id": _parse_id(category_id, "category_id")}
            )
            if not links:
                return [], 0
            filters["id"] = [link.document_id for link in links]

        total = await self.platform.count(Document, filters)
        documents = await self.platform.fetch_all(
            Document,
            filters,
            order_by="created_at",
            descending=True,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return await self._with_categories(documents), total

    async def get_document(self, document_id: str) -> Dict[str, Any]:
        document = await self._get_owned(document_id)
        return (await self._with_categories([document]))[0]

    async def documents_for_view(self, view: SharedView) -> List[Dict[str, Any]]:
        """Documents visible through a shared view, newest first."""
        filters: Dict[str, Any] = {"organization_id": view.organization_id}
        if view.collection_id:
            filters["collection_id"] = view.collection_id
        if view.filter_categories:
            links = await self.platform.fetch_all(
                DocumentCategory, {"category_id": list(view.filter_categories)}
            )
            if not links:
                return []
            filters["id"] = list({link.document_id for link in links})

        documents = await self.platform.fetch_all(
            Document, filters, order_by="created_at", descending=True
        )
        return await self._with_categories(documents)

    # Quota-gated writes

    async def create_document(
        self,
        title: str,
        content: str,
        collection_id: Optional[str] = None,
        external_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        categories: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Create a document and its category links in one remote transaction.

        Raises:
            HTTPException: 400 if title or content is blank, 403 if the record quota is exhausted.
            PlatformError: If a remote call fails.
        """
        self._require_text(title=title, content=content)
        collection_uuid = _parse_id(collection_id, "collection_id")
        category_uuids = _parse_ids(categories or [], "category id")

        if not await self.quota_gate.admit(self.organization_id, UsageMetricKind.RECORDS):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=RECORD_LIMIT_REACHED,
            )

        rows = await self.platform.rpc(
            "create_document_with_categories",
            {
                "p_title": title,
                "p_content": content,
                "p_organization_id": self.organization_id,
                "p_collection_id": collection_uuid,
                "p_external_id": external_id,
                "p_metadata": metadata or {},
                "p_created_by": self.user_id,
                "p_categories": category_uuids,
            },
        )
        if not rows:
            raise PlatformError("create_document_with_categories")

        logger.info(f"Created document {rows[0]['id']} for organization {self.organization_id}")
        return (await self._with_categories(rows))[0]

    async def batch_create_documents(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Create many documents, DOCUMENT_BATCH_SIZE per remote call.

        The quota for the whole list is reserved up front. A failing chunk
        aborts the request; chunks already sent stay committed.
        """
        if not items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A non-empty list of documents is required",
            )
        prepared: List[Dict[str, Any]] = []
        for index, item in enumerate(items):
            label = f"Document {index}"
            self._require_text(
                title=item.get("title"),
                content=item.get("content"),
                label=label,
            )
            prepared.append({
                "title": item["title"],
                "content": item["content"],
                "collection_id": _parse_id(item.get("collection_id"), f"{label} collection_id"),
                "external_id": item.get("external_id"),
                "metadata": item.get("metadata") or {},
                "categories": _parse_ids(item.get("categories") or [], f"{label} category id"),
            })

        if not await self.quota_gate.admit(
            self.organization_id, UsageMetricKind.RECORDS, amount=len(items)
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{RECORD_LIMIT_REACHED}: {len(items)} documents requested",
            )

        created: List[Dict[str, Any]] = []
        for number, payload in enumerate(chunked(prepared, settings.DOCUMENT_BATCH_SIZE), start=1):
            try:
                rows = await self.platform.rpc(
                    "batch_create_documents",
                    {
                        "p_documents": payload,
                        "p_organization_id": self.organization_id,
                        "p_created_by": self.user_id,
                    },
                )
            except PlatformError:
                logger.error(
                    f"Batch chunk {number} failed for organization {self.organization_id}; "
                    f"{len(created)} documents from earlier chunks remain committed"
                )
                raise
            created.extend(rows)

        logger.info(f"Batch created {len(created)} documents for organization {self.organization_id}")
        return await self._with_categories(created)

    async def update_document(
        self,
        document_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        collection_id: Optional[str] = None,
        external_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        categories: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Update a document; None leaves a field unchanged.

        Passing `categories` replaces the whole category set.
        """
        if title is not None or content is not None:
            self._require_text(
                **{name: value for name, value in (("title", title), ("content", content)) if value is not None}
            )
        collection_uuid = _parse_id(collection_id, "collection_id")
        category_uuids = _parse_ids(categories, "category id")

        document = await self._get_owned(document_id)

        rows = await self.platform.rpc(
            "update_document_with_categories",
            {
                "p_id": document.id,
                "p_organization_id": self.organization_id,
                "p_title": title,
                "p_content": content,
                "p_collection_id": collection_uuid,
                "p_external_id": external_id,
                "p_metadata": metadata,
                "p_categories": category_uuids,
            },
        )
        if not rows:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Document not found",
            )

        logger.info(f"Updated document {document.id}")
        return (await self._with_categories(rows))[0]

    async def delete_document(self, document_id: str) -> None:
        document = await self._get_owned(document_id)
        await self.platform.delete(
            Document, {"id": document.id, "organization_id": self.organization_id}
        )
        logger.info(f"Deleted document {document.id}")

    # Quota-gated search

    async def search(
        self,
        query: str,
        collection_id: Optional[str] = None,
        category_ids: Optional[List[str]] = None,
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[Dict[str, Any]]:
        """
        Similarity search over the organization's documents.

        Embedding and ranking happen in the database. Rows below the
        threshold are dropped and the list is capped at `limit`.
        """
        self._require_text(query=query)
        collection_uuid = _parse_id(collection_id, "collection_id")
        category_uuids = _parse_ids(category_ids, "category id") or None

        if not await self.quota_gate.admit(self.organization_id, UsageMetricKind.QUERIES):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=QUERY_LIMIT_REACHED,
            )

        rows = await self.platform.rpc(
            "search_documents",
            {
                "query_text": query,
                "match_count": limit,
                "organization_id": self.organization_id,
                "collection_id": collection_uuid,
                "category_ids": category_uuids,
                "similarity_threshold": threshold,
            },
        )

        hits = [
            {
                "id": str(row["id"]),
                "title": row["title"],
                "content": row["content"],
                "metadata": _decode_metadata(row.get("metadata")),
                "similarity": float(row["similarity"]),
            }
            for row in rows
            if row["similarity"] is not None and float(row["similarity"]) >= threshold
        ]
        hits.sort(key=lambda hit: hit["similarity"], reverse=True)
        return hits[:limit]

    # Helpers

    async def _get_owned(self, document_id: str) -> Document:
        try:
            doc_uuid = UUID(str(document_id))
        except ValueError:
            doc_uuid = None

        document = None
        if doc_uuid is not None:
            document = await self.platform.fetch_one(
                Document, {"id": doc_uuid, "organization_id": self.organization_id}
            )
        if not document:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Document not found",
            )
        return document

    async def _with_categories(self, documents: Sequence[Any]) -> List[Dict[str, Any]]:
        """Serialize documents (model rows or procedure rows) with their categories."""
        records = [self._document_record(doc) for doc in documents]
        if not records:
            return []

        links = await self.platform.fetch_all(
            DocumentCategory, {"document_id": [UUID(r["id"]) for r in records]}
        )
        categories: Dict[UUID, Category] = {}
        if links:
            rows = await self.platform.fetch_all(
                Category,
                {
                    "id": list({link.category_id for link in links}),
                    "organization_id": self.organization_id,
                },
            )
            categories = {category.id: category for category in rows}

        by_document: Dict[str, List[Dict[str, Any]]] = {r["id"]: [] for r in records}
        for link in links:
            category = categories.get(link.category_id)
            if category is not None:
                by_document[str(link.document_id)].append(
                    {"id": str(category.id), "name": category.name, "color": category.color}
                )

        for record in records:
            record["categories"] = sorted(by_document[record["id"]], key=lambda c: c["name"])
        return records

    @staticmethod
    def _document_record(doc: Any) -> Dict[str, Any]:
        if isinstance(doc, dict):
            get = doc.get
            metadata = doc.get("metadata")
        else:
            def get(name: str) -> Any:
                return getattr(doc, name, None)
            metadata = doc.extra_metadata

        return {
            "id": str(get("id")),
            "organization_id": str(get("organization_id")),
            "collection_id": str(get("collection_id")) if get("collection_id") else None,
            "title": get("title"),
            "content": get("content"),
            "external_id": get("external_id"),
            "metadata": _decode_metadata(metadata),
            "created_by": str(get("created_by")) if get("created_by") else None,
            "created_at": get("created_at"),
            "updated_at": get("updated_at"),
        }

    @staticmethod
    def _require_text(label: Optional[str] = None, **fields: Optional[str]) -> None:
        missing = [name for name, value in fields.items() if not value or not str(value).strip()]
        if missing:
            prefix = f"{label}: " if label else ""
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{prefix}{' and '.join(missing)} required",
            )
