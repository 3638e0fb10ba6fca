"""
Document endpoint tests.

Covers the quota-gated write path (create and batch), updates, deletes,
listing, and tenant isolation.
"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi import HTTPException

from vectordb.models import Category, Document, DocumentCategory
from vectordb.services.document_service import DocumentService, chunked
from vectordb.services.quota_gate import CHECK_AND_INCREMENT

from fakes import auth_headers, make_session_token, seed_organization


def _add_document(platform, organization, title="Doc", created_at=None, collection_id=None):
    return platform.add(
        Document(
            organization_id=organization.id,
            collection_id=collection_id,
            title=title,
            content=f"{title} content",
            created_at=created_at or datetime.now(timezone.utc),
        )
    )


class TestChunking:

    def test_chunks_of_batch_size(self):
        assert [len(c) for c in chunked(list(range(250)), 100)] == [100, 100, 50]

    def test_exact_multiple(self):
        assert [len(c) for c in chunked(list(range(200)), 100)] == [100, 100]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestCreateDocument:
    """Test the quota-gated create path."""

    async def test_create_document(self, client, editor_headers, editor_user, organization, platform):
        category = platform.add(Category(organization_id=organization.id, name="FAQ"))

        response = await client.post(
            "/api/documents",
            json={
                "title": "Return policy",
                "content": "Items can be returned within 30 days.",
                "metadata": {"source": "help-center"},
                "categories": [str(category.id)],
            },
            headers=editor_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Return policy"
        assert data["organization_id"] == str(organization.id)
        assert data["created_by"] == str(editor_user.id)
        assert data["metadata"] == {"source": "help-center"}
        assert [c["name"] for c in data["categories"]] == ["FAQ"]

        assert [name for name, _ in platform.rpc_calls] == [
            CHECK_AND_INCREMENT,
            "create_document_with_categories",
        ]
        assert platform.usage(organization.id).record_count == 1

    @pytest.mark.parametrize("body", [
        {"content": "Body only"},
        {"title": "Title only"},
        {"title": "", "content": "Body"},
        {"title": "Title", "content": "   "},
        {"title": "  ", "content": "Body"},
    ])
    async def test_missing_text_rejected_before_remote_calls(
        self, client, editor_headers, platform, body
    ):
        """Validation fails with 400 before the gate or any procedure runs."""
        response = await client.post("/api/documents", json=body, headers=editor_headers)

        assert response.status_code == 400
        assert platform.rpc_calls == []
        assert platform.rows(Document) == []

    async def test_record_limit_reached(self, client, make_user, platform):
        org = seed_organization(platform, "tiny", max_records=1)
        editor = make_user(org, "editor")
        headers = auth_headers(make_session_token(editor.id))

        first = await client.post("/api/documents", json={"title": "A", "content": "a"}, headers=headers)
        second = await client.post("/api/documents", json={"title": "B", "content": "b"}, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 403
        assert second.json()["detail"] == "Record limit reached for current plan"
        assert len(platform.rows(Document)) == 1
        assert platform.usage(org.id).record_count == 1
        assert platform.rpc_count("create_document_with_categories") == 1

    @pytest.mark.parametrize("ids", [
        {"collection_id": "not-a-uuid"},
        {"categories": ["nope"]},
    ])
    async def test_malformed_ids_rejected_before_quota(
        self, client, editor_headers, organization, platform, ids
    ):
        response = await client.post(
            "/api/documents", json={"title": "T", "content": "C", **ids}, headers=editor_headers
        )

        assert response.status_code == 400
        assert platform.rpc_calls == []
        assert platform.usage(organization.id) is None

    async def test_service_rejects_malformed_ids_before_quota(self, organization, platform):
        """Callers bypassing request validation still get a 400 and no charge."""
        service = DocumentService(platform, str(organization.id))

        with pytest.raises(HTTPException) as exc_info:
            await service.create_document(title="T", content="C", collection_id="not-a-uuid")

        assert exc_info.value.status_code == 400
        assert platform.rpc_calls == []

    async def test_foreign_category_not_linked(
        self, client, editor_headers, other_organization, platform
    ):
        foreign = platform.add(Category(organization_id=other_organization.id, name="Theirs"))

        response = await client.post(
            "/api/documents",
            json={"title": "T", "content": "C", "categories": [str(foreign.id)]},
            headers=editor_headers,
        )

        assert response.status_code == 201
        assert response.json()["categories"] == []
        assert platform.rows(DocumentCategory) == []

    async def test_procedure_failure_returns_500(self, client, editor_headers, platform):
        platform.fail.add("create_document_with_categories")

        response = await client.post(
            "/api/documents", json={"title": "T", "content": "C"}, headers=editor_headers
        )

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to create document"


class TestBatchCreate:
    """Test batch creation."""

    @pytest.mark.parametrize("count,expected_calls", [(1, 1), (100, 1), (101, 2), (250, 3)])
    async def test_batch_chunk_count(self, client, make_user, platform, count, expected_calls):
        """N documents go out in ceil(N/100) procedure calls after one reservation."""
        org = seed_organization(platform, "bulk", max_records=1000)
        editor = make_user(org, "editor")
        documents = [{"title": f"Doc {i}", "content": f"Body {i}"} for i in range(count)]

        response = await client.post(
            "/api/documents/batch",
            json={"documents": documents},
            headers=auth_headers(make_session_token(editor.id)),
        )

        assert response.status_code == 201
        assert response.json()["count"] == count
        assert platform.rpc_count("batch_create_documents") == expected_calls
        assert platform.rpc_count(CHECK_AND_INCREMENT) == 1
        assert platform.usage(org.id).record_count == count

    async def test_batch_over_quota_creates_nothing(self, client, make_user, platform):
        org = seed_organization(platform, "tiny", max_records=5)
        editor = make_user(org, "editor")

        response = await client.post(
            "/api/documents/batch",
            json={"documents": [{"title": f"D{i}", "content": "x"} for i in range(6)]},
            headers=auth_headers(make_session_token(editor.id)),
        )

        assert response.status_code == 403
        assert "Record limit reached" in response.json()["detail"]
        assert platform.rows(Document) == []
        assert platform.usage(org.id).record_count == 0
        assert platform.rpc_count("batch_create_documents") == 0

    async def test_empty_batch_rejected(self, client, editor_headers, platform):
        response = await client.post(
            "/api/documents/batch", json={"documents": []}, headers=editor_headers
        )

        assert response.status_code == 400
        assert platform.rpc_calls == []

    async def test_invalid_item_rejects_whole_batch(self, client, editor_headers, platform):
        response = await client.post(
            "/api/documents/batch",
            json={"documents": [{"title": "Ok", "content": "Body"}, {"title": "Blank", "content": " "}]},
            headers=editor_headers,
        )

        assert response.status_code == 400
        assert "Document 1" in response.json()["detail"]
        assert platform.rpc_calls == []

    async def test_malformed_item_id_rejects_whole_batch(self, client, editor_headers, organization, platform):
        response = await client.post(
            "/api/documents/batch",
            json={"documents": [
                {"title": "Ok", "content": "Body"},
                {"title": "Bad", "content": "Body", "collection_id": "not-a-uuid"},
            ]},
            headers=editor_headers,
        )

        assert response.status_code == 400
        assert platform.rpc_calls == []
        assert platform.usage(organization.id) is None

    async def test_service_batch_rejects_malformed_item_id(self, organization, platform):
        service = DocumentService(platform, str(organization.id))
        items = [{"title": "A", "content": "a"}, {"title": "B", "content": "b", "categories": ["nope"]}]

        with pytest.raises(HTTPException) as exc_info:
            await service.batch_create_documents(items)

        assert exc_info.value.status_code == 400
        assert "Document 1" in exc_info.value.detail
        assert platform.rpc_calls == []

    async def test_failed_chunk_keeps_earlier_chunks(self, client, make_user, platform):
        """Chunks sent before a failure stay committed."""
        org = seed_organization(platform, "bulk", max_records=1000)
        editor = make_user(org, "editor")
        platform.fail_on_call["batch_create_documents"] = 2

        response = await client.post(
            "/api/documents/batch",
            json={"documents": [{"title": f"D{i}", "content": "x"} for i in range(150)]},
            headers=auth_headers(make_session_token(editor.id)),
        )

        assert response.status_code == 500
        assert len(platform.rows(Document)) == 100


class TestUpdateDocument:

    async def test_update_keeps_omitted_fields(self, client, editor_headers, organization, platform):
        document = _add_document(platform, organization, title="Old")

        response = await client.put(
            f"/api/documents/{document.id}",
            json={"title": "New"},
            headers=editor_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "New"
        assert data["content"] == "Old content"

    async def test_update_replaces_categories(self, client, editor_headers, organization, platform):
        document = _add_document(platform, organization)
        first = platform.add(Category(organization_id=organization.id, name="First"))
        second = platform.add(Category(organization_id=organization.id, name="Second"))
        platform.add(DocumentCategory(document_id=document.id, category_id=first.id))

        response = await client.put(
            f"/api/documents/{document.id}",
            json={"categories": [str(second.id)]},
            headers=editor_headers,
        )

        assert response.status_code == 200
        assert [c["name"] for c in response.json()["categories"]] == ["Second"]

    async def test_update_blank_content_rejected(self, client, editor_headers, organization, platform):
        document = _add_document(platform, organization)

        response = await client.put(
            f"/api/documents/{document.id}", json={"content": "  "}, headers=editor_headers
        )

        assert response.status_code == 400
        assert platform.rpc_calls == []

    async def test_update_malformed_collection_rejected(self, client, editor_headers, organization, platform):
        document = _add_document(platform, organization)

        response = await client.put(
            f"/api/documents/{document.id}", json={"collection_id": "not-a-uuid"}, headers=editor_headers
        )

        assert response.status_code == 400
        assert platform.rpc_calls == []

    async def test_update_other_tenant_document(self, client, editor_headers, other_organization, platform):
        document = _add_document(platform, other_organization, title="Theirs")

        response = await client.put(
            f"/api/documents/{document.id}", json={"title": "Mine"}, headers=editor_headers
        )

        assert response.status_code == 404
        assert document.title == "Theirs"


class TestDeleteDocument:

    async def test_delete_document(self, client, editor_headers, organization, platform):
        document = _add_document(platform, organization)

        response = await client.delete(f"/api/documents/{document.id}", headers=editor_headers)

        assert response.status_code == 204
        assert platform.rows(Document) == []

    async def test_delete_frees_record_slot(self, client, editor_headers, organization, platform):
        created = await client.post(
            "/api/documents", json={"title": "T", "content": "C"}, headers=editor_headers
        )
        assert platform.usage(organization.id).record_count == 1

        await client.delete(f"/api/documents/{created.json()['id']}", headers=editor_headers)

        assert platform.usage(organization.id).record_count == 0

    async def test_delete_other_tenant_document_is_404(
        self, client, editor_headers, other_organization, platform
    ):
        """Never deletes another organization's row."""
        document = _add_document(platform, other_organization)

        response = await client.delete(f"/api/documents/{document.id}", headers=editor_headers)

        assert response.status_code == 404
        assert platform.rows(Document) == [document]
        assert ("delete", "documents") not in platform.calls

    async def test_delete_unknown_or_malformed_id(self, client, editor_headers):
        assert (await client.delete(f"/api/documents/{uuid4()}", headers=editor_headers)).status_code == 404
        assert (await client.delete("/api/documents/not-a-uuid", headers=editor_headers)).status_code == 404

    async def test_viewer_cannot_delete(self, client, viewer_headers, organization, platform):
        document = _add_document(platform, organization)

        response = await client.delete(f"/api/documents/{document.id}", headers=viewer_headers)

        assert response.status_code == 403
        assert platform.rows(Document) == [document]


class TestListDocuments:

    async def test_list_newest_first_and_paginated(self, client, viewer_headers, organization, platform):
        now = datetime.now(timezone.utc)
        for i in range(3):
            _add_document(platform, organization, title=f"Doc {i}", created_at=now + timedelta(minutes=i))

        response = await client.get("/api/documents?page=1&limit=2", headers=viewer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [d["title"] for d in data["documents"]] == ["Doc 2", "Doc 1"]

        page_two = (await client.get("/api/documents?page=2&limit=2", headers=viewer_headers)).json()
        assert [d["title"] for d in page_two["documents"]] == ["Doc 0"]

    async def test_list_excludes_other_tenants(
        self, client, viewer_headers, organization, other_organization, platform
    ):
        _add_document(platform, organization, title="Mine")
        _add_document(platform, other_organization, title="Theirs")

        data = (await client.get("/api/documents", headers=viewer_headers)).json()

        assert [d["title"] for d in data["documents"]] == ["Mine"]

    async def test_list_by_category(self, client, viewer_headers, organization, platform):
        tagged = _add_document(platform, organization, title="Tagged")
        _add_document(platform, organization, title="Untagged")
        category = platform.add(Category(organization_id=organization.id, name="FAQ"))
        platform.add(DocumentCategory(document_id=tagged.id, category_id=category.id))

        data = (await client.get(f"/api/documents?category_id={category.id}", headers=viewer_headers)).json()

        assert [d["title"] for d in data["documents"]] == ["Tagged"]
        assert data["documents"][0]["categories"][0]["name"] == "FAQ"

    async def test_get_document(self, client, viewer_headers, organization, platform):
        document = _add_document(platform, organization, title="Single")

        response = await client.get(f"/api/documents/{document.id}", headers=viewer_headers)

        assert response.status_code == 200
        assert response.json()["title"] == "Single"

    async def test_get_other_tenant_document(self, client, viewer_headers, other_organization, platform):
        document = _add_document(platform, other_organization)

        response = await client.get(f"/api/documents/{document.id}", headers=viewer_headers)

        assert response.status_code == 404

    async def test_list_malformed_filter_rejected(self, client, viewer_headers):
        response = await client.get("/api/documents?collection_id=not-a-uuid", headers=viewer_headers)

        assert response.status_code == 400
