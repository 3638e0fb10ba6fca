"""
Usage reporting tests.
"""
from datetime import date

from vectordb.models import UsageMetric, current_month

from fakes import auth_headers, make_session_token, seed_organization


class TestCurrentUsage:

    async def test_reports_counters_and_plan(self, client, admin_headers, editor_headers, organization, platform):
        await client.post("/api/documents", json={"title": "T", "content": "C"}, headers=editor_headers)

        response = await client.get("/api/usage/current", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["month"] == current_month().isoformat()
        assert data["record_count"] == 1
        assert data["query_count"] == 0
        assert data["plan"]["max_records"] == 100
        assert data["plan"]["max_queries_per_month"] == 100

    async def test_zero_before_any_usage(self, client, admin_headers):
        data = (await client.get("/api/usage/current", headers=admin_headers)).json()

        assert data["record_count"] == 0
        assert data["query_count"] == 0

    async def test_no_active_subscription(self, client, make_user, platform):
        org = seed_organization(platform, "lapsed", subscribed=False)
        admin = make_user(org, "admin")

        response = await client.get(
            "/api/usage/current", headers=auth_headers(make_session_token(admin.id))
        )

        assert response.status_code == 200
        assert response.json()["plan"] is None

    async def test_requires_admin(self, client, editor_headers, viewer_headers):
        assert (await client.get("/api/usage/current", headers=editor_headers)).status_code == 403
        assert (await client.get("/api/usage/current", headers=viewer_headers)).status_code == 403


class TestUsageHistory:

    async def test_history_newest_first(self, client, admin_headers, organization, other_organization, platform):
        platform.add(
            UsageMetric(organization_id=organization.id, month=date(2026, 1, 1), record_count=5, query_count=7),
            UsageMetric(organization_id=organization.id, month=date(2026, 3, 1), record_count=9, query_count=2),
            UsageMetric(organization_id=other_organization.id, month=date(2026, 2, 1), record_count=1, query_count=1),
        )

        response = await client.get("/api/usage/history", headers=admin_headers)

        assert response.status_code == 200
        months = response.json()["months"]
        assert [m["month"] for m in months] == ["2026-03-01", "2026-01-01"]
        assert months[0]["record_count"] == 9

    async def test_history_capped_at_twelve_months(self, client, admin_headers, organization, platform):
        for i in range(14):
            platform.add(
                UsageMetric(
                    organization_id=organization.id,
                    month=date(2024 + i // 12, i % 12 + 1, 1),
                    record_count=i,
                    query_count=0,
                )
            )

        months = (await client.get("/api/usage/history", headers=admin_headers)).json()["months"]

        assert len(months) == 12
        assert months[0]["month"] == "2025-02-01"
