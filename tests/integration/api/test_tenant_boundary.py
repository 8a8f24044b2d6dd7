"""HTTP tests for tenant-scoped routes behind the isolation gate."""

import pytest

from firmsync.core.audit import AuditAction
from firmsync.core.auth.roles import Role
from firmsync.core.tenancy.dependencies import TenantQuery
from firmsync.modules.tenants.models import TenantStatus
from firmsync.modules.tenants.repos import TenantRepository


pytestmark = pytest.mark.integration


class TestTenantIsolationScenarios:
    """End-to-end access decisions for /api/tenant/{firm_code}."""

    @pytest.fixture
    async def acme(self, create_provisioned_tenant):
        return await create_provisioned_tenant(slug="acme-legal", name="Acme Legal")

    @pytest.fixture
    async def other_firm(self, create_provisioned_tenant):
        return await create_provisioned_tenant(slug="baker-law")

    async def test_no_principal_is_unauthenticated(self, client, acme):
        response = await client.get("/api/tenant/acme-legal/clients")

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    async def test_invalid_token_is_unauthenticated(self, client, acme):
        response = await client.get(
            "/api/tenant/acme-legal/clients",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    async def test_unknown_firm(self, client, other_firm, create_user, auth_headers):
        user = await create_user(role=Role.FIRM_USER, firm_id=other_firm.id)

        response = await client.get(
            "/api/tenant/unknown-slug/clients", headers=auth_headers(user)
        )

        assert response.status_code == 404
        assert response.json()["code"] == "FIRM_NOT_FOUND"

    async def test_invalid_firm_code_format(self, client, acme, create_user, auth_headers):
        user = await create_user(firm_id=acme.id)

        response = await client.get(
            "/api/tenant/acme.legal/clients", headers=auth_headers(user)
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_FIRM_CODE_FORMAT"

    async def test_member_of_other_firm_is_denied_and_audited(
        self, client, acme, other_firm, create_user, auth_headers, audit_sink
    ):
        user = await create_user(role=Role.FIRM_USER, firm_id=other_firm.id)

        response = await client.get(
            "/api/tenant/acme-legal/clients", headers=auth_headers(user)
        )

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "TENANT_ACCESS_DENIED"
        assert "acme" not in body["detail"].lower()

        event = audit_sink.last(AuditAction.TENANT_ACCESS_DENIED)
        assert event.is_security_alert
        assert event.principal_id == user.id
        assert event.principal_email == user.email
        assert event.principal_role == "firm_user"
        assert event.principal_firm_id == other_firm.id
        assert event.tenant_id == acme.id
        assert event.tenant_code == "acme-legal"
        assert event.tenant_name == "Acme Legal"
        assert event.url.endswith("/api/tenant/acme-legal/clients")
        assert event.is_admin_access is False

    async def test_admin_without_ghost_session(
        self, client, acme, create_user, auth_headers, audit_sink
    ):
        admin = await create_user(role=Role.ADMIN, firm_id=None)

        response = await client.get(
            "/api/tenant/acme-legal/clients", headers=auth_headers(admin)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "GHOST_SESSION_REQUIRED"
        assert audit_sink.last(AuditAction.GHOST_SESSION_REQUIRED).is_security_alert

    async def test_admin_with_ghost_session(
        self, client, acme, create_user, auth_headers, audit_sink
    ):
        admin = await create_user(role=Role.ADMIN, firm_id=None)
        headers = auth_headers(admin)

        started = await client.post(
            "/api/v1/admin/ghost-sessions",
            json={"target_firm_id": acme.id, "purpose": "Support ticket 4411"},
            headers=headers,
        )
        assert started.status_code == 201

        response = await client.get("/api/tenant/acme-legal/clients", headers=headers)

        assert response.status_code == 200
        event = audit_sink.last(AuditAction.TENANT_ACCESS_GRANTED)
        assert event.is_admin_access is True
        assert event.ghost_session_id == started.json()["id"]

        context = await client.get("/api/tenant/acme-legal/context", headers=headers)
        assert context.json()["is_admin_access"] is True
        assert context.json()["ghost_session_id"] == started.json()["id"]

    async def test_ghost_session_for_other_firm_does_not_open_this_one(
        self, client, acme, other_firm, create_user, auth_headers
    ):
        admin = await create_user(role=Role.PLATFORM_ADMIN, firm_id=None)
        headers = auth_headers(admin)
        await client.post(
            "/api/v1/admin/ghost-sessions",
            json={"target_firm_id": other_firm.id, "purpose": "Support"},
            headers=headers,
        )

        response = await client.get("/api/tenant/acme-legal/clients", headers=headers)
        assert response.status_code == 403
        assert response.json()["code"] == "GHOST_SESSION_REQUIRED"

        response = await client.get("/api/tenant/baker-law/clients", headers=headers)
        assert response.status_code == 200

    @pytest.mark.parametrize("status", [TenantStatus.SUSPENDED, TenantStatus.INACTIVE])
    @pytest.mark.parametrize("role", [Role.FIRM_ADMIN, Role.SUPER_ADMIN])
    async def test_non_active_firm_is_not_found_for_every_role(
        self, client, connections, acme, create_user, auth_headers, status, role
    ):
        user = await create_user(role=role, firm_id=acme.id)
        async with connections.central_session() as session:
            tenant = await TenantRepository(session).get_by_id(acme.id)
            tenant.status = status

        response = await client.get(
            "/api/tenant/acme-legal/clients", headers=auth_headers(user)
        )

        assert response.status_code == 404
        assert response.json()["code"] == "FIRM_NOT_FOUND"

    async def test_inactive_user(self, client, acme, create_user, auth_headers):
        user = await create_user(firm_id=acme.id, is_active=False)

        response = await client.get(
            "/api/tenant/acme-legal/clients", headers=auth_headers(user)
        )

        assert response.status_code == 401


class TestTenantData:
    """Member access to tenant data."""

    @pytest.fixture
    async def acme(self, create_provisioned_tenant):
        return await create_provisioned_tenant(slug="acme-legal", name="Acme Legal")

    @pytest.fixture
    async def member_headers(self, acme, create_user, auth_headers):
        user = await create_user(role=Role.PARALEGAL, firm_id=acme.id)
        return auth_headers(user)

    async def test_context(self, client, acme, member_headers, audit_sink):
        response = await client.get(
            "/api/tenant/acme-legal/context",
            headers={**member_headers, "X-Request-ID": "req-42"},
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-42"
        assert response.json() == {
            "firm_id": acme.id,
            "firm_code": "acme-legal",
            "firm_name": "Acme Legal",
            "is_admin_access": False,
            "ghost_session_id": None,
        }
        assert audit_sink.last(AuditAction.TENANT_ACCESS_GRANTED).request_id == "req-42"

    async def test_create_and_list_clients(self, client, acme, member_headers):
        created = await client.post(
            "/api/tenant/acme-legal/clients",
            json={"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"},
            headers=member_headers,
        )

        assert created.status_code == 201
        assert created.json()["firm_id"] == acme.id

        response = await client.get("/api/tenant/acme-legal/clients", headers=member_headers)

        assert response.status_code == 200
        [row] = response.json()
        assert row["first_name"] == "Ada"
        assert row["email"] == "ada@example.com"

    async def test_clients_are_isolated_per_firm(
        self, client, acme, member_headers, create_provisioned_tenant, create_user, auth_headers
    ):
        other = await create_provisioned_tenant(slug="baker-law")
        other_headers = auth_headers(await create_user(firm_id=other.id))

        await client.post(
            "/api/tenant/acme-legal/clients",
            json={"first_name": "Ada", "last_name": "Lovelace"},
            headers=member_headers,
        )

        response = await client.get("/api/tenant/baker-law/clients", headers=other_headers)

        assert response.status_code == 200
        assert response.json() == []

    async def test_list_cases(self, client, acme, member_headers):
        response = await client.get("/api/tenant/acme-legal/cases", headers=member_headers)

        assert response.status_code == 200
        assert response.json() == []

    async def test_client_validation(self, client, acme, member_headers):
        response = await client.post(
            "/api/tenant/acme-legal/clients",
            json={"first_name": ""},
            headers=member_headers,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_unprovisioned_firm(self, client, create_tenant, create_user, auth_headers):
        tenant = await create_tenant(slug="new-firm")
        headers = auth_headers(await create_user(firm_id=tenant.id))

        context = await client.get("/api/tenant/new-firm/context", headers=headers)
        assert context.status_code == 200

        response = await client.get("/api/tenant/new-firm/clients", headers=headers)
        assert response.status_code == 404
        assert response.json()["code"] == "TENANT_UNAVAILABLE"


class TestScopeWithoutGate:
    """A route that asks for the tenant scope but skips the gate."""

    @pytest.fixture
    def app(self, app):
        async def unguarded(scope: TenantQuery) -> dict[str, int]:
            return scope.add_firm_scope({})

        app.add_api_route("/unguarded", unguarded, methods=["GET"])
        return app

    async def test_is_a_coded_server_error(self, client, create_tenant, create_user, auth_headers):
        tenant = await create_tenant(slug="acme-legal")
        user = await create_user(firm_id=tenant.id)

        response = await client.get("/unguarded", headers=auth_headers(user))

        assert response.status_code == 500
        assert response.json()["code"] == "MISSING_TENANT_CONTEXT"
