"""
Integration tests for the tenant lifecycle over HTTP
"""
import uuid

import pytest

from inventory_hub.api.middleware.error_handler import TENANT_REJECTION_MESSAGE
from inventory_hub.api.middleware.tenant_context import is_exempt
from inventory_hub.auth import verify_token
from inventory_hub.database.models import SubscriptionTier

PASSWORD = "AdminPassword123!"


@pytest.fixture
def signup(client):
    """Sign up a tenant through the API: signup(subdomain, tier="FREE") -> (tenant, headers)"""

    def _signup(subdomain: str, tier: str = "FREE"):
        response = client.post("/api/v1/tenants", json={
            "name": f"{subdomain.title()} Ltd",
            "subdomain": subdomain,
            "admin_email": f"admin@{subdomain}.example.com",
            "admin_password": PASSWORD,
            "tier": tier,
        })
        assert response.status_code == 201, response.text
        body = response.json()
        return body["tenant"], {"Authorization": f"Bearer {body['access_token']}"}

    return _signup


def create_product(client, headers, sku="W-1", price="10.00"):
    return client.post("/api/v1/products", headers=headers, json={
        "name": f"Widget {sku}",
        "sku": sku,
        "price": price,
    })


class TestSignup:
    """Test tenant signup flow"""

    def test_signup_creates_tenant_and_admin(self, client, signup):
        """Test signup returns the tenant and an admin token"""
        tenant, headers = signup("initech")

        assert tenant["subdomain"] == "initech"
        assert tenant["subscription_tier"] == "FREE"
        assert tenant["max_products"] == 10
        claims = verify_token(headers["Authorization"].split()[1])
        assert claims["tenant_id"] == tenant["id"]
        assert claims["roles"] == ["Admin"]

    def test_duplicate_subdomain(self, client, signup):
        signup("initech")

        response = client.post("/api/v1/tenants", json={
            "name": "Copycat",
            "subdomain": "initech",
            "admin_email": "other@copycat.example.com",
            "admin_password": PASSWORD,
        })

        assert response.status_code == 422
        assert response.json()["details"]["field"] == "subdomain"

    def test_login_returns_roles(self, client, signup):
        tenant, _ = signup("initech")

        response = client.post("/api/v1/auth/login", json={
            "email": "admin@initech.example.com",
            "password": PASSWORD,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["tenant_id"] == tenant["id"]
        assert verify_token(body["access_token"])["roles"] == ["Admin"]

    def test_login_wrong_password(self, client, signup):
        signup("initech")

        response = client.post("/api/v1/auth/login", json={
            "email": "admin@initech.example.com",
            "password": "WrongPassword!",
        })

        assert response.status_code == 401


class TestTenantResolution:

    def test_unresolved_tenant_rejected(self, client):
        response = client.get("/api/v1/products")

        assert response.status_code == 400
        assert response.json()["error"] == TENANT_REJECTION_MESSAGE

    def test_unknown_header_tenant_rejected(self, client):
        response = client.get("/api/v1/products", headers={"X-Tenant-Id": str(uuid.uuid4())})

        assert response.status_code == 400
        assert response.json()["message"] == TENANT_REJECTION_MESSAGE

    def test_expired_tenant_rejected(self, client, tenant_factory):
        lapsed = tenant_factory("lapsed", expires_in_days=-1)

        response = client.get("/api/v1/products", headers={"X-Tenant-Id": str(lapsed.id)})

        assert response.status_code == 400

    def test_exempt_endpoints_need_no_tenant(self, client):
        assert client.get("/").status_code == 200
        assert client.get("/api/v1/health").status_code == 200
        assert client.get("/api/v1/health/ready").json()["checks"]["rate_limit_store"]["backend"] == "memory"
        assert client.get("/openapi.json").status_code == 200

    @pytest.mark.parametrize("method, path, exempt", [
        ("POST", "/api/v1/tenants", True),
        ("GET", "/api/v1/tenants", False),
        ("DELETE", "/api/v1/tenants", False),
        ("GET", "/api/v1/health", True),
        ("GET", "/api/v1/health/ready", True),
        ("GET", "/api/v1/healthz", False),
        ("POST", "/api/v1/auth/login", True),
        ("GET", "/docs", True),
        ("GET", "/docsearch", False),
        ("GET", "/api/v1/products", False),
    ])
    def test_exempt_endpoint_matching(self, method, path, exempt):
        assert is_exempt(path, method) is exempt

    def test_lookalike_paths_need_a_tenant(self, client):
        assert client.get("/api/v1/healthz").status_code == 400
        assert client.get("/api/v1/tenants").status_code == 400

    def test_subdomain_resolution(self, client, tenant_a, auth_headers):
        response = client.get("http://acme.inventoryhub.com/api/v1/products", headers=auth_headers)

        assert response.status_code == 200

    def test_token_of_other_tenant_refused_on_subdomain(self, client, tenant_a, tenant_b,
                                                       user_factory, bearer, metric_value):
        before = metric_value("inventory_hub_isolation_violations_total", {"operation": "access"})
        outsider = bearer(user_factory(tenant_b, "spy@globex.example.com"))

        response = client.get("http://acme.inventoryhub.com/api/v1/products", headers=outsider)

        assert response.status_code == 403
        after = metric_value("inventory_hub_isolation_violations_total", {"operation": "access"})
        assert after == before + 1

    def test_invalid_token_is_unauthenticated(self, client, tenant_a):
        headers = {"Authorization": "Bearer not-a-token", "X-Tenant-Id": str(tenant_a.id)}

        response = client.get("/api/v1/products", headers=headers)

        assert response.status_code == 401


class TestProductIsolation:

    def test_create_and_list(self, client, signup):
        _, headers = signup("initech")

        created = create_product(client, headers)
        listing = client.get("/api/v1/products", headers=headers)

        assert created.status_code == 201
        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert listing.json()["items"][0]["sku"] == "W-1"

    def test_tenants_never_see_each_other(self, client, signup):
        _, headers_a = signup("initech")
        _, headers_b = signup("hooli")
        product_id = create_product(client, headers_a).json()["id"]

        assert client.get("/api/v1/products", headers=headers_b).json()["total"] == 0
        response = client.patch(f"/api/v1/products/{product_id}", headers=headers_b, json={"name": "Mine"})
        assert response.status_code == 404
        assert client.delete(f"/api/v1/products/{product_id}", headers=headers_b).status_code == 404

    def test_update_is_audited(self, client, signup):
        _, headers = signup("initech")
        product_id = create_product(client, headers, price="10.00").json()["id"]

        response = client.patch(f"/api/v1/products/{product_id}", headers=headers, json={"price": "12.50"})
        assert response.status_code == 200

        audit = client.get(
            "/api/v1/audit-logs",
            headers=headers,
            params={"entity_id": product_id, "action": "Modified"},
        ).json()
        assert audit["total"] == 1
        entry = audit["items"][0]
        assert entry["old_values"] == {"price": "10.00"}
        assert entry["new_values"] == {"price": "12.50"}

    def test_delete_is_soft_and_audited(self, client, signup):
        _, headers = signup("initech")
        product_id = create_product(client, headers).json()["id"]

        response = client.delete(f"/api/v1/products/{product_id}", headers=headers)

        assert response.status_code == 204
        assert client.get("/api/v1/products", headers=headers).json()["total"] == 0
        audit = client.get("/api/v1/audit-logs", headers=headers, params={"action": "Deleted"}).json()
        assert [e["entity_id"] for e in audit["items"]] == [product_id]


class TestQuotas:

    def test_eleventh_product_on_free_tier(self, client, signup):
        _, headers = signup("initech")
        for i in range(10):
            assert create_product(client, headers, sku=f"P-{i}").status_code == 201

        response = create_product(client, headers, sku="P-10")

        assert response.status_code == 403
        assert response.json()["error"] == "Quota Exceeded"
        assert response.json()["details"]["resource"] == "product"
        assert response.headers["X-RateLimit-Limit"] == "60"

    def test_second_user_needs_upgrade(self, client, signup):
        tenant, headers = signup("initech")
        member = {"email": "member@initech.example.com", "password": PASSWORD}

        blocked = client.post("/api/v1/auth/register", headers=headers, json=member)
        assert blocked.status_code == 403

        upgraded = client.post(
            f"/api/v1/tenants/{tenant['id']}/upgrade",
            headers=headers,
            json={"tier": SubscriptionTier.STARTER.value},
        )
        assert upgraded.status_code == 200
        assert upgraded.json()["max_users"] == 5

        allowed = client.post("/api/v1/auth/register", headers=headers, json=member)
        assert allowed.status_code == 201

    def test_downgrade_refused(self, client, signup):
        tenant, headers = signup("initech", tier="STARTER")

        response = client.post(f"/api/v1/tenants/{tenant['id']}/upgrade", headers=headers, json={"tier": "FREE"})

        assert response.status_code == 400

    def test_cannot_manage_other_tenant(self, client, signup):
        other, _ = signup("hooli")
        _, headers = signup("initech")

        response = client.get(f"/api/v1/tenants/{other['id']}/usage", headers=headers)

        assert response.status_code == 403

    def test_usage(self, client, signup):
        tenant, headers = signup("initech")
        create_product(client, headers)

        usage = client.get(f"/api/v1/tenants/{tenant['id']}/usage", headers=headers).json()

        assert usage["users"] == {"current": 1, "limit": 1}
        assert usage["products"] == {"current": 1, "limit": 10}
        assert usage["api_calls_per_minute"] == {"current": 2, "limit": 60}


class TestRateLimiting:

    def test_sixty_first_request_rejected(self, client, signup, rate_limiter):
        tenant, headers = signup("initech")

        for _ in range(60):
            response = client.get("/api/v1/products", headers=headers)
            assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "0"

        rejected = client.get("/api/v1/products", headers=headers)

        assert rejected.status_code == 429
        assert rejected.headers["Retry-After"] == "55"
        assert rejected.headers["X-RateLimit-Remaining"] == "0"
        assert rate_limiter.peek(tenant["id"]) == 61

    def test_window_rolls_over(self, client, signup, clock):
        _, headers = signup("initech")
        for _ in range(61):
            client.get("/api/v1/products", headers=headers)

        clock.advance(60)

        response = client.get("/api/v1/products", headers=headers)
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "59"

    def test_error_responses_carry_rate_headers(self, client, signup):
        _, headers = signup("initech")

        response = client.patch(f"/api/v1/products/{uuid.uuid4()}", headers=headers, json={"name": "Ghost"})

        assert response.status_code == 404
        assert response.headers["X-RateLimit-Limit"] == "60"
        assert response.headers["X-RateLimit-Remaining"] == "59"
        assert "X-RateLimit-Reset" in response.headers

    def test_exempt_endpoints_not_counted(self, client, signup, rate_limiter):
        tenant, headers = signup("initech")
        for _ in range(5):
            client.get("/api/v1/health", headers=headers)

        response = client.get("/api/v1/products", headers=headers)

        assert response.headers["X-RateLimit-Remaining"] == "59"
        assert rate_limiter.peek(tenant["id"]) == 1


class TestDeactivation:

    def test_deactivated_tenant_rejected(self, client, signup):
        tenant, headers = signup("initech")

        response = client.delete(f"/api/v1/tenants/{tenant['id']}", headers=headers)
        assert response.status_code == 200

        assert client.get("/api/v1/products", headers=headers).status_code == 400
        login = client.post("/api/v1/auth/login", json={
            "email": "admin@initech.example.com",
            "password": PASSWORD,
        })
        assert login.status_code == 400


class TestMonitoring:

    def test_metrics_endpoint(self, client, signup):
        _, headers = signup("initech")
        client.get("/api/v1/products", headers=headers)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "inventory_hub_requests_total" in response.text
        assert "inventory_hub_tenant_resolutions_total" in response.text
