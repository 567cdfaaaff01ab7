"""API tests for auth, portal, admin and health routes."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient
import pytest

from shipnorth.api.app import create_app
from shipnorth.api.dependencies.auth import get_ability, require_ability, require_portal
from shipnorth.api.dependencies.services import get_service_container, ServiceContainer
from shipnorth.config import Settings
from shipnorth.domain.models.base import utc_now
from shipnorth.domain.models.permission import Ability, Action, Subject
from shipnorth.domain.models.user import Portal, User
from shipnorth.infrastructure.clients.http_client import ExternalServiceError
from shipnorth.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from shipnorth.infrastructure.persistence.repositories.in_memory import InMemoryUserRepository
from shipnorth.infrastructure.resilience.circuit_breaker import CircuitOpenError
from shipnorth.infrastructure.resilience.registry import SHIPSTATION


@pytest.fixture
def container(settings: Settings) -> ServiceContainer:
    return ServiceContainer(settings)


@pytest.fixture
def app(settings: Settings, container: ServiceContainer) -> FastAPI:
    application = create_app(settings)
    application.dependency_overrides[get_service_container] = lambda: container
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def seed(user: User) -> User:
    asyncio.run(InMemoryUserRepository().save(user))
    return user


def auth_header(container: ServiceContainer, user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {container.jwt_handler.create_access_token(user)}"}


def trip(container: ServiceContainer, name: str) -> None:
    async def fail() -> None:
        raise ConnectionError("down")

    async def run() -> None:
        breaker = container.breaker_registry.get(name)
        for _ in range(breaker.config.failure_threshold):
            try:
                await breaker.execute(fail)
            except ConnectionError:
                pass

    asyncio.run(run())


class TestRegisterAndLogin:
    def test_register_creates_customer(self, client: TestClient) -> None:
        response = client.post("/api/v1/auth/register", json={
            "email": "New@Example.com",
            "password": "longenough1",
            "first_name": "Nia",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "new@example.com"
        assert body["roles"] == ["customer"]
        assert body["available_portals"] == ["customer"]
        assert body["customer_id"] == body["id"]

    def test_duplicate_email_conflicts(self, client: TestClient) -> None:
        payload = {"email": "dup@example.com", "password": "longenough1"}
        assert client.post("/api/v1/auth/register", json=payload).status_code == 201
        assert client.post("/api/v1/auth/register", json=payload).status_code == 409

    def test_short_password_rejected(self, client: TestClient) -> None:
        response = client.post("/api/v1/auth/register", json={"email": "a@example.com", "password": "short"})
        assert response.status_code == 422

    def test_login_returns_portal_context(self, client: TestClient, staff_driver_user: User) -> None:
        seed(staff_driver_user)
        response = client.post("/api/v1/auth/login", json={
            "email": "staffdriver@example.com", "password": "staffdriver123",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["available_portals"] == ["driver", "staff"]
        assert body["user"]["current_portal"] == "driver"
        assert body["user"]["default_portal"] == "staff"
        assert body["user"]["has_admin_access"] is False

    def test_login_wrong_password(self, client: TestClient, customer_user: User) -> None:
        seed(customer_user)
        response = client.post("/api/v1/auth/login", json={
            "email": "customer@example.com", "password": "wrongpassword",
        })
        assert response.status_code == 401

    def test_login_inactive_account(self, client: TestClient, customer_user: User) -> None:
        customer_user.is_active = False
        seed(customer_user)
        response = client.post("/api/v1/auth/login", json={
            "email": "customer@example.com", "password": "customerpass123",
        })
        assert response.status_code == 403


class TestAuthentication:
    def test_missing_token(self, client: TestClient) -> None:
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_refresh_token_is_not_an_access_token(
        self, client: TestClient, container: ServiceContainer, customer_user: User,
    ) -> None:
        token = container.jwt_handler.create_refresh_token(customer_user.id)
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_me(self, client: TestClient, container: ServiceContainer, customer_user: User) -> None:
        seed(customer_user)
        response = client.get("/api/v1/auth/me", headers=auth_header(container, customer_user))
        assert response.status_code == 200
        assert response.json()["id"] == customer_user.id


class TestPermissions:
    def test_customer_permissions(
        self, client: TestClient, container: ServiceContainer, customer_user: User,
    ) -> None:
        seed(customer_user)
        response = client.get("/api/v1/auth/permissions", headers=auth_header(container, customer_user))
        assert response.status_code == 200
        body = response.json()
        assert body["rules"] == [
            {"action": "read", "subject": "Package", "conditions": {"customer_id": customer_user.id}},
            {"action": "read", "subject": "Invoice", "conditions": {"customer_id": customer_user.id}},
        ]
        assert body["current_portal"] == "customer"
        assert body["has_admin_access"] is False

    def test_admin_permissions(self, client: TestClient, container: ServiceContainer, admin_user: User) -> None:
        seed(admin_user)
        body = client.get("/api/v1/auth/permissions", headers=auth_header(container, admin_user)).json()
        assert body["rules"] == [{"action": "manage", "subject": "all"}]
        assert body["has_admin_access"] is True


class TestPortalRoutes:
    def test_switch_portal(
        self, client: TestClient, container: ServiceContainer, staff_driver_user: User,
    ) -> None:
        seed(staff_driver_user)
        response = client.post(
            "/api/v1/auth/switch-portal",
            json={"portal": "staff"},
            headers=auth_header(container, staff_driver_user),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["current_portal"] == "staff"
        claims = container.jwt_handler.decode_token(body["access_token"])
        assert claims["last_used_portal"] == "staff"

        permissions = client.get(
            "/api/v1/auth/permissions", headers=auth_header(container, staff_driver_user),
        ).json()
        assert permissions["current_portal"] == "staff"

    def test_switch_to_inaccessible_portal(
        self, client: TestClient, container: ServiceContainer, customer_user: User,
    ) -> None:
        seed(customer_user)
        response = client.post(
            "/api/v1/auth/switch-portal",
            json={"portal": "staff"},
            headers=auth_header(container, customer_user),
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have access to the staff portal"
        publisher = container.event_publisher
        assert isinstance(publisher, InMemoryEventPublisher)
        assert publisher.events_of_type("audit.portal_denied")

    def test_unknown_portal_rejected(
        self, client: TestClient, container: ServiceContainer, customer_user: User,
    ) -> None:
        response = client.post(
            "/api/v1/auth/switch-portal",
            json={"portal": "admin"},
            headers=auth_header(container, customer_user),
        )
        assert response.status_code == 422

    def test_set_default_portal(
        self, client: TestClient, container: ServiceContainer, staff_driver_user: User,
    ) -> None:
        seed(staff_driver_user)
        response = client.post(
            "/api/v1/auth/default-portal",
            json={"portal": "driver"},
            headers=auth_header(container, staff_driver_user),
        )
        assert response.status_code == 200
        assert response.json()["user"]["default_portal"] == "driver"


class TestAdminRoutes:
    def test_non_admin_is_denied_and_audited(
        self, client: TestClient, container: ServiceContainer, staff_driver_user: User,
    ) -> None:
        response = client.get(
            "/api/v1/admin/circuit-breakers",
            headers={**auth_header(container, staff_driver_user), "X-Correlation-ID": "corr-9"},
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have permission to perform this action"

        publisher = container.event_publisher
        assert isinstance(publisher, InMemoryEventPublisher)
        denied = publisher.events_of_type("audit.access_denied")
        assert denied[0]["action"] == "manage"
        assert denied[0]["subject"] == "Settings"
        assert denied[0]["endpoint"] == "/api/v1/admin/circuit-breakers"
        assert denied[0]["correlation_id"] == "corr-9"

    def test_list_breakers(self, client: TestClient, container: ServiceContainer, admin_user: User) -> None:
        trip(container, SHIPSTATION)
        response = client.get("/api/v1/admin/circuit-breakers", headers=auth_header(container, admin_user))
        assert response.status_code == 200
        body = response.json()
        assert body["open"] == [SHIPSTATION]
        assert body["breakers"][0]["state"] == "OPEN"

    def test_reset_breaker(self, client: TestClient, container: ServiceContainer, admin_user: User) -> None:
        trip(container, SHIPSTATION)
        response = client.post(
            f"/api/v1/admin/circuit-breakers/{SHIPSTATION}/reset",
            headers=auth_header(container, admin_user),
        )
        assert response.status_code == 200
        assert response.json()["state"] == "CLOSED"
        assert container.breaker_registry.open_breakers() == []

    def test_reset_unknown_breaker(self, client: TestClient, container: ServiceContainer, admin_user: User) -> None:
        response = client.post(
            "/api/v1/admin/circuit-breakers/nope/reset", headers=auth_header(container, admin_user),
        )
        assert response.status_code == 404


class TestShippingRoutes:
    def test_quote_degrades_while_carrier_breaker_open(
        self, client: TestClient, container: ServiceContainer, staff_driver_user: User,
    ) -> None:
        trip(container, SHIPSTATION)
        response = client.post(
            "/api/v1/shipping/rates",
            json={
                "package_id": "pkg-1",
                "from_postal_code": "M5V 2T6",
                "to_postal_code": "H2X 1Y4",
                "weight_grams": 500,
            },
            headers=auth_header(container, staff_driver_user),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["available"] is False
        assert "try again shortly" in body["message"]

    def test_driver_cannot_quote(self, client: TestClient, container: ServiceContainer, driver_user: User) -> None:
        response = client.post(
            "/api/v1/shipping/rates",
            json={"package_id": "p", "from_postal_code": "a", "to_postal_code": "b", "weight_grams": 1},
            headers=auth_header(container, driver_user),
        )
        assert response.status_code == 403


class TestErrorMapping:
    def test_circuit_open_maps_to_503(self, app: FastAPI) -> None:
        @app.get("/boom/open")
        async def open_circuit() -> None:
            raise CircuitOpenError("stripe", utc_now() + timedelta(seconds=12))

        response = TestClient(app).get("/boom/open")
        assert response.status_code == 503
        assert int(response.headers["Retry-After"]) in (11, 12)
        assert "temporarily unavailable, please try again shortly" in response.json()["detail"]

    def test_external_service_error_maps_to_502(self, app: FastAPI) -> None:
        @app.get("/boom/upstream")
        async def upstream() -> None:
            raise ExternalServiceError("shipstation", "HTTP 500", status_code=500)

        response = TestClient(app).get("/boom/upstream")
        assert response.status_code == 502


class TestHealthRoutes:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_ready(self, client: TestClient) -> None:
        body = client.get("/health/ready").json()
        assert body["status"] == "ready"
        assert body["checks"]["database"] == "in_memory"

    def test_ready_degraded_with_open_breaker(self, client: TestClient, container: ServiceContainer) -> None:
        trip(container, SHIPSTATION)
        body = client.get("/health/ready").json()
        assert body["status"] == "degraded"
        assert body["open_circuit_breakers"] == [SHIPSTATION]

    def test_metrics(self, client: TestClient) -> None:
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "shipnorth_circuit_breaker_state" in response.text


class TestPortalGuardDependency:
    def test_require_portal(self, app: FastAPI, container: ServiceContainer, customer_user: User) -> None:
        @app.get("/driver-only")
        async def driver_only(user: User = Depends(require_portal(Portal.DRIVER))) -> dict[str, str]:
            return {"id": user.id}

        response = TestClient(app).get("/driver-only", headers=auth_header(container, customer_user))
        assert response.status_code == 403
        publisher = container.event_publisher
        assert isinstance(publisher, InMemoryEventPublisher)
        assert publisher.events_of_type("audit.portal_denied")[0]["portal"] == "driver"

    def test_require_portal_allows_matching_role(
        self, app: FastAPI, container: ServiceContainer, driver_user: User,
    ) -> None:
        @app.get("/driver-only")
        async def driver_only(user: User = Depends(require_portal(Portal.DRIVER))) -> dict[str, str]:
            return {"id": user.id}

        response = TestClient(app).get("/driver-only", headers=auth_header(container, driver_user))
        assert response.status_code == 200
        assert response.json() == {"id": driver_user.id}


def package_from_path(request: Request) -> dict[str, str]:
    return {"customer_id": request.path_params["customer_id"]}


class TestInstanceAbilityGuard:
    @pytest.fixture
    def guarded_app(self, app: FastAPI) -> FastAPI:
        @app.get("/customers/{customer_id}/packages")
        async def customer_packages(
            customer_id: str,
            user: User = Depends(require_ability(Action.READ, Subject.PACKAGE, get_subject=package_from_path)),
        ) -> dict[str, str]:
            return {"customer_id": customer_id}

        return app

    def test_customer_reads_own_packages(
        self, guarded_app: FastAPI, container: ServiceContainer, customer_user: User,
    ) -> None:
        response = TestClient(guarded_app).get(
            f"/customers/{customer_user.id}/packages", headers=auth_header(container, customer_user),
        )
        assert response.status_code == 200

    def test_customer_denied_other_customers_packages(
        self, guarded_app: FastAPI, container: ServiceContainer, customer_user: User,
    ) -> None:
        response = TestClient(guarded_app).get(
            "/customers/someone-else/packages", headers=auth_header(container, customer_user),
        )
        assert response.status_code == 403
        publisher = container.event_publisher
        assert isinstance(publisher, InMemoryEventPublisher)
        denied = publisher.events_of_type("audit.access_denied")[0]
        assert denied["subject"] == "Package"
        assert denied["endpoint"] == "/customers/someone-else/packages"

    def test_staff_reads_any_customers_packages(
        self, guarded_app: FastAPI, container: ServiceContainer, staff_driver_user: User,
    ) -> None:
        response = TestClient(guarded_app).get(
            "/customers/someone-else/packages", headers=auth_header(container, staff_driver_user),
        )
        assert response.status_code == 200

    def test_resolved_ability_dependency(
        self, app: FastAPI, container: ServiceContainer, customer_user: User,
    ) -> None:
        @app.get("/my-rules")
        async def my_rules(ability: Ability = Depends(get_ability)) -> list[dict]:
            return ability.to_wire()

        response = TestClient(app).get("/my-rules", headers=auth_header(container, customer_user))
        assert response.status_code == 200
        assert {"action": "read", "subject": "Package", "conditions": {"customer_id": customer_user.id}} in response.json()
