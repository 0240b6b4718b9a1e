"""Tests for the user directory endpoints."""
from collections.abc import Callable

import pytest
from httpx import AsyncClient

from core.roles import DOCTOR_ROLE, PATIENT_ROLE, Caller
from fakes import FakeIdentityProvider, FakeProfileStore, add_directory_user, make_user

DOCTOR = Caller(uid="doctor-caller", role=DOCTOR_ROLE)
NO_ROLE = Caller(uid="nobody")


class TestListUsersEndpoint:
    """Tests for GET /users."""

    async def test__list_users__first_page(
        self, client: AsyncClient, provider: FakeIdentityProvider,
    ) -> None:
        """Admins get the first page with cursor availability."""
        provider.users.extend(make_user(f"u{i}") for i in range(12))

        response = await client.get("/users")

        assert response.status_code == 200
        data = response.json()
        assert len(data["users"]) == 10
        assert data["total_count"] == 10
        assert data["current_page"] == 0
        assert data["has_next_page"] is True
        assert data["page_tokens"] == [False, True]

    async def test__list_users__next_page_after_first(
        self, client: AsyncClient, provider: FakeIdentityProvider,
    ) -> None:
        """Page 1 is reachable once page 0 was served."""
        provider.users.extend(make_user(f"u{i}") for i in range(12))

        await client.get("/users", params={"page": 0})
        response = await client.get("/users", params={"page": 1})

        assert response.status_code == 200
        assert [user["id"] for user in response.json()["users"]] == ["u10", "u11"]

    async def test__list_users__unavailable_page_is_400(self, client: AsyncClient) -> None:
        """A page without a live cursor is a client error."""
        response = await client.get("/users", params={"page": 5})

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "message": "The requested page is not available: 5",
            "error_code": "INVALID_PAGE",
        }

    async def test__list_users__without_role_is_403(
        self, client: AsyncClient, as_caller: Callable[[Caller], None],
    ) -> None:
        """Callers with no directory role are forbidden."""
        as_caller(NO_ROLE)
        response = await client.get("/users")
        assert response.status_code == 403
        assert response.json()["detail"]["error_code"] == "FORBIDDEN"

    async def test__list_users__doctor_sees_complete_patients(
        self,
        client: AsyncClient,
        as_caller: Callable[[Caller], None],
        provider: FakeIdentityProvider,
        profile_store: FakeProfileStore,
    ) -> None:
        """Role scoping applies to HTTP callers."""
        add_directory_user(provider, profile_store, "p1", PATIENT_ROLE)
        add_directory_user(provider, profile_store, "p2", PATIENT_ROLE, complete=False)
        add_directory_user(provider, profile_store, "d1", DOCTOR_ROLE)
        as_caller(DOCTOR)

        response = await client.get("/users")

        assert response.status_code == 200
        users = response.json()["users"]
        assert [user["id"] for user in users] == ["p1"]
        assert users[0]["profile"] == {"uid": "p1", "isProfileComplete": True}

    async def test__list_users__search(
        self, client: AsyncClient, provider: FakeIdentityProvider,
    ) -> None:
        """Search results are ranked and report total pages."""
        provider.users.append(make_user("u1", display_name="Anna Smith"))
        provider.users.append(make_user("u2", display_name="Anne Smith"))
        provider.users.append(make_user("u3", display_name="Robert Jones"))

        response = await client.get("/users", params={"search": "anne"})

        assert response.status_code == 200
        data = response.json()
        assert [user["id"] for user in data["users"]] == ["u2", "u1"]
        assert data["total_count"] == 2
        assert data["total_pages"] == 1
        assert data["page_tokens"] is None
        assert data["users"][0]["search_score"] > data["users"][1]["search_score"]

    async def test__list_users__multiple_search_terms(
        self, client: AsyncClient, provider: FakeIdentityProvider,
    ) -> None:
        """Repeating the search parameter searches for every term."""
        provider.users.append(make_user("u1", display_name="Anne"))
        provider.users.append(make_user("u2", display_name="Robert"))
        provider.users.append(make_user("u3", display_name="Zoe"))

        response = await client.get("/users", params=[("search", "anne"), ("search", "robert")])

        assert {user["id"] for user in response.json()["users"]} == {"u1", "u2"}

    async def test__list_users__provider_failure_is_500(
        self, client: AsyncClient, provider: FakeIdentityProvider,
    ) -> None:
        """Upstream errors become a generic 500."""
        provider.fail_with = RuntimeError("credentials for project-x rejected")

        response = await client.get("/users")

        assert response.status_code == 500
        assert response.json()["detail"] == {
            "message": "Failed to list users",
            "error_code": "UPSTREAM_ERROR",
        }

    async def test__list_users__requires_authentication(
        self, anonymous_client: AsyncClient,
    ) -> None:
        """Requests without a bearer token are rejected."""
        response = await anonymous_client.get("/users")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestUsersByIdsEndpoint:
    """Tests for GET /users/by-ids."""

    async def test__by_ids__returns_found_and_not_found(
        self, client: AsyncClient, provider: FakeIdentityProvider,
    ) -> None:
        """Unknown ids are reported alongside the found users."""
        provider.users.extend([make_user("u1"), make_user("u2")])

        response = await client.get("/users/by-ids", params={"ids": "u1,ghost,u2"})

        assert response.status_code == 200
        data = response.json()
        assert [user["id"] for user in data["users"]] == ["u1", "u2"]
        assert data["not_found"] == ["ghost"]

    @pytest.mark.parametrize("params", [{}, {"ids": ""}, {"ids": " , "}])
    async def test__by_ids__missing_ids_is_400(
        self, client: AsyncClient, params: dict[str, str],
    ) -> None:
        """The ids parameter is required."""
        response = await client.get("/users/by-ids", params=params)
        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "MISSING_IDS"

    async def test__by_ids__admin_only(
        self, client: AsyncClient, as_caller: Callable[[Caller], None],
    ) -> None:
        """Doctors cannot look accounts up by id."""
        as_caller(DOCTOR)
        response = await client.get("/users/by-ids", params={"ids": "u1"})
        assert response.status_code == 403


class TestCreateUserEndpoint:
    """Tests for POST /users/create-user."""

    async def test__create_user__signs_up_patient(
        self,
        anonymous_client: AsyncClient,
        provider: FakeIdentityProvider,
        profile_store: FakeProfileStore,
    ) -> None:
        """Sign-up is public and returns the user and a custom token."""
        response = await anonymous_client.post(
            "/users/create-user",
            json={
                "email": "jane@example.com",
                "password": "s3cret-pass",
                "first_name": "Jane",
                "last_name": "Doe",
                "role": PATIENT_ROLE,
            },
        )

        assert response.status_code == 201
        data = response.json()
        uid = data["user"]["uid"]
        assert data["message"] == "Welcome to MedJournal, Jane Doe"
        assert data["user"]["role"] == PATIENT_ROLE
        assert data["user"]["profile"]["isProfileComplete"] is False
        assert data["token"] == f"custom-token-{uid}"
        assert (PATIENT_ROLE, uid) in profile_store.documents

    async def test__create_user__invalid_role_is_422(self, client: AsyncClient) -> None:
        """Only patient and doctor sign-ups are accepted."""
        response = await client.post(
            "/users/create-user",
            json={
                "email": "jane@example.com",
                "password": "s3cret-pass",
                "first_name": "Jane",
                "last_name": "Doe",
                "role": "nurses",
            },
        )
        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "INVALID_ROLE"

    async def test__create_user__duplicate_email_is_409(
        self, client: AsyncClient, provider: FakeIdentityProvider,
    ) -> None:
        """An email can only be registered once."""
        provider.users.append(make_user("u1", email="jane@example.com"))
        response = await client.post(
            "/users/create-user",
            json={
                "email": "jane@example.com",
                "password": "s3cret-pass",
                "first_name": "Jane",
                "last_name": "Doe",
                "role": DOCTOR_ROLE,
            },
        )
        assert response.status_code == 409

    async def test__create_user__short_password_is_422(self, client: AsyncClient) -> None:
        """Request validation runs before sign-up."""
        response = await client.post(
            "/users/create-user",
            json={
                "email": "jane@example.com",
                "password": "123",
                "first_name": "Jane",
                "last_name": "Doe",
                "role": PATIENT_ROLE,
            },
        )
        assert response.status_code == 422


class TestAccountActionsEndpoint:
    """Tests for POST /users/actions."""

    async def test__actions__disable(
        self,
        client: AsyncClient,
        provider: FakeIdentityProvider,
        profile_store: FakeProfileStore,
    ) -> None:
        """Admins can disable accounts."""
        add_directory_user(provider, profile_store, "p1", PATIENT_ROLE)

        response = await client.post("/users/actions", json={"ids": ["p1"], "action": "disable"})

        assert response.status_code == 200
        assert response.json() == {
            "message": "Users successfully disabled.",
            "updated_user_ids": ["p1"],
        }
        assert provider.get("p1").disabled is True

    async def test__actions__unknown_action_is_422(self, client: AsyncClient) -> None:
        """Unknown actions are rejected."""
        response = await client.post("/users/actions", json={"ids": ["p1"], "action": "archive"})
        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "INVALID_ACTION"

    async def test__actions__empty_ids_is_422(self, client: AsyncClient) -> None:
        """At least one id is required."""
        response = await client.post("/users/actions", json={"ids": [], "action": "delete"})
        assert response.status_code == 422

    async def test__actions__admin_only(
        self, client: AsyncClient, as_caller: Callable[[Caller], None],
    ) -> None:
        """Doctors cannot manage accounts."""
        as_caller(DOCTOR)
        response = await client.post("/users/actions", json={"ids": ["p1"], "action": "delete"})
        assert response.status_code == 403
