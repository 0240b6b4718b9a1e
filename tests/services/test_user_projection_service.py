"""Tests for projecting provider records into directory views."""
from core.roles import ADMIN_ROLE, DOCTOR_ROLE, PATIENT_ROLE
from fakes import FakeProfileStore, make_user
from services.user_projection_service import project_user_record, project_user_records


class TestProjectUserRecord:
    """Tests for project_user_record."""

    async def test__project_user_record__attaches_profile_of_role(
        self, profile_store: FakeProfileStore,
    ) -> None:
        """Directory users carry the profile stored in their role's collection."""
        profile_store.add(PATIENT_ROLE, "p1", uid="p1", isProfileComplete=True)

        view = await project_user_record(make_user("p1", role=PATIENT_ROLE), profile_store.get)

        assert view is not None
        assert view.profile == {"uid": "p1", "isProfileComplete": True}
        assert view.is_profile_complete
        assert profile_store.get_calls == [(PATIENT_ROLE, "p1")]

    async def test__project_user_record__missing_profile_is_none(
        self, profile_store: FakeProfileStore,
    ) -> None:
        """A user without a profile document is kept with profile None."""
        view = await project_user_record(make_user("d1", role=DOCTOR_ROLE), profile_store.get)
        assert view is not None
        assert view.profile is None
        assert not view.is_profile_complete

    async def test__project_user_record__skips_profile_for_admins_and_roleless(
        self, profile_store: FakeProfileStore,
    ) -> None:
        """Admins and users without a role never read a profile."""
        records = [
            make_user("a1", role=ADMIN_ROLE),
            make_user("a2", role=DOCTOR_ROLE, is_admin=True),
            make_user("n1"),
        ]
        for record in records:
            view = await project_user_record(record, profile_store.get)
            assert view is not None
            assert view.profile is None
        assert profile_store.get_calls == []

    async def test__project_user_record__failure_drops_record(
        self, profile_store: FakeProfileStore,
    ) -> None:
        """A failing profile read yields None instead of raising."""
        profile_store.failing_ids.add("p1")
        view = await project_user_record(make_user("p1", role=PATIENT_ROLE), profile_store.get)
        assert view is None


class TestProjectUserRecords:
    """Tests for project_user_records."""

    async def test__project_user_records__drops_only_failed_records(
        self, profile_store: FakeProfileStore,
    ) -> None:
        """One failing record never fails the batch; order is preserved."""
        records = [make_user(f"p{i}", role=PATIENT_ROLE) for i in range(5)]
        profile_store.failing_ids.add("p2")

        views = await project_user_records(records, profile_store.get)

        assert [view.id for view in views] == ["p0", "p1", "p3", "p4"]

    async def test__project_user_records__empty_input(
        self, profile_store: FakeProfileStore,
    ) -> None:
        """No records, no views."""
        assert await project_user_records([], profile_store.get) == []
