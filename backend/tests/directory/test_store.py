"""Tests for the SQLite backed user directory."""

import asyncio
import json
from pathlib import Path

import pytest

from userdir.common import Role, User
from userdir.directory import DirectoryStoreError, SearchCriteria, UserDirectory


@pytest.mark.asyncio
class TestCreateAndSave:
    async def test_create_then_search(
        self,
        directory: UserDirectory,
        ann: User,
    ) -> None:
        assert await directory.create(ann)
        users = await directory.search({})
        assert users == [ann]

    async def test_save_is_an_upsert(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
    ) -> None:
        await directory.create(ann)
        moderator.warn_user(ann)
        assert await directory.save(ann)

        stored = await directory.get(ann.id)
        assert stored == ann
        assert stored is not None
        assert stored.warning_count == 1
        assert len(await directory.search()) == 1

    async def test_save_without_create(
        self,
        directory: UserDirectory,
        ann: User,
    ) -> None:
        await directory.save(ann)
        assert await directory.get(ann.id) == ann

    async def test_get_missing_user(self, directory: UserDirectory) -> None:
        assert await directory.get("missing") is None

    async def test_every_role_comes_back(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
        admin: User,
        superadmin: User,
    ) -> None:
        for user in (ann, moderator, admin, superadmin):
            await directory.create(user)
        roles = {user.id: user.role for user in await directory.search()}
        assert roles == {
            ann.id: Role.USER,
            moderator.id: Role.MODERATOR,
            admin.id: Role.ADMIN,
            superadmin.id: Role.SUPERADMIN,
        }

    async def test_concurrent_saves_are_last_write_wins(
        self,
        directory: UserDirectory,
        ann: User,
    ) -> None:
        await directory.create(ann)
        renamed = User(
            "Anne",
            ann.email,
            "ann-pw",
            user_id=ann.id,
        )
        await asyncio.gather(directory.save(ann), directory.save(renamed))
        users = await directory.search()
        assert len(users) == 1
        assert users[0].name in {"Ann", "Anne"}


@pytest.mark.asyncio
class TestSearch:
    async def test_empty_directory(self, directory: UserDirectory) -> None:
        assert await directory.search() == []
        assert await directory.search({"name": "nobody"}) == []

    async def test_active_admins_only(
        self,
        directory: UserDirectory,
        ann: User,
    ) -> None:
        """Criteria are ANDed across role and deletion flag."""
        active = User("Active", "active@example.com", "pw", Role.ADMIN)
        gone = User("Gone", "gone@example.com", "pw", Role.ADMIN)
        gone.soft_delete()
        for user in (ann, active, gone):
            await directory.create(user)

        found = await directory.search({"role": "Admin", "isDeleted": False})
        assert found == [active]

    async def test_free_text_query(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
    ) -> None:
        await directory.create(ann)
        await directory.create(moderator)
        assert await directory.search({"q": "ANN"}) == [ann]
        found = await directory.search(SearchCriteria(q="example.com"))
        assert {user.id for user in found} == {ann.id, moderator.id}

    async def test_non_string_query(
        self,
        directory: UserDirectory,
        ann: User,
    ) -> None:
        await directory.create(ann)
        assert await directory.search({"q": 5}) == []
        assert await directory.search({"name": 5}) == []

    async def test_by_id(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
    ) -> None:
        await directory.create(ann)
        await directory.create(moderator)
        assert await directory.search({"id": moderator.id}) == [moderator]

    async def test_unknown_stored_role_is_read_as_user(
        self,
        directory: UserDirectory,
    ) -> None:
        record = {
            "id": "legacy",
            "name": "Legacy",
            "email": "legacy@example.com",
            "role": "Overlord",
            "isDeleted": False,
            "credential": "pw",
            "warningCount": 2,
            "mutedUntil": 0,
        }
        db = await directory._get_connection()  # noqa: SLF001
        await db.execute(
            "INSERT INTO users (id, name, email, role, is_deleted, record) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                "legacy",
                "Legacy",
                "legacy@example.com",
                "Overlord",
                0,
                json.dumps(record),
            ),
        )
        await db.commit()

        users = await directory.search({"role": "User"})
        assert len(users) == 1
        assert users[0].id == "legacy"
        assert users[0].role is Role.USER
        assert users[0].warning_count == 2


@pytest.mark.asyncio
class TestSoftDeleteByCriteria:
    async def test_by_id_string(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
    ) -> None:
        await directory.create(ann)
        await directory.create(moderator)

        assert await directory.soft_delete_by_criteria(ann.id) == 1

        stored = await directory.get(ann.id)
        assert stored is not None
        assert stored.is_deleted
        other = await directory.get(moderator.id)
        assert other is not None
        assert not other.is_deleted

    async def test_by_criteria(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
        admin: User,
    ) -> None:
        for user in (ann, moderator, admin):
            await directory.create(user)

        assert await directory.soft_delete_by_criteria({"role": "Moderator"}) == 1
        deleted = await directory.search({"isDeleted": True})
        assert [user.id for user in deleted] == [moderator.id]

    async def test_no_match(self, directory: UserDirectory, ann: User) -> None:
        await directory.create(ann)
        assert await directory.soft_delete_by_criteria({"name": "zed"}) == 0
        assert await directory.search({"isDeleted": True}) == []

    async def test_empty_criteria_deletes_everyone(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
    ) -> None:
        await directory.create(ann)
        await directory.create(moderator)

        assert await directory.soft_delete_by_criteria({}) == 2
        assert await directory.search({"isDeleted": False}) == []

    async def test_keeps_other_fields(
        self,
        directory: UserDirectory,
        ann: User,
        moderator: User,
    ) -> None:
        moderator.warn_user(ann)
        await directory.create(ann)
        await directory.soft_delete_by_criteria(ann.id)
        stored = await directory.get(ann.id)
        assert stored is not None
        assert stored.warning_count == 1
        assert stored.check_credential("ann-pw")

    async def test_concurrent_save_after_delete_is_kept(
        self,
        directory: UserDirectory,
        ann: User,
    ) -> None:
        await directory.create(ann)
        warned = User("Ann", ann.email, "ann-pw", user_id=ann.id, warning_count=1)

        await asyncio.gather(
            directory.soft_delete_by_criteria({"name": "ann"}),
            directory.save(warned),
        )

        stored = await directory.get(ann.id)
        assert stored is not None
        assert stored.warning_count == 1

    async def test_concurrent_save_before_delete_is_deleted(
        self,
        directory: UserDirectory,
        ann: User,
    ) -> None:
        await directory.create(ann)
        warned = User("Ann", ann.email, "ann-pw", user_id=ann.id, warning_count=1)

        _, deleted = await asyncio.gather(
            directory.save(warned),
            directory.soft_delete_by_criteria({"name": "ann"}),
        )
        assert deleted == 1

        stored = await directory.get(ann.id)
        assert stored is not None
        assert stored.is_deleted
        assert stored.warning_count == 1


@pytest.mark.asyncio
class TestConnection:
    async def test_connection_is_lazy_and_shared(self, db_path: str) -> None:
        directory = UserDirectory(db_path)
        assert directory._connection is None  # noqa: SLF001
        try:
            await directory.search()
            first = directory._connection  # noqa: SLF001
            assert first is not None
            await directory.search()
            assert directory._connection is first  # noqa: SLF001
        finally:
            await directory.close()
        assert directory._connection is None  # noqa: SLF001

    async def test_concurrent_first_use_opens_once(self, db_path: str) -> None:
        directory = UserDirectory(db_path)
        try:
            connections = await asyncio.gather(
                *(directory._get_connection() for _ in range(5)),  # noqa: SLF001
            )
            assert all(connection is connections[0] for connection in connections)
        finally:
            await directory.close()

    async def test_data_survives_reopening(self, db_path: str, ann: User) -> None:
        async with UserDirectory(db_path) as directory:
            await directory.create(ann)
        async with UserDirectory(db_path) as directory:
            assert await directory.get(ann.id) == ann

    async def test_close_twice(self, db_path: str) -> None:
        directory = UserDirectory(db_path)
        await directory.initialize()
        await directory.close()
        await directory.close()

    async def test_unreachable_store(self, tmp_path: Path, ann: User) -> None:
        directory = UserDirectory(str(tmp_path / "missing" / "users.db"))
        with pytest.raises(DirectoryStoreError):
            await directory.search()
        with pytest.raises(DirectoryStoreError):
            await directory.save(ann)
        assert directory._connection is None  # noqa: SLF001
