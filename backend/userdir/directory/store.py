"""Durable user directory backed by SQLite through aiosqlite.

Each user is stored as one JSON record keyed by id. The ``name``, ``email``,
``role`` and ``is_deleted`` columns mirror the record so they can be indexed,
but search results are always computed by decoding the records and filtering
them in memory.

**Example Usage:**

.. code-block:: python

    directory = UserDirectory("users.db")
    ann = User("Ann", "ann@example.com", "pw")
    await directory.create(ann)
    admins = await directory.search({"role": "Admin", "isDeleted": False})
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import aiosqlite

from userdir.common import from_record, to_record

from .criteria import SearchCriteria
from .errors import DirectoryStoreError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from userdir.common import User

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class UserDirectory:
    """Repository for user records.

    At most one connection is opened per instance, lazily, on first use.
    Pass the instance to whatever needs the directory instead of creating
    new ones. Writes made through one instance are serialized.

    :param db_path: Path to the SQLite database file
    """

    CREATE_USERS_TABLE = """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL DEFAULT '',
            email TEXT NOT NULL DEFAULT '',
            role TEXT NOT NULL DEFAULT 'User',
            is_deleted INTEGER NOT NULL DEFAULT 0,
            record TEXT NOT NULL
        );
        """

    CREATE_INDEXES = (
        "CREATE INDEX IF NOT EXISTS idx_users_name ON users (name);",
        "CREATE INDEX IF NOT EXISTS idx_users_email ON users (email);",
        "CREATE INDEX IF NOT EXISTS idx_users_role ON users (role);",
        "CREATE INDEX IF NOT EXISTS idx_users_is_deleted ON users (is_deleted);",
    )

    UPSERT_USER = """
        INSERT INTO users (id, name, email, role, is_deleted, record)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            email = excluded.email,
            role = excluded.role,
            is_deleted = excluded.is_deleted,
            record = excluded.record;
        """

    GET_ALL_RECORDS = """SELECT record FROM users ORDER BY rowid;"""

    GET_RECORD_BY_ID = """SELECT record FROM users WHERE id = ?;"""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._connection_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    async def __aenter__(self) -> UserDirectory:
        await self._get_connection()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.close()

    async def _get_connection(self) -> aiosqlite.Connection:
        """Return the shared connection, opening it on first use.

        :raises DirectoryStoreError: If the database cannot be opened
        """
        if self._connection is not None:
            return self._connection
        async with self._connection_lock:
            if self._connection is not None:
                return self._connection
            connection = None
            try:
                connection = await aiosqlite.connect(self.db_path)
                await self._initialize_tables(connection)
            except aiosqlite.Error as e:
                if connection is not None:
                    await connection.close()
                LOGGER.error("Could not open user directory at %s: %s", self.db_path, e)
                msg = f"Could not open user directory at {self.db_path}"
                raise DirectoryStoreError(msg) from e
            self._connection = connection
            LOGGER.debug("User directory connection established to: %s", self.db_path)
        return self._connection

    @staticmethod
    async def _initialize_tables(connection: aiosqlite.Connection) -> None:
        await connection.execute(UserDirectory.CREATE_USERS_TABLE)
        for statement in UserDirectory.CREATE_INDEXES:
            await connection.execute(statement)
        await connection.commit()

    async def initialize(self) -> None:
        """Open the connection and create the table and indexes if missing."""
        await self._get_connection()

    async def close(self) -> None:
        """Close the connection if one was opened."""
        async with self._connection_lock:
            if self._connection is None:
                return
            await self._connection.close()
            self._connection = None
            LOGGER.debug("User directory connection closed: %s", self.db_path)

    @staticmethod
    async def _upsert(db: aiosqlite.Connection, user: User) -> None:
        record = to_record(user)
        params = (
            record["id"],
            record["name"],
            record["email"],
            record["role"],
            int(record["isDeleted"]),
            json.dumps(record),
        )
        await db.execute(UserDirectory.UPSERT_USER, params)

    async def _put(self, user: User) -> bool:
        """Upsert one user inside its own transaction.

        :raises DirectoryStoreError: If the write fails
        """
        async with self._write_lock:
            db = await self._get_connection()
            try:
                await self._upsert(db, user)
                await db.commit()
            except aiosqlite.Error as e:
                LOGGER.error("Error saving user %s: %s", user.id, e)
                await self._rollback(db)
                msg = f"Failed to save user {user.id}"
                raise DirectoryStoreError(msg) from e
        return True

    @staticmethod
    async def _rollback(db: aiosqlite.Connection) -> None:
        try:
            await db.rollback()
        except aiosqlite.Error as e:
            LOGGER.warning("Rollback failed: %s", e)

    async def create(self, user: User) -> bool:
        """Store a new user. Behaves exactly like :meth:`save`.

        :param user: The user to store
        :return: True once the record is committed
        """
        LOGGER.info("Creating user %s (%s) as %s", user.id, user.name, user.role)
        return await self._put(user)

    async def save(self, user: User) -> bool:
        """Persist the current state of a user, replacing any stored record.

        Concurrent saves of the same id are last-write-wins.

        :param user: The user to store
        :return: True once the record is committed
        """
        return await self._put(user)

    async def get(self, user_id: str) -> User | None:
        """Fetch a single user by id.

        :param user_id: Id of the user
        :return: The user, or None if no record has this id
        """
        db = await self._get_connection()
        try:
            cursor = await db.execute(UserDirectory.GET_RECORD_BY_ID, (user_id,))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            LOGGER.error("Error reading user %s: %s", user_id, e)
            msg = f"Failed to read user {user_id}"
            raise DirectoryStoreError(msg) from e
        if row is None:
            return None
        return from_record(json.loads(row[0]))

    async def _load_all(self) -> list[User]:
        db = await self._get_connection()
        try:
            cursor = await db.execute(UserDirectory.GET_ALL_RECORDS)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            LOGGER.error("Error reading user directory: %s", e)
            msg = "Failed to read user directory"
            raise DirectoryStoreError(msg) from e
        return [from_record(json.loads(row[0])) for row in rows]

    async def search(
        self,
        criteria: SearchCriteria | Mapping[str, Any] | None = None,
    ) -> list[User]:
        """Return every user matching all given criteria.

        :param criteria: A :class:`SearchCriteria` or a mapping with any of
            ``q``, ``id``, ``name``, ``email``, ``role`` and ``isDeleted``.
            Empty or None returns every user.
        :return: Matching users, possibly empty
        """
        users = await self._load_all()
        criteria = SearchCriteria.coerce(criteria)
        if criteria.is_empty():
            return users
        return [user for user in users if criteria.matches(user)]

    async def soft_delete_by_criteria(
        self,
        criteria: SearchCriteria | Mapping[str, Any] | str | None,
    ) -> int:
        """Soft delete every user matching ``criteria``.

        The read and every write happen under the write lock and are
        committed as one transaction, so no concurrent save can land between
        reading a match and writing it back.

        Empty criteria match every user in the directory. Callers exposing
        this to people should ask for explicit confirmation in that case.

        :param criteria: Search criteria, or a bare user id
        :return: The number of matching users, each now persisted as deleted
        :raises DirectoryStoreError: If the read or any write fails
        """
        criteria = SearchCriteria.coerce(criteria)
        async with self._write_lock:
            if criteria.is_empty():
                LOGGER.warning("Soft deleting every user in %s", self.db_path)
            users = await self._load_all()
            matches = [user for user in users if criteria.matches(user)]
            db = await self._get_connection()
            try:
                for user in matches:
                    user.soft_delete()
                    await self._upsert(db, user)
                await db.commit()
            except aiosqlite.Error as e:
                LOGGER.error("Error soft deleting users: %s", e)
                await self._rollback(db)
                msg = "Failed to soft delete users"
                raise DirectoryStoreError(msg) from e
        LOGGER.info("Soft deleted %d user(s)", len(matches))
        return len(matches)
