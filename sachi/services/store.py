"""Credential and session store.

The store is the only component that talks to the users and sessions tables.
It adapts to two users layouts:

* modern: ``name`` column plus an optional ``company`` column
* legacy: display name kept in ``username``, possibly without ``company``

The layout is detected once when the store is opened and frozen into a
:class:`UserStatements` instance; queries never re-inspect the schema.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    Integer,
    MetaData,
    Table,
    Text,
    bindparam,
    delete,
    func,
    insert,
    literal,
    select,
    update,
)
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError

from sachi.database import UserSchema, open_database
from sachi.models.session import UserSession

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=24)
SESSION_TOKEN_BYTES = 32

sessions = UserSession.__table__


class DuplicateEmailError(Exception):
    """Raised when an email is already registered to another user."""

    def __init__(self, email: str):
        super().__init__(f"User with email {email!r} already exists")
        self.email = email


@dataclass(frozen=True)
class UserRecord:
    """A user row, independent of the underlying column layout."""

    id: int
    name: str
    email: str
    company: str
    password_hash: str
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_row(cls, row: RowMapping) -> "UserRecord":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            company=row["company"] or "",
            password_hash=row["password_hash"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class UserStatements:
    """Users-table statements built for one detected column layout."""

    def __init__(self, schema: UserSchema):
        self.schema = schema

        columns = [
            Column("id", Integer, primary_key=True),
            Column(schema.name_column, Text),
            Column("email", Text),
        ]
        if schema.has_company:
            columns.append(Column("company", Text))
        columns += [
            Column("password_hash", Text),
            Column("created_at", DateTime(timezone=True)),
            Column("updated_at", DateTime(timezone=True)),
        ]
        self.table = Table("users", MetaData(), *columns)
        c = self.table.c

        self.name_column = c[schema.name_column]
        company = (
            func.coalesce(c.company, "").label("company")
            if schema.has_company
            else literal("").label("company")
        )
        self.columns = [
            c.id,
            self.name_column.label("name"),
            c.email,
            company,
            c.password_hash,
            c.created_at,
            c.updated_at,
        ]

        self.select_by_email = select(*self.columns).where(c.email == bindparam("email"))
        self.select_by_id = select(*self.columns).where(c.id == bindparam("user_id"))
        self.select_by_session = (
            select(*self.columns)
            .select_from(self.table.join(sessions, sessions.c.user_id == c.id))
            .where(
                sessions.c.session_token == bindparam("token"),
                sessions.c.expires_at > bindparam("now"),
            )
        )

    def profile_values(self, name: str, email: str, company: str | None) -> dict:
        """Map profile fields onto the columns this layout actually has."""
        values = {self.schema.name_column: name, "email": email}
        if self.schema.has_company:
            values["company"] = company or ""
        return values

    def insert_user(self, name: str, email: str, company: str | None, password_hash: str):
        values = self.profile_values(name, email, company)
        values["password_hash"] = password_hash
        return insert(self.table).values(**values)

    def update_profile(
        self, user_id: int, name: str, email: str, company: str | None, now: datetime
    ):
        values = self.profile_values(name, email, company)
        values["updated_at"] = now
        return update(self.table).where(self.table.c.id == user_id).values(**values)

    def update_password(self, user_id: int, password_hash: str, now: datetime):
        return (
            update(self.table)
            .where(self.table.c.id == user_id)
            .values(password_hash=password_hash, updated_at=now)
        )


def _is_email_conflict(error: IntegrityError) -> bool:
    return "users.email" in str(error.orig)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CredentialStore:
    """Persistence for users and login sessions."""

    def __init__(
        self,
        engine: Engine,
        schema: UserSchema,
        session_ttl: timedelta = SESSION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.engine = engine
        self.schema = schema
        self.session_ttl = session_ttl
        self.users = UserStatements(schema)
        self._clock = clock

    @classmethod
    def open(
        cls,
        db_path: Path,
        session_ttl: timedelta = SESSION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> "CredentialStore":
        """Open (or create) the database at db_path.

        Raises:
            StoreInitError: if the database can't be opened, pinged or created.
        """
        engine, schema = open_database(db_path)
        return cls(engine, schema, session_ttl=session_ttl, clock=clock)

    def close(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()

    # Users

    def create_user(
        self, name: str, email: str, company: str | None, password_hash: str
    ) -> int:
        """Insert a user and return its ID.

        Raises:
            DuplicateEmailError: if the email is already registered.
        """
        stmt = self.users.insert_user(name, email, company, password_hash)
        try:
            with self.engine.begin() as conn:
                user_id = conn.execute(stmt).inserted_primary_key[0]
        except IntegrityError as e:
            if _is_email_conflict(e):
                raise DuplicateEmailError(email) from e
            raise
        logger.info(f"Created user {user_id}")
        return user_id

    def get_user_by_email(self, email: str) -> UserRecord | None:
        """Get a user by email, or None if nobody registered it."""
        with self.engine.connect() as conn:
            row = conn.execute(self.users.select_by_email, {"email": email}).mappings().first()
        return UserRecord.from_row(row) if row else None

    def get_user_by_id(self, user_id: int) -> UserRecord | None:
        """Get a user by ID."""
        with self.engine.connect() as conn:
            row = conn.execute(self.users.select_by_id, {"user_id": user_id}).mappings().first()
        return UserRecord.from_row(row) if row else None

    def update_user(self, user_id: int, name: str, email: str, company: str | None) -> None:
        """Update profile fields and bump updated_at.

        Callers are expected to check email availability first; a constraint
        violation that slips through a race still raises DuplicateEmailError.
        """
        stmt = self.users.update_profile(user_id, name, email, company, self._clock())
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except IntegrityError as e:
            if _is_email_conflict(e):
                raise DuplicateEmailError(email) from e
            raise

    def update_password(self, user_id: int, password_hash: str) -> None:
        """Replace the stored password hash and bump updated_at."""
        with self.engine.begin() as conn:
            conn.execute(self.users.update_password(user_id, password_hash, self._clock()))

    # Sessions

    def create_session(self, user_id: int) -> str:
        """Issue a new session token for user_id, valid for session_ttl."""
        token = secrets.token_urlsafe(SESSION_TOKEN_BYTES)
        now = self._clock()
        with self.engine.begin() as conn:
            conn.execute(
                insert(sessions).values(
                    user_id=user_id,
                    session_token=token,
                    expires_at=now + self.session_ttl,
                    created_at=now,
                )
            )
        return token

    def validate_session(self, token: str) -> UserRecord | None:
        """Return the session's user if the token exists and hasn't expired.

        Unknown and expired tokens are indistinguishable to the caller.
        """
        with self.engine.connect() as conn:
            row = (
                conn.execute(self.users.select_by_session, {"token": token, "now": self._clock()})
                .mappings()
                .first()
            )
        return UserRecord.from_row(row) if row else None

    def delete_session(self, token: str) -> None:
        """Remove a session. Unknown tokens are ignored."""
        with self.engine.begin() as conn:
            conn.execute(delete(sessions).where(sessions.c.session_token == token))

    def cleanup_expired_sessions(self) -> int:
        """Delete every session whose expiry has passed; return how many went."""
        with self.engine.begin() as conn:
            result = conn.execute(delete(sessions).where(sessions.c.expires_at < self._clock()))
            return result.rowcount
