"""Database repository for account credentials."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Mapping

import psycopg
from psycopg import sql
from psycopg.errors import UniqueViolation
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account
from .domain.contracts import (
    CredentialStoreError,
    DuplicateAccountError,
    NewAccountInput,
    TokenField,
    TokenGuard,
)

_COLUMNS = (
    "account_id",
    "email",
    "password_hash",
    "created_at",
    "is_active",
    "role_id",
    "activation_token",
    "activation_token_expires_at",
    "reset_token",
    "reset_token_expires_at",
    "refresh_token",
    "refresh_token_expires_at",
)

# account_id and created_at are immutable once written.
UPDATABLE_COLUMNS = frozenset(_COLUMNS) - {"account_id", "created_at"}

_SELECT = sql.SQL("SELECT {columns} FROM accounts").format(
    columns=sql.SQL(", ").join(sql.Identifier(column) for column in _COLUMNS)
)


class AccountRepository:
    """Postgres-backed credential store.

    Every method runs in its own pooled connection and commits before
    returning; nothing is cached between calls.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def find_by_email(self, email: str) -> Account | None:
        """Return the account registered under ``email`` ignoring case."""
        return self._fetch_one(
            sql.SQL("{select} WHERE lower(email) = lower(%s)").format(select=_SELECT),
            (email,),
        )

    def find_by_id(self, account_id: str) -> Account | None:
        return self._fetch_one(
            sql.SQL("{select} WHERE account_id = %s").format(select=_SELECT),
            (account_id,),
        )

    def find_by_activation_token(self, token: str, now: datetime) -> Account | None:
        return self._find_by_token(TokenField.activation, token, now)

    def find_by_reset_token(self, token: str, now: datetime) -> Account | None:
        return self._find_by_token(TokenField.reset, token, now)

    def find_by_refresh_token(self, token: str, now: datetime) -> Account | None:
        return self._find_by_token(TokenField.refresh, token, now)

    def update_fields(
        self,
        account_id: str,
        fields: Mapping[str, Any],
        *,
        guard: TokenGuard | None = None,
    ) -> bool:
        """Update ``fields`` on one account and report whether a row matched.

        With a ``guard`` the statement also requires the guarded token to
        match and be unexpired, which makes check-and-clear a single atomic
        statement; the affected row count is the result.
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"cannot update columns: {sorted(unknown)}")
        if not fields:
            raise ValueError("no fields to update")

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in fields
        )
        params: list[Any] = [*fields.values(), datetime.now(timezone.utc), account_id]
        query = sql.SQL("UPDATE accounts SET {assignments}, updated_at = %s WHERE account_id = %s").format(
            assignments=assignments
        )
        if guard is not None:
            query = sql.SQL("{query} AND {token} = %s AND {expires} > %s").format(
                query=query,
                token=sql.Identifier(guard.field.value),
                expires=sql.Identifier(guard.field.expires_column),
            )
            params.extend([guard.token, guard.now])

        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    updated = cur.rowcount
                conn.commit()
        except psycopg.Error as exc:
            raise CredentialStoreError(f"update of account {account_id} failed") from exc
        return updated > 0

    def create_account(self, payload: NewAccountInput) -> Account:
        """Insert an inactive account; raise ``DuplicateAccountError`` if the email is taken."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        sql.SQL(
                            """
                            INSERT INTO accounts (
                                account_id, email, password_hash, is_active, role_id,
                                activation_token, activation_token_expires_at, created_at, updated_at
                            )
                            VALUES (%s, %s, %s, FALSE, %s, %s, %s, %s, %s)
                            RETURNING {columns}
                            """
                        ).format(columns=sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS)),
                        (
                            account_id,
                            payload.email,
                            payload.password_hash,
                            payload.role_id,
                            payload.activation_token,
                            payload.activation_token_expires_at,
                            now,
                            now,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except UniqueViolation as exc:
            raise DuplicateAccountError(payload.email) from exc
        except psycopg.Error as exc:
            raise CredentialStoreError("account insert failed") from exc
        return self._map_record(row)

    def _find_by_token(self, field: TokenField, token: str, now: datetime) -> Account | None:
        query = sql.SQL("{select} WHERE {token} = %s AND {expires} > %s").format(
            select=_SELECT,
            token=sql.Identifier(field.value),
            expires=sql.Identifier(field.expires_column),
        )
        return self._fetch_one(query, (token, now))

    def _fetch_one(self, query: sql.Composable, params: tuple[Any, ...]) -> Account | None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise CredentialStoreError("account lookup failed") from exc
        if not row:
            return None
        return self._map_record(row)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(**dict(zip(_COLUMNS, row)))
