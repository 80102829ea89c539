"""PostgreSQL-backed account directory."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterable, Optional

import psycopg2
import psycopg2.errors
import psycopg2.extras
from passlib.hash import bcrypt
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..entitlements.models import PlanTier
from .directory import AccountConflictError, DirectoryWriteError
from .models import Account, AccountCreate, AccountPatch, AccountRole

try:  # pragma: no cover - resolve connection helper when imported from FastAPI app
    from backend.app_context import get_conn
except ModuleNotFoundError as exc:  # pragma: no cover
    if exc.name != "backend":
        raise
    from ...app_context import get_conn  # type: ignore[no-redef]


_PATCH_COLUMNS = {
    "is_active": "is_active",
    "plan_tier": "plan_tier",
    "plan_expires_at": "plan_expires_at",
}


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def _row_to_account(row: Dict[str, Any]) -> Account:
    plan_tier = row.get("plan_tier")
    return Account(
        id=str(row["id"]),
        email=row["email"],
        display_name=row.get("display_name") or "",
        phone=row.get("phone") or "",
        tax_id=row.get("tax_id") or "",
        birth_date=row.get("birth_date") or "",
        role=AccountRole(row.get("role") or AccountRole.USER.value),
        is_active=bool(row.get("is_active")),
        plan_tier=PlanTier(plan_tier) if plan_tier else None,
        plan_expires_at=row.get("plan_expires_at"),
        must_change_password=bool(row.get("must_change_password")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresAccountDirectory:
    """Account directory persisting records in the ``accounts`` table.

    Email uniqueness is enforced by a unique index on ``lower(email)``; a
    violation surfaces as :class:`AccountConflictError`.
    """

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()

    def find_by_email(self, email: str) -> Optional[Account]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM accounts
                WHERE lower(email) = lower(%s)
                LIMIT 1
                """,
                (email,),
            )
            row = cursor.fetchone()
            return _row_to_account(row) if row else None

    def create(self, payload: AccountCreate) -> Account:
        try:
            with self._cursor() as cursor:
                cursor.execute(
                    """
                    INSERT INTO accounts (
                        email,
                        password_hash,
                        display_name,
                        phone,
                        tax_id,
                        birth_date,
                        role,
                        is_active,
                        plan_tier,
                        plan_expires_at,
                        must_change_password
                    )
                    VALUES (%(email)s, %(password_hash)s, %(display_name)s, %(phone)s,
                            %(tax_id)s, %(birth_date)s, %(role)s, %(is_active)s,
                            %(plan_tier)s, %(plan_expires_at)s, %(must_change_password)s)
                    RETURNING *
                    """,
                    {
                        "email": payload.email,
                        "password_hash": bcrypt.hash(payload.password),
                        "display_name": payload.display_name,
                        "phone": payload.phone,
                        "tax_id": payload.tax_id,
                        "birth_date": payload.birth_date,
                        "role": payload.role.value,
                        "is_active": payload.is_active,
                        "plan_tier": payload.plan_tier.value,
                        "plan_expires_at": payload.plan_expires_at,
                        "must_change_password": payload.must_change_password,
                    },
                )
                row = cursor.fetchone()
        except psycopg2.errors.UniqueViolation as exc:
            raise AccountConflictError(payload.email) from exc
        except psycopg2.Error as exc:
            raise DirectoryWriteError(f"Failed to create account: {exc}") from exc

        if not row:
            raise DirectoryWriteError("Failed to persist account")
        return _row_to_account(row)

    def update(self, account_id: str, patch: AccountPatch) -> Account:
        changes = patch.changes()
        params: Dict[str, Any] = {"account_id": account_id}
        assignments = []
        for field_name, value in changes.items():
            column = _PATCH_COLUMNS[field_name]
            assignments.append(f"{column} = %({field_name})s")
            params[field_name] = value.value if isinstance(value, PlanTier) else value
        assignments.append("updated_at = NOW()")

        try:
            with self._cursor() as cursor:
                cursor.execute(
                    f"""
                    UPDATE accounts
                    SET {", ".join(assignments)}
                    WHERE id = %(account_id)s
                    RETURNING *
                    """,
                    params,
                )
                row = cursor.fetchone()
        except psycopg2.Error as exc:
            raise DirectoryWriteError(f"Failed to update account {account_id}: {exc}") from exc

        if not row:
            raise DirectoryWriteError(f"Account {account_id} not found")
        return _row_to_account(row)


__all__ = ["PostgresAccountDirectory", "managed_connection"]
