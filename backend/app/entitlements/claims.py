"""PostgreSQL-backed storage for premium token claims."""
from __future__ import annotations

from typing import Optional

import psycopg2.extras
from psycopg2.extensions import connection as PgConnection

from ..db import dict_cursor
from .models import PremiumClaims


class PostgresClaimsStore:
    """Persists the claims that are embedded into a user's next access token."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def set_claims(self, user_id: str, claims: PremiumClaims) -> None:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                INSERT INTO user_auth_claims (user_id, claims, updated_at)
                VALUES (%(user_id)s, %(claims)s, NOW())
                ON CONFLICT (user_id) DO UPDATE SET
                    claims = user_auth_claims.claims || EXCLUDED.claims,
                    updated_at = NOW()
                """,
                {"user_id": user_id, "claims": psycopg2.extras.Json(claims.to_claims())},
            )

    def get_claims(self, user_id: str) -> Optional[PremiumClaims]:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT claims
                FROM user_auth_claims
                WHERE user_id = %s
                LIMIT 1
                """,
                (user_id,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return PremiumClaims.model_validate(row.get("claims") or {})


__all__ = ["PostgresClaimsStore"]
