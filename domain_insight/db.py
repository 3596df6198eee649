import json
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import asyncpg

from domain_insight.config import get_settings

pool = None

USER_COLUMNS = "id, api_key, email, plan, searches_used, search_limit, created_at"


class UserExists(Exception):
    pass


class DomainAlreadySaved(Exception):
    pass


@dataclass
class User:
    id: int
    email: str
    plan: str
    searches_used: int
    search_limit: int
    created_at: datetime
    api_key: Optional[str] = None

    @property
    def remaining_searches(self) -> int:
        return max(self.search_limit - self.searches_used, 0)


def _user(row) -> Optional[User]:
    return User(**dict(row)) if row else None


def _search(row) -> dict:
    out = dict(row)
    if isinstance(out.get("search_data"), str):
        out["search_data"] = json.loads(out["search_data"])
    return out


async def get_pool():
    global pool
    if pool is None:
        pool = await asyncpg.create_pool(get_settings().db_dsn, min_size=2, max_size=10)
    return pool


async def close_pool():
    global pool
    if pool is not None:
        await pool.close()
        pool = None


class UserStore:
    """Everything the API needs from PostgreSQL: users, their usage counter, search history and saved domains"""

    def __init__(self, pool):
        self.pool = pool

    async def get_user_by_api_key(self, api_key: str) -> Optional[User]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT {USER_COLUMNS} FROM users WHERE api_key = $1", api_key)
        return _user(row)

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT {USER_COLUMNS} FROM users WHERE id = $1", user_id)
        return _user(row)

    async def create_user(self, email: str, plan: str, search_limit: int) -> User:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (email, plan, searches_used, search_limit)
                    VALUES ($1, $2, 0, $3)
                    RETURNING {USER_COLUMNS}
                    """,
                    email, plan, search_limit
                )
        except asyncpg.UniqueViolationError:
            raise UserExists(email)
        return _user(row)

    async def increment_searches(self, user_id: int, count: int = 1) -> Optional[int]:
        """
        Atomically consume `count` searches. Returns the new counter, or None
        when that would exceed the user's limit (nothing is consumed then).
        """
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                """
                UPDATE users SET searches_used = searches_used + $2
                WHERE id = $1 AND searches_used + $2 <= search_limit
                RETURNING searches_used
                """,
                user_id, count
            )

    async def set_plan(self, user_id: int, plan: str, search_limit: int,
                       stripe_customer_id: Optional[str] = None) -> Optional[User]:
        """Change plan and limit; the usage counter restarts at zero"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET plan = $2, search_limit = $3, searches_used = 0,
                    stripe_customer_id = COALESCE($4, stripe_customer_id)
                WHERE id = $1
                RETURNING {USER_COLUMNS}
                """,
                user_id, plan, search_limit, stripe_customer_id
            )
        return _user(row)

    async def record_search(self, user_id: int, domain: str, data: dict) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                "INSERT INTO domain_searches (user_id, domain, search_data) VALUES ($1, $2, $3::jsonb)",
                user_id, domain, json.dumps(data)
            )

    async def list_searches(self, user_id: int, limit: int = 50) -> List[dict]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, domain, search_data, created_at
                FROM domain_searches
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id, limit
            )
        return [_search(r) for r in rows]

    async def domain_snapshots(self, domain: str, since: datetime, limit: int = 50) -> List[dict]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, domain, search_data, created_at
                FROM domain_searches
                WHERE domain = $1 AND created_at >= $2
                ORDER BY created_at DESC
                LIMIT $3
                """,
                domain, since, limit
            )
        return [_search(r) for r in rows]

    async def list_saved(self, user_id: int, limit: int) -> List[dict]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, domain, notes, created_at
                FROM saved_domains
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id, limit
            )
        return [dict(r) for r in rows]

    async def count_saved(self, user_id: int) -> int:
        async with self.pool.acquire() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM saved_domains WHERE user_id = $1", user_id)

    async def save_domain(self, user_id: int, domain: str, notes: str = "") -> dict:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO saved_domains (user_id, domain, notes)
                    VALUES ($1, $2, $3)
                    RETURNING id, domain, notes, created_at
                    """,
                    user_id, domain, notes
                )
        except asyncpg.UniqueViolationError:
            raise DomainAlreadySaved(domain)
        return dict(row)

    async def delete_saved(self, user_id: int, domain: str) -> bool:
        async with self.pool.acquire() as conn:
            deleted = await conn.fetchval(
                "DELETE FROM saved_domains WHERE user_id = $1 AND domain = $2 RETURNING id",
                user_id, domain
            )
        return deleted is not None


async def get_store() -> UserStore:
    return UserStore(await get_pool())
