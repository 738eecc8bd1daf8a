#!/usr/bin/env python3
"""
Promote a user to operator (creating the user if needed).

Usage: create_operator.py <email> [name] [--super]

Connects with asyncpg directly so it can run before the API is deployed.
"""

import asyncio
import json
import os
import sys
import uuid

import asyncpg
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "").replace("+asyncpg", "").replace("postgresql://", "postgres://")

DEFAULT_PERMISSIONS = ["view_reports", "edit_reports", "verify_reports"]
SUPER_PERMISSIONS = [
    "view_reports",
    "edit_reports",
    "delete_reports",
    "verify_reports",
    "assign_contractors",
    "manage_users",
    "view_analytics",
    "manage_settings",
    "super_admin",
]


def log(msg):
    """Print with flush for immediate output."""
    print(msg, flush=True)


async def create_operator(email: str, name: str | None, is_super: bool) -> None:
    if not DATABASE_URL:
        log("Error: DATABASE_URL is not set")
        sys.exit(1)

    email = email.strip().lower()
    permissions = SUPER_PERMISSIONS if is_super else DEFAULT_PERMISSIONS
    role = "super_admin" if is_super else "admin"

    conn = await asyncpg.connect(DATABASE_URL)
    try:
        async with conn.transaction():
            user_id = await conn.fetchval("SELECT id FROM users WHERE email = $1", email)
            if user_id is None:
                user_id = str(uuid.uuid4())
                await conn.execute(
                    "INSERT INTO users (id, email, name, role, is_active, created_at) "
                    "VALUES ($1, $2, $3, 'admin', true, now())",
                    user_id,
                    email,
                    name or email.split("@")[0],
                )
                log(f"Created user {email} ({user_id})")
            else:
                await conn.execute("UPDATE users SET role = 'admin' WHERE id = $1", user_id)
                log(f"Promoted existing user {email} ({user_id})")

            await conn.execute(
                """
                INSERT INTO operators (user_id, permissions, role, is_active,
                                       reports_reviewed, reports_resolved)
                VALUES ($1, $2::json, $3, true, 0, 0)
                ON CONFLICT (user_id) DO UPDATE SET
                    permissions = EXCLUDED.permissions,
                    role = EXCLUDED.role,
                    is_active = true
                """,
                user_id,
                json.dumps(permissions),
                role,
            )
    finally:
        await conn.close()

    log(f"Operator ready: {email} role={role} permissions={', '.join(permissions)}")


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--super"]
    if not args:
        log("Usage: create_operator.py <email> [name] [--super]")
        sys.exit(1)

    asyncio.run(create_operator(args[0], args[1] if len(args) > 1 else None, "--super" in sys.argv))
