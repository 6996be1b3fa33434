#!/usr/bin/env python3
"""
Issue an API key for a user.

The raw key is printed once; only its SHA-256 hash is stored. Requests
sent with `Authorization: Bearer <key>` act as the given user and see
that user's knowledge documents.

Usage:
    uv run python scripts/create_api_key.py --user-id <uuid> --name dashboard
    uv run python scripts/create_api_key.py --user-id <uuid> --name ci --expires-in-days 30
"""

import argparse
import asyncio
from datetime import UTC, datetime, timedelta

from app.db.engine import async_engine, async_session_factory, create_tables
from app.db.models import ApiKey
from app.services.auth import generate_api_key


async def create_key(
    user_id: str,
    name: str,
    expires_in_days: int | None,
) -> tuple[str, ApiKey]:
    raw_key, key_prefix, key_hash = generate_api_key()
    expires_at = (
        datetime.now(UTC) + timedelta(days=expires_in_days)
        if expires_in_days else None
    )

    async with async_session_factory() as session:
        api_key = ApiKey(
            name=name,
            user_id=user_id,
            key_prefix=key_prefix,
            key_hash=key_hash,
            is_active=True,
            expires_at=expires_at,
        )
        session.add(api_key)
        await session.commit()
        await session.refresh(api_key)

    return raw_key, api_key


async def main(args: argparse.Namespace) -> None:
    if args.create_tables:
        await create_tables()
    try:
        raw_key, api_key = await create_key(
            args.user_id, args.name, args.expires_in_days,
        )
    finally:
        await async_engine.dispose()

    print(f"Created API key id={api_key.id} name='{api_key.name}' user={api_key.user_id}")
    if api_key.expires_at:
        print(f"Expires: {api_key.expires_at.isoformat()}")
    print(f"Key (shown once): {raw_key}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--user-id", required=True, help="Identity the key acts as")
    parser.add_argument("--name", required=True, help="Label for the key")
    parser.add_argument("--expires-in-days", type=int, default=None)
    parser.add_argument(
        "--create-tables", action="store_true",
        help="Create missing tables before inserting",
    )
    asyncio.run(main(parser.parse_args()))
