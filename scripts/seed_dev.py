#!/usr/bin/env python
"""Seed the development message store with a small branching conversation.

Seeds a root message with two versions, replies under both versions and a
nested reply, so every rendering path of the board has something to show.

Constraints:
- Refuses to run in staging or prod (CONVERSE_ENV check)
- Writes through the mutation engine, so the versioning rules apply
- Never runs automatically (manual invocation only)

Usage:
    cd python && MESSAGE_STORE=sql DATABASE_URL=... uv run python ../scripts/seed_dev.py
"""

import asyncio
import os
import sys


async def seed() -> list[int]:
    from converse.config import get_settings
    from converse.services.mutations import MutationEngine
    from converse.store import get_message_store

    store = get_message_store(get_settings())
    engine = MutationEngine(store)
    try:
        hello = await engine.create_root("Hello, board")
        hello_v2 = await engine.edit(hello, "Hello, board (edited)")
        first_reply = await engine.branch_reply(hello, "Replying to the first version")
        second_reply = await engine.branch_reply(hello_v2, "Replying to the edit")
        nested = await engine.branch_reply(second_reply, "A reply to a reply")
        other = await engine.create_root("A separate conversation")
    finally:
        await store.aclose()

    return [m.id for m in (hello, hello_v2, first_reply, second_reply, nested, other)]


def main():
    # 1. Environment check (hard fail in staging/prod)
    converse_env = os.getenv("CONVERSE_ENV", "local")
    if converse_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in CONVERSE_ENV={converse_env}")
        sys.exit(1)

    # 2. The in-memory store would be thrown away on exit
    if os.getenv("MESSAGE_STORE", "memory") == "memory":
        print("ERROR: set MESSAGE_STORE=sql or MESSAGE_STORE=supabase to seed a persistent store")
        sys.exit(1)

    ids = asyncio.run(seed())
    print(f"Seeded {len(ids)} messages: {ids}")


if __name__ == "__main__":
    main()
