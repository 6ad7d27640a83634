#!/usr/bin/env python3
"""
Seed Helpdesk Data
==================

Runs the idempotent provisioning step on its own: admin account from
ADMIN_EMAIL / ADMIN_NAME and the bundled KB articles.

Usage:
    DATABASE_URL=postgresql+asyncpg://... ADMIN_EMAIL=admin@helpdesk.local python scripts/seed.py
"""

import asyncio

from helpdesk.bootstrap import shutdown, startup
from helpdesk.config import get_settings


async def main() -> None:
    config = get_settings().model_copy(update={
        "seed_knowledge_base": True,
        "classifier_backend": "keywords",
    })

    container = await startup(config)
    try:
        articles = await container.articles.count()
        print(f"KB articles stored: {articles}")
        if config.admin_email:
            print(f"Admin provisioned: {config.admin_email}")
        else:
            print("ADMIN_EMAIL not set - admin provisioning skipped")
    finally:
        await shutdown(container)


if __name__ == "__main__":
    asyncio.run(main())
