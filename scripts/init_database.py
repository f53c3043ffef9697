#!/usr/bin/env python3
"""
Database Initialization Script

Creates the PocketLegal tables and seeds the configured demo user.
"""

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from config.database import SqlDocumentStore
from config.settings import Settings
from encounters.models import UserAccount


def main():
    """Initialize the database and make sure the demo account exists."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    settings = Settings.from_env()
    print("🚀 Initializing PocketLegal Database...")
    print("=" * 50)

    try:
        store = SqlDocumentStore(settings.database_url)
        store.init_schema()

        if store.get_user(settings.demo_user_id) is None:
            store.upsert_user(UserAccount(user_id=settings.demo_user_id, email=settings.demo_email))
            print(f"✅ Created demo user {settings.demo_email}")
        else:
            print(f"✅ Demo user {settings.demo_email} already exists")

        print("\n📊 Database Structure:")
        print("   - users: Accounts and subscription state")
        print("   - encounters: Saved encounters and recording references")

    except Exception as e:
        print(f"❌ Error initializing database: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
