"""
Initialize database - create all tables directly.

Usage:
    python init_db.py            # create missing tables
    python init_db.py --reset    # drop everything first
"""
import argparse
from pathlib import Path

# Load .env before the engine reads DATABASE_URL
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent / ".env")

from inventory_hub.database.connection import drop_db, init_db


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the InventoryHub schema")
    parser.add_argument("--reset", action="store_true", help="drop all tables before creating them")
    args = parser.parse_args()

    if args.reset:
        drop_db()
    print("Creating database tables...")
    init_db()
    print("✅ Database initialized successfully!")
