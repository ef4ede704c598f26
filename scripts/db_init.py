#!/usr/bin/env python3
"""
Database initialization script
"""
import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
current_dir = Path(__file__).parent
root_dir = current_dir.parent
sys.path.insert(0, str(root_dir))

DEMO_USERS = [
    {"username": "ada", "email": "ada@example.com", "name": "Ada Lovelace", "bio": "Writes about engines"},
    {"username": "mary", "email": "mary@example.com", "name": "Mary Shelley", "bio": "Gothic fiction"},
    {"username": "bram", "email": "bram@example.com", "name": "Bram Stoker", "bio": "Night owl"},
]

def open_database():
    from talesy.db.session import Database
    return Database.from_settings()

async def init_database() -> None:
    """Initialize database with tables"""
    from talesy.config import settings

    print(f"🚀 Initializing database: {settings.database_url}")

    database = open_database()
    try:
        await database.create_all()
        print("✅ Database initialized successfully")
    except Exception as e:
        print(f"❌ Error initializing database: {e}")
        sys.exit(1)
    finally:
        await database.dispose()

async def create_initial_data() -> None:
    """Create demo users for development"""
    from sqlalchemy import select
    from talesy.models.user import User

    print("👤 Creating initial data...")

    database = open_database()
    try:
        async with database.session_factory() as db:
            existing = set(
                (await db.execute(
                    select(User.username).where(User.username.in_([u["username"] for u in DEMO_USERS]))
                )).scalars()
            )
            new_users = [User(**data) for data in DEMO_USERS if data["username"] not in existing]
            db.add_all(new_users)
            await db.commit()

        if new_users:
            print(f"✅ Created {len(new_users)} demo users")
    except Exception as e:
        print(f"⚠️  Error creating initial data: {e}")
    finally:
        await database.dispose()

async def check_database_connection() -> bool:
    """Check if database is accessible"""
    database = open_database()
    try:
        ok = await database.ping()
    finally:
        await database.dispose()

    print("✅ Database connection successful" if ok else "❌ Database connection failed")
    return ok

async def drop_database(confirm: bool = False) -> None:
    """Drop all database tables"""
    if not confirm:
        print("⚠️  WARNING: This will drop ALL tables and data!")
        print("   Use --confirm flag to proceed")
        return

    import talesy.models  # noqa: F401

    database = open_database()
    try:
        await database.drop_all()
        print("✅ Database dropped successfully")
    except Exception as e:
        print(f"❌ Error dropping database: {e}")
    finally:
        await database.dispose()

def main() -> None:
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Database Initialization")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init", help="Initialize database")
    subparsers.add_parser("check", help="Check database connection")

    drop_parser = subparsers.add_parser("drop", help="Drop database (DANGEROUS!)")
    drop_parser.add_argument("--confirm", action="store_true", help="Confirm drop")

    subparsers.add_parser("seed", help="Seed demo users")

    reset_parser = subparsers.add_parser("reset", help="Drop and reinitialize")
    reset_parser.add_argument("--confirm", action="store_true", help="Confirm reset")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "init":
            asyncio.run(init_database())

        elif args.command == "check":
            success = asyncio.run(check_database_connection())
            sys.exit(0 if success else 1)

        elif args.command == "drop":
            asyncio.run(drop_database(args.confirm))

        elif args.command == "seed":
            asyncio.run(create_initial_data())

        elif args.command == "reset":
            if not args.confirm:
                print("⚠️  WARNING: This will drop ALL tables and data!")
                print("   Use --confirm flag to proceed")
                return

            asyncio.run(drop_database(True))
            asyncio.run(init_database())

    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user")
        sys.exit(1)

if __name__ == "__main__":
    main()
