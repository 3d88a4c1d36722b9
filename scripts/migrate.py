"""Run, inspect or create database migrations."""

import sys

from alembic import command
from alembic.config import Config

USAGE = "Usage: python scripts/migrate.py [current | downgrade <revision> | create <message>]"


def _config() -> Config:
    return Config("alembic.ini")


def run_migrations() -> None:
    """Upgrade the schema to the latest revision."""
    try:
        print("Running database migrations...")
        command.upgrade(_config(), "head")
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def show_current() -> None:
    """Print the revision the database is at."""
    command.current(_config(), verbose=True)


def downgrade(revision: str) -> None:
    """Roll the schema back to a revision."""
    try:
        print(f"Downgrading database to {revision}...")
        command.downgrade(_config(), revision)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a migration from the table metadata."""
    try:
        print(f"Creating migration: {message}")
        command.revision(_config(), message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        run_migrations()
    elif args[0] == "current":
        show_current()
    elif args[0] == "downgrade" and len(args) == 2:
        downgrade(args[1])
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    else:
        print(USAGE)
