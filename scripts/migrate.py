"""Script to run database migrations."""

import argparse
import sys

from alembic import command
from alembic.config import Config


def main() -> None:
    """Apply, roll back or create Alembic migrations."""
    parser = argparse.ArgumentParser(description="Elder Watch database migrations")
    sub = parser.add_subparsers(dest="action")
    sub.add_parser("upgrade", help="Upgrade to the latest revision (default)")
    down = sub.add_parser("downgrade", help="Step back one revision or to a target")
    down.add_argument("target", nargs="?", default="-1")
    create = sub.add_parser("create", help="Autogenerate a new revision")
    create.add_argument("message", nargs="+")
    args = parser.parse_args()

    alembic_cfg = Config("alembic.ini")

    try:
        if args.action == "create":
            message = " ".join(args.message)
            print(f"Creating migration: {message}")
            command.revision(alembic_cfg, message=message, autogenerate=True)
        elif args.action == "downgrade":
            print(f"Downgrading database to {args.target}...")
            command.downgrade(alembic_cfg, args.target)
        else:
            print("Running database migrations...")
            command.upgrade(alembic_cfg, "head")
        print("✓ Done")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
