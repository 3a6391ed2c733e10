"""
Report identities without a role assignment.

Provisioning deletes the identity it created when the role or relationship
write fails. If that cleanup fails too, the identity is left without a role
and a retry with the same email is rejected as a duplicate. This script lists
such identities; ``--delete`` removes the ones typed as patients.
"""

import argparse
import asyncio

from elderwatch.database import AsyncSessionLocal, engine
from elderwatch.services.identity_service import IdentityService


async def main(delete: bool) -> None:
    """List, and optionally delete, identities lacking a role."""
    async with AsyncSessionLocal() as db:
        orphans = await IdentityService.list_identities_without_role(db)

        if not orphans:
            print("✓ Every identity has a role assignment")
        for identity in orphans:
            print(
                f"{identity['id']}  {identity['email']}  "
                f"user_type={identity['user_type']}  created_at={identity['created_at']}"
            )
            if delete and identity["user_type"] == "patient":
                await IdentityService.delete_identity(db, identity["id"])
                print("  ✗ deleted")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete orphaned identities created by provisioning",
    )
    args = parser.parse_args()
    asyncio.run(main(args.delete))
