#!/usr/bin/env python
"""Create the vector collections, or drop and recreate them.

Usage:
    python -m scripts.init_collections
    python -m scripts.init_collections --force-reset --yes

Resetting is destructive and must not run while the forum is indexing.
"""

import argparse
import asyncio
import sys

from forum_vectors.config import get_settings
from forum_vectors.exceptions import ForumVectorError
from forum_vectors.logging_config import get_logger, setup_logging
from forum_vectors.service import build_semantic_service

logger = get_logger(__name__)


async def init_collections(force_reset: bool = False) -> bool:
    """Ensure or reset every collection.

    Args:
        force_reset: Drop and recreate instead of creating missing ones.

    Returns:
        True on success, False otherwise.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    service = build_semantic_service(settings)

    try:
        if not await service.is_ready():
            logger.error(f"Vector store at {settings.qdrant.url} is not ready")
            return False

        names = [spec.name for spec in service.specs]
        if force_reset:
            await service.force_reset()
            print(f"Reset collections: {', '.join(names)}")
        else:
            created = await service.ensure_collections()
            existing = [n for n in names if n not in created]
            print(f"Created: {', '.join(created) or '-'}")
            print(f"Already present: {', '.join(existing) or '-'}")
        return True

    except ForumVectorError as e:
        logger.error(f"Collection setup failed: {e.message}", extra=e.details)
        return False
    finally:
        await service.close()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Create or reset the vector collections",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--force-reset",
        action="store_true",
        help="Drop and recreate every collection (destructive)",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before a reset",
    )

    args = parser.parse_args()

    if args.force_reset and not args.yes:
        answer = input("This deletes every indexed vector. Continue? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            sys.exit(1)

    ok = asyncio.run(init_collections(force_reset=args.force_reset))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
