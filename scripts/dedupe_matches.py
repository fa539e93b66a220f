"""Collapse duplicate matches left behind by non-canonical legacy rows.

Usage: python -m scripts.dedupe_matches [--dry-run]
"""
import argparse
import asyncio
import sys
sys.path.insert(0, ".")

from unimatch.database import async_session_factory, engine
from unimatch.services.match_service import MatchService


async def run(dry_run: bool) -> dict[str, int]:
    async with async_session_factory() as session:
        report = await MatchService().deduplicate_matches(session)
        if dry_run:
            await session.rollback()
        else:
            await session.commit()
    await engine.dispose()
    return report


def main():
    parser = argparse.ArgumentParser(description="Deduplicate UniMatch matches")
    parser.add_argument("--dry-run", action="store_true", help="Report without committing")
    args = parser.parse_args()

    report = asyncio.run(run(args.dry_run))
    mode = "DRY RUN" if args.dry_run else "APPLIED"
    print(f"[{mode}] total={report['total_matches']} "
          f"removed={report['duplicates_removed']} "
          f"unique_pairs={report['unique_pairs']} "
          f"reordered={report['reordered']}")


if __name__ == "__main__":
    main()
