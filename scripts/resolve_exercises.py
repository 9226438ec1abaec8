#!/usr/bin/env python3
"""
Resolve exercise names against the reference catalog.

Usage:
    python scripts/resolve_exercises.py "Barbell Bench Press" "RDL" "sqats"
    python scripts/resolve_exercises.py --file plan_exercises.txt
    python scripts/resolve_exercises.py --file plan_exercises.txt --json
    python scripts/resolve_exercises.py --init-db "Goblet Squat"
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from matching.database import SessionLocal, init_db
from matching.exercise_resolution import (
    BatchResolver,
    CatalogLoadError,
    ExerciseResolver,
    MatchResult,
    ResolutionCache,
)


def read_names(args: argparse.Namespace) -> list[str]:
    names = list(args.names)
    if args.file:
        with open(args.file, "r") as f:
            names.extend(line.strip() for line in f if line.strip())
    return names


def match_to_dict(match: Optional[MatchResult], cache: ResolutionCache, name: str) -> dict:
    image = cache.get(name)
    if match is None:
        return {"match": None, "confidence": 0.0, "image_url": None}
    return {
        "match": match.entry.name,
        "exercise_id": match.entry.id,
        "confidence": round(match.confidence, 4),
        "stage": match.match_type.value,
        "image_url": image.image_url if image else None,
        "alternatives": [
            {"match": alt.entry.name, "confidence": round(alt.confidence, 4)}
            for alt in match.alternatives
        ],
    }


def print_table(results: dict[str, Optional[MatchResult]]) -> None:
    print("=" * 78)
    print(f"{'INPUT':<28} {'MATCH':<28} {'CONF':>6}  STAGE")
    print("=" * 78)
    for name, match in results.items():
        if match is None:
            print(f"{name[:28]:<28} {'-':<28} {'':>6}  no match")
            continue
        print(
            f"{name[:28]:<28} {match.entry.name[:28]:<28} "
            f"{match.confidence:>6.2f}  {match.match_type.value}"
        )
        for alt in match.alternatives:
            print(f"{'':<28}   alt: {alt.entry.name[:23]:<23} {alt.confidence:>6.2f}")
    print("=" * 78)


async def run(names: list[str], concurrency: int, as_json: bool) -> int:
    resolver = ExerciseResolver.from_database(SessionLocal)
    batch = BatchResolver(resolver, concurrency=concurrency, fail_fast=True)
    cache = ResolutionCache()

    try:
        results = await batch.resolve_many(names, cache=cache)
    except CatalogLoadError as e:
        print(f"Could not load exercise catalog: {e}", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps({name: match_to_dict(match, cache, name) for name, match in results.items()}, indent=2))
    else:
        print_table(results)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Match free-form exercise names to catalog exercises"
    )
    parser.add_argument("names", nargs="*", help="Exercise names to resolve")
    parser.add_argument("--file", help="File with one exercise name per line")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.BATCH_CONCURRENCY,
        help="Maximum concurrent resolutions",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before resolving",
    )

    args = parser.parse_args()

    names = read_names(args)
    if not names:
        parser.error("no exercise names given")

    if args.init_db:
        init_db()

    sys.exit(asyncio.run(run(names, args.concurrency, args.json)))


if __name__ == "__main__":
    main()
