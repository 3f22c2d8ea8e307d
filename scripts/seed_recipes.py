#!/usr/bin/env python3
"""Seed the SQLite recipe store from the bundled fallback corpus.

Every corpus record becomes a post, a recipe attached to it and, optionally,
one upvote per recorded vote. Regions from the taxonomy become approaches so
the structured search can filter by approach slug.

Usage::

    python scripts/seed_recipes.py [--db-path PATH] [--corpus FILE] [--no-votes]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Mapping

from foodglam.app.services.fallback_corpus import FallbackCorpus
from foodglam.app.services.taxonomy import Taxonomy
from foodglam.persistence.local_db import LocalDB
from foodglam.settings import settings


logger = logging.getLogger(__name__)


def _recipe_from_record(record: Mapping[str, Any]) -> dict[str, Any]:
    ingredients = list(
        dict.fromkeys(
            [*(record.get("foodTags") or []), *(record.get("ingredients") or [])]
        )
    )
    return {
        "id": record["id"],
        "post_id": record["id"],
        "title": record.get("title"),
        "summary": record.get("summary"),
        "hero_image_url": record.get("hero_image_url"),
        "recipe_json": {
            "name": record.get("title"),
            "recipeIngredient": ingredients,
            "recipeYield": record.get("servings"),
            "nutrition": record.get("nutrition_per_serving") or {},
        },
    }


def _post_from_record(
    record: Mapping[str, Any], approach_ids: set[str]
) -> dict[str, Any]:
    region = record.get("region")
    return {
        "id": record["id"],
        "slug": record.get("slug"),
        "title": record.get("title"),
        "summary": record.get("summary"),
        "hero_image_url": record.get("hero_image_url"),
        "type": "recipe",
        "approach_id": region if region in approach_ids else None,
        "is_tested": record.get("is_tested"),
        "quality_score": record.get("quality_score"),
        "diet_tags": record.get("dietTags") or [],
        "food_tags": record.get("foodTags") or [],
        "created_by": record.get("created_by") or {},
    }


async def _run(args: argparse.Namespace) -> None:
    corpus = FallbackCorpus.load(args.corpus or settings.DATA.fallback_corpus)
    taxonomy = Taxonomy.load(args.taxonomy or settings.DATA.taxonomy)

    used_regions = {str(record.get("region")) for record in corpus.records}
    approaches = [
        {
            "id": region.id,
            "name": region.label,
            "slug": region.id,
            "description": region.description,
        }
        for region in taxonomy.regions.values()
        if region.id in used_regions
    ]
    approach_ids = {approach["id"] for approach in approaches}
    posts = [_post_from_record(record, approach_ids) for record in corpus.records]
    recipes = [_recipe_from_record(record) for record in corpus.records]

    async with LocalDB(args.db_path) as db:
        await db.seed(recipes, posts=posts, approaches=approaches)
        if args.votes:
            cast = 0
            for record in corpus.records:
                for idx in range(int(record.get("votes") or 0)):
                    await db.posts.record_vote(record["id"], f"seed-user-{idx}", 1)
                    cast += 1
            logger.info("Recorded %d seed votes", cast)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--db-path",
        help="Path to the SQLite database (defaults to DATABASE.path)",
    )
    parser.add_argument("--corpus", help="JSON corpus file to load")
    parser.add_argument("--taxonomy", help="Taxonomy JSON file to load")
    parser.add_argument(
        "--no-votes",
        dest="votes",
        action="store_false",
        help="Skip creating one upvote per recorded vote",
    )
    args = parser.parse_args()
    logging.basicConfig(
        level=str(settings.LOG_LEVEL).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
