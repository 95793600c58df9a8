"""
Recompute the bounding box columns of every clue set from its center and radius.
Run after changing the bounding box formula or after editing clue sets by hand.
"""
import asyncio
import os
import sys

from sqlalchemy import select

# Add app to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from cluehunt.database import async_session
from cluehunt.models.clue_set import ClueSet
from cluehunt.utils.geo import bounding_box


async def recalculate_all_bounds():
    async with async_session() as db:
        result = await db.execute(select(ClueSet))
        clue_sets = result.scalars().all()
        print(f"Found {len(clue_sets)} clue sets.")

        updated = 0
        for clue_set in clue_sets:
            bbox = bounding_box(clue_set.center, clue_set.radius_km)
            current = (
                clue_set.min_latitude,
                clue_set.max_latitude,
                clue_set.min_longitude,
                clue_set.max_longitude,
            )
            if current == tuple(bbox):
                continue

            print(f"  [+] {clue_set.name} ({clue_set.id}): {current} -> {tuple(bbox)}")
            clue_set.min_latitude = bbox.min_lat
            clue_set.max_latitude = bbox.max_lat
            clue_set.min_longitude = bbox.min_lng
            clue_set.max_longitude = bbox.max_lng
            updated += 1

        await db.commit()
        print(f"Updated {updated} clue sets.")


if __name__ == "__main__":
    asyncio.run(recalculate_all_bounds())
