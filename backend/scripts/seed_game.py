"""
Seed a game with an admin account and optional play-area bounds.

Usage:
    python scripts/seed_game.py "Chicago Hunt" --label Chicago \
        --bounds 41.64 42.02 -87.94 -87.52 --admin admin
"""
import argparse
import asyncio
import os
import sys

from sqlalchemy import select

# Add parent directory to path to import app modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cluehunt.auth.jwt import create_access_token
from cluehunt.database import async_session
from cluehunt.models import Game, User


async def seed_game(title: str, label: str | None, bounds: list[float] | None, admin: str):
    async with async_session() as db:
        result = await db.execute(select(User).where(User.username == admin))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(username=admin, role="admin", is_active=True)
            db.add(user)
            print(f"Created admin user '{admin}'")
        else:
            print(f"Using existing user '{admin}' ({user.role})")

        result = await db.execute(select(Game).where(Game.title == title))
        game = result.scalar_one_or_none()
        if game is None:
            game = Game(title=title, region_label=label)
            db.add(game)
            print(f"Created game '{title}'")
        else:
            print(f"Game '{title}' already exists, updating")
            game.region_label = label or game.region_label

        if bounds:
            min_lat, max_lat, min_lng, max_lng = bounds
            if min_lat > max_lat or min_lng > max_lng:
                raise ValueError("Bounds must be given as MIN_LAT MAX_LAT MIN_LNG MAX_LNG")
            game.min_latitude, game.max_latitude = min_lat, max_lat
            game.min_longitude, game.max_longitude = min_lng, max_lng

        await db.commit()
        print(f"Game id: {game.id}")
        print(f"Admin token: {create_access_token(str(user.id), user.role)}")


def main():
    parser = argparse.ArgumentParser(description="Seed a scavenger hunt game")
    parser.add_argument("title")
    parser.add_argument("--label", default=None, help="Region label shown to players")
    parser.add_argument(
        "--bounds", nargs=4, type=float, default=None,
        metavar=("MIN_LAT", "MAX_LAT", "MIN_LNG", "MAX_LNG"),
    )
    parser.add_argument("--admin", default="admin", help="Admin username")
    args = parser.parse_args()

    asyncio.run(seed_game(args.title, args.label, args.bounds, args.admin))


if __name__ == "__main__":
    main()
