"""
Drag Race ruleset and season catalog.

Point values, slot multipliers and the queen roster for each supported
season. Picks copy their multiplier from SLOT_MULTIPLIERS at draft time,
so changing the table here never rewrites existing entries.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dragrace_fantasy.models.models import Queen


# Per-queen points for a regular week
DRAG_RACE_POINTS = {
    "survived": 1,
    "mini_win": 15,
    "main_win": 25,
    "lipsync_win": 10,
}

# Finale placement tiers. A queen collects every tier she reached.
FINALE_POINTS = {
    "top4": 15,
    "top2": 25,
    "winner": 50,
}

SLOT_MULTIPLIERS = {
    1: Decimal("2.5"),
    2: Decimal("2.0"),
    3: Decimal("1.5"),
    4: Decimal("1.0"),
}

PICKS_PER_ENTRY = len(SLOT_MULTIPLIERS)
FINALE_PLACES = 4


def finale_placement_points(place: int | None) -> int:
    """Stacked placement points: 1st = 90, 2nd = 40, 3rd/4th = 15, unplaced = 0."""
    if place is None:
        return 0
    points = 0
    if 1 <= place <= 4:
        points += FINALE_POINTS["top4"]
    if 1 <= place <= 2:
        points += FINALE_POINTS["top2"]
    if place == 1:
        points += FINALE_POINTS["winner"]
    return points


SEASONS = {
    "RPDR_S18": {
        "name": "RuPaul's Drag Race Season 18",
        # Jan 2, 2026 @ 8:00 PM ET
        "premiere": datetime.fromisoformat("2026-01-02T20:00:00-05:00"),
        "queens": [
            "Athena Dion",
            "Briar Blush",
            "Ciara Myst",
            "Darlene Mitchell",
            "DD Fuego",
            "Discord Addams",
            "Jane Don't",
            "Juicy Love Dion",
            "Kenya Pleaser",
            "Mandy Mango",
            "Mia Starr",
            "Myki Meeks",
            "Nini Coco",
            "Vita VonTesse Starr",
        ],
    },
}


async def seed_season_queens(db: AsyncSession, season_key: str) -> list[Queen]:
    """Create any queens of a catalog season that don't exist yet. Returns the ones created."""
    season = SEASONS.get(season_key)
    if season is None:
        raise ValueError(f"Unknown season: {season_key}")

    result = await db.execute(select(Queen.name).where(Queen.season_key == season_key))
    existing = {row[0] for row in result.all()}

    created = []
    for name in season["queens"]:
        if name in existing:
            continue
        queen = Queen(season_key=season_key, name=name)
        db.add(queen)
        created.append(queen)
    await db.flush()
    return created


async def get_season_queen_ids(db: AsyncSession, season_key: str) -> set[int]:
    result = await db.execute(select(Queen.id).where(Queen.season_key == season_key))
    return {row[0] for row in result.all()}
