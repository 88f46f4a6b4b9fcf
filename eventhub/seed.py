"""Development helpers for populating fake venues and events."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from .config import settings
from .crud import create_event, create_venue, ensure_event_type
from .database import create_db_engine, create_session_factory, session_scope
from .models import BOOKING_TYPES, Venue
from .storage import init_db
from .utils import utcnow

_venue_suffixes = [
    "Arms",
    "Riverside",
    "Tap House",
    "Social",
    "Inn",
    "Kitchen & Bar",
]
_event_types = [
    "Live Music",
    "Quiz Night",
    "Tap Takeover",
    "Tasting",
    "Comedy",
    "Brunch",
]
_spaces = ["Main Bar", "Riverside Terrace", "Garden", "Function Room", "Snug"]
_draft_statuses = ["draft", "submitted", "needs_revisions", "rejected"]

logger = logging.getLogger("uvicorn.error")


def seed_fake_data(
    *,
    venue_count: int = 3,
    events_per_venue: int = 6,
    draft_percentage: int = 25,
    database_url: str | None = None,
) -> dict[str, int]:
    """Populate the database with synthetic venues and events."""
    if venue_count < 0:
        raise ValueError("venue_count must be >= 0")
    if events_per_venue < 1:
        raise ValueError("events_per_venue must be >= 1")
    if not 0 <= draft_percentage <= 100:
        raise ValueError("draft_percentage must be between 0 and 100")

    engine = create_db_engine(database_url or settings.database_url)
    init_db(engine)
    fake = Faker("en_GB")
    stats = {"venues": 0, "events": 0, "public_events": 0}

    with session_scope(create_session_factory(engine)) as session:
        for label in _event_types:
            ensure_event_type(session, label)
        for _ in range(venue_count):
            venue = _create_venue(session, fake)
            stats["venues"] += 1
            for _ in range(events_per_venue):
                is_public = _create_event(
                    session, fake, venue=venue, draft_percentage=draft_percentage
                )
                stats["events"] += 1
                stats["public_events"] += int(is_public)

    engine.dispose()
    logger.info(
        "Seeded %d venues and %d events (%d public)",
        stats["venues"],
        stats["events"],
        stats["public_events"],
    )
    return stats


def _create_venue(session: Session, fake: Faker) -> Venue:
    name = f"The {fake.last_name()} {random.choice(_venue_suffixes)}"
    return create_venue(
        session,
        name=name,
        address=fake.address().replace("\n", ", "),
        capacity=random.choice([None, 80, 120, 180, 250]),
    )


def _create_event(
    session: Session, fake: Faker, *, venue: Venue, draft_percentage: int
) -> bool:
    start_at = _random_start_time()
    event_type = random.choice(_event_types)
    is_draft = random.randint(1, 100) <= draft_percentage
    if is_draft:
        status = random.choice(_draft_statuses)
    else:
        status = "completed" if start_at < utcnow() else "approved"
    booking_type = random.choice((None,) + BOOKING_TYPES)
    create_event(
        session,
        venue=venue,
        title=f"{fake.city()} {event_type}",
        event_type=event_type,
        status=status,
        start_at=start_at,
        end_at=start_at + timedelta(hours=random.randint(2, 5)),
        venue_space=", ".join(random.sample(_spaces, k=random.randint(1, 2))),
        notes=fake.sentence() if random.random() < 0.5 else None,
        wet_promo=fake.sentence() if random.random() < 0.4 else None,
        food_promo=fake.sentence() if random.random() < 0.4 else None,
        public_teaser=fake.sentence() if random.random() < 0.7 else None,
        public_highlights=[
            fake.sentence(nb_words=4) for _ in range(random.randint(0, 3))
        ],
        booking_type=booking_type,
        ticket_price=round(random.uniform(5, 30), 2)
        if booking_type == "ticketed"
        else None,
        check_in_cutoff_minutes=random.choice([None, 15, 30]),
        cancellation_window_hours=random.choice([None, 24, 48]),
    )
    return not is_draft


def _random_start_time() -> datetime:
    now = utcnow().replace(second=0, microsecond=0)
    day_offset = random.randint(-14, 60)
    hour = random.randint(11, 21)
    start = now + timedelta(days=day_offset)
    return start.replace(hour=hour, minute=random.choice([0, 30]))
