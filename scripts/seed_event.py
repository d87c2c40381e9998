#!/usr/bin/env python3
"""
Create a demo event with a moderation link and an excuse link.

Event configuration normally comes from the organizer tools; this script
is a shortcut for local development and manual testing of the check-in
endpoints.

Usage:
    python scripts/seed_event.py "Event name" [--lat LAT --lng LNG --radius METERS]
                                 [--permissive] [--no-rotation]
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session

from rollcall.core.database import create_db_and_tables, engine
from rollcall.models import EventConfig, ExcuseLink, ModerationLink


def main(args: argparse.Namespace) -> None:
    """Create the event and its links, then print the tokens."""
    create_db_and_tables()

    geofence = args.lat is not None and args.lng is not None
    with Session(engine) as session:
        event = EventConfig(
            name=args.name,
            rotation_enabled=not args.no_rotation,
            geofence_enabled=geofence,
            geofence_lat=args.lat,
            geofence_lng=args.lng,
            geofence_radius_meters=args.radius,
            identity_collision_strict=not args.permissive,
            moderation_enabled=True,
        )
        session.add(event)
        session.flush()

        moderation_link = ModerationLink(event_id=event.id, label="seed")
        excuse_link = ExcuseLink(event_id=event.id, label="seed")
        session.add(moderation_link)
        session.add(excuse_link)
        session.commit()

        print(f"Event:           {event.id} ({event.name})")
        print(f"Moderation link: {moderation_link.token}")
        print(f"Excuse link:     {excuse_link.token}")
        if geofence:
            print(f"Geofence:        {args.lat}, {args.lng} within {args.radius}m")
        print("Open check-in with POST /display/{event_id}/start")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("name")
    parser.add_argument("--lat", type=float)
    parser.add_argument("--lng", type=float)
    parser.add_argument("--radius", type=int, default=100)
    parser.add_argument("--permissive", action="store_true",
                        help="flag repeat identities as suspicious instead of rejecting")
    parser.add_argument("--no-rotation", action="store_true",
                        help="accept the fixed 'static' token")
    main(parser.parse_args())
