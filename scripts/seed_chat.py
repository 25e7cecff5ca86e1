"""
Populate the database with a few users and a day of chat history.
Useful for frontend/dev work when you just need a busy room.

Usage (run from project root with venv + .env loaded):
    python scripts/seed_chat.py             # add on top of existing data
    python scripts/seed_chat.py --wipe      # delete existing messages first
"""

import argparse
import random
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

from sqlmodel import Session, delete

from app.db.database import get_session, init_db
from app.models.message import Message
from app.services import identity_service, message_service

NAMES = ["小明", "小美", "阿華", "Alice", "Bob"]
LINES = [
    "早安！",
    "今天有人要一起吃午餐嗎？",
    "剛看完那部電影，超好看",
    "週末去爬山吧",
    "有人知道這題怎麼解嗎？",
    "哈哈哈",
    "晚安～",
]


def build_conversation(count: int, start: datetime) -> List[Tuple[str, str, datetime]]:
    """Return (user, text, time) rows spread over the day after `start`."""
    step = timedelta(seconds=max(1, 86400 // max(count, 1)))
    return [
        (random.choice(NAMES), random.choice(LINES), start + step * i)
        for i in range(count)
    ]


def seed_chat(session: Session, count: int, wipe: bool = False) -> int:
    if wipe:
        session.exec(delete(Message))
        session.commit()

    for name in NAMES:
        user = identity_service.resolve_or_create(session, name)
        print(f"{user.name}: invite code {user.invite_code}")

    rows = build_conversation(count, datetime.now(timezone.utc) - timedelta(days=1))
    for user, text, time in rows:
        message_service.append(session, user, text, time=time)
    return len(rows)


def main():
    parser = argparse.ArgumentParser(description="Seed demo users and chat history.")
    parser.add_argument("--count", type=int, default=150, help="Number of messages to add.")
    parser.add_argument("--wipe", action="store_true", help="Delete existing messages before seeding.")
    args = parser.parse_args()

    init_db()
    with get_session() as session:
        inserted = seed_chat(session, args.count, wipe=args.wipe)
    print(f"Inserted {inserted} chat messages.")


if __name__ == "__main__":
    main()
