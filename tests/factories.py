"""Test data builders shared across test modules."""

import json
import random
from datetime import datetime, timedelta


class SteppingClock:
    """Returns a new instant, one second later, on every call."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


class RepeatingRandom(random.Random):
    """Random source whose every draw is 0, so every candidate id repeats."""

    def randrange(self, *args, **kwargs):
        return 0


def legacy_record(record_id: str, day: str, amount=10, kind="expense", category="food", note=""):
    """A record in the wire shape every key generation has written."""
    return {
        "id": record_id,
        "type": kind,
        "amount": amount,
        "category": category,
        "date": day,
        "note": note,
        "createdAt": f"{day}T08:00:00.000Z",
    }


def dump(records) -> str:
    return json.dumps(records)
