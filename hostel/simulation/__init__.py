from __future__ import annotations

import random
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, timedelta
from typing import Dict, List

from hostel.services.audit import find_inconsistencies
from hostel.services.pending_monitor import resolve_pending_assignments
from hostel.services.registration import (
    DuplicateRegistrationError,
    PersistenceUnavailableError,
    RegistrationForm,
    RegistrationValidationError,
    register,
)
from hostel.utils.base import NIGERIAN_STATES, Gender


_FIRST_NAMES = ["Ada", "Bola", "Chidi", "Dayo", "Emeka", "Funmi", "Gbenga", "Halima", "Ife", "Kemi"]
_SURNAMES = ["Okafor", "Adeyemi", "Bello", "Eze", "Ogunleye", "Musa", "Nwosu", "Afolabi"]


def random_form(index: int, rng: random.Random) -> RegistrationForm:
    return RegistrationForm(
        first_name=rng.choice(_FIRST_NAMES),
        surname=rng.choice(_SURNAMES),
        dob=date.today() - timedelta(days=rng.randint(18 * 365, 60 * 365)),
        gender=rng.choice(Gender.values()),
        phone=f"080{index:08d}",
        email=f"registrant{index}@example.com",
        nin=f"{index:011d}",
        state_of_origin=rng.choice(NIGERIAN_STATES),
        lga="Central",
        is_vip=rng.random() < 0.05,
    )


def _register_one(form: RegistrationForm) -> str:
    try:
        user, _ = register(form)
    except (RegistrationValidationError, DuplicateRegistrationError, PersistenceUnavailableError) as exc:
        return type(exc).__name__
    return f"room:{user.room_status}|tag:{user.tag_status}"


def register_burst(count: int, workers: int = 16, seed: int = 7) -> Dict[str, int]:
    """Submit `count` registrations from `workers` threads at once."""
    rng = random.Random(seed)
    forms = [random_form(i, rng) for i in range(1, count + 1)]
    outcomes: Counter = Counter()
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_register_one, form) for form in forms]
        for future in as_completed(futures):
            outcomes[future.result()] += 1
    return dict(outcomes)


def run_simulation(count: int = 500, workers: int = 16) -> Dict[str, object]:
    outcomes = register_burst(count, workers=workers)
    report = resolve_pending_assignments()
    problems: List[str] = find_inconsistencies()
    return {
        "outcomes": outcomes,
        "pending_scan": {
            "scanned": report.scanned,
            "rooms_assigned": report.rooms_assigned,
            "tags_assigned": report.tags_assigned,
        },
        "inconsistencies": problems,
    }
