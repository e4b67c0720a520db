"""Candidate searches for the spouse and parent pickers."""

from datetime import date

from .errors import InvalidInput
from .helpers import normalize_id, years_ago
from .models import Actor
from .store import PersonStore

SPOUSE_MIN_AGE = 18
UNMARRIED_PARENT_MIN_AGE = 20

MODE_NEW_MEMBER = "newMember"
MODE_EDIT = "edit"

_OPPOSITE_GENDER = {"Male": "Female", "Female": "Male"}


def eligible_spouses(
    store: PersonStore,
    actor: Actor,
    current_person_id: str | None,
    current_person_gender: str | None,
    mode: str = MODE_NEW_MEMBER,
    today: date | None = None,
) -> list[dict]:
    """Adults who may be picked as spouse for the current person.

    Male and Female are matched with the opposite gender; any other value
    applies no gender filter. ``newMember`` mode only offers unmarried people,
    ``edit`` mode keeps married ones so a current spouse stays selectable.

    Returns:
        List of {"id", "name"} dicts.
    """
    if mode not in (MODE_NEW_MEMBER, MODE_EDIT):
        raise InvalidInput(f"Unsupported mode: {mode!r}")

    query = {
        "family_id": actor.family_id,
        "date_of_birth": {"$lte": years_ago(SPOUSE_MIN_AGE, today)},
    }
    current_id = normalize_id(current_person_id)
    if current_id:
        query["id"] = {"$ne": current_id}
    if current_person_gender in _OPPOSITE_GENDER:
        query["gender"] = _OPPOSITE_GENDER[current_person_gender]
    if mode == MODE_NEW_MEMBER:
        query["spouse_id"] = None

    return [{"id": p.id, "name": p.name} for p in store.find(query)]


def eligible_parents(store: PersonStore, actor: Actor, today: date | None = None) -> list[dict]:
    """People who can be chosen as a parent: anyone married, or single and 20+.

    A married couple is listed once, under whichever partner is seen first.
    """
    people = store.find(
        {
            "family_id": actor.family_id,
            "$or": [
                {"spouse_id": {"$exists": True}},
                {"spouse_id": None, "date_of_birth": {"$lte": years_ago(UNMARRIED_PARENT_MIN_AGE, today)}},
            ],
        }
    )
    by_id = {p.id: p for p in people}

    results = []
    seen_couples = set()
    for person in people:
        entry = {
            "id": person.id,
            "name": person.name,
            "gender": person.gender,
            "date_of_birth": person.date_of_birth.isoformat(),
            "spouse": None,
        }
        if person.spouse_id:
            key = "-".join(sorted((person.id, person.spouse_id)))
            if key in seen_couples:
                continue
            seen_couples.add(key)
            spouse = by_id.get(person.spouse_id) or store.find_one(
                {"family_id": actor.family_id, "id": person.spouse_id}
            )
            entry["spouse"] = spouse.to_summary() if spouse else None
        results.append(entry)
    return results
