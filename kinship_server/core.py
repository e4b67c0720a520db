"""Read-only views over a family's person graph."""

from rapidfuzz import fuzz, process

from .helpers import normalize_id
from .models import Actor, Person
from .store import PersonStore


def _summaries(store: PersonStore, actor: Actor, ids: list[str]) -> list[dict]:
    if not ids:
        return []
    by_id = {p.id: p for p in store.find({"family_id": actor.family_id, "id": {"$in": ids}})}
    return [by_id[i].to_summary() for i in ids if i in by_id]


def _populate_person(store: PersonStore, actor: Actor, person: Person) -> dict:
    result = person.to_dict()
    result["parents"] = _summaries(store, actor, person.parent_ids)
    result["children"] = _summaries(store, actor, person.children_ids)
    spouse = None
    if person.spouse_id:
        spouse = store.find_one({"family_id": actor.family_id, "id": person.spouse_id})
    result["spouse"] = spouse.to_summary() if spouse else None
    return result


def populate(store: PersonStore, actor: Actor, person_id: str) -> dict | None:
    """Person record with parents, spouse and children resolved to summaries."""
    person = store.find_one({"family_id": actor.family_id, "id": person_id})
    return _populate_person(store, actor, person) if person else None


def get_person(store: PersonStore, actor: Actor, person_id: str) -> dict | None:
    lookup_id = normalize_id(person_id)
    if not lookup_id:
        return None
    return populate(store, actor, lookup_id)


def list_persons(store: PersonStore, actor: Actor) -> list[dict]:
    return [_populate_person(store, actor, p) for p in store.find({"family_id": actor.family_id})]


def search_persons(
    store: PersonStore, actor: Actor, name: str, max_results: int = 20, threshold: int = 70
) -> list[dict]:
    """Fuzzy name search within the family.

    Returns summaries with a ``score`` (0-100), best match first.
    """
    query = name.strip().lower()
    if not query:
        return []
    persons = store.find({"family_id": actor.family_id})
    if not persons:
        return []

    matches = process.extract(
        query,
        [p.name.lower() for p in persons],
        scorer=fuzz.WRatio,
        limit=max_results,
        score_cutoff=threshold,
    )

    results = []
    for _choice, score, index in matches:
        info = persons[index].to_summary()
        info["score"] = round(score, 1)
        results.append(info)
    return results


def get_occupations(store: PersonStore, actor: Actor, search: str | None = None) -> list[str]:
    """Distinct occupations in the family for autocomplete, at most ten."""
    occupations = store.distinct("occupation", {"family_id": actor.family_id})
    needle = search.strip().lower() if search else ""
    filtered = [
        occ for occ in occupations if occ and occ.strip() and (not needle or needle in occ.lower())
    ]
    return sorted(filtered)[:10]


def get_statistics(store: PersonStore, actor: Actor) -> dict:
    persons = store.find({"family_id": actor.family_id})
    births = [p.date_of_birth for p in persons]

    genders = {"Male": 0, "Female": 0, "Other": 0}
    for p in persons:
        genders[p.gender] = genders.get(p.gender, 0) + 1

    couples = {tuple(sorted((p.id, p.spouse_id))) for p in persons if p.spouse_id}

    return {
        "family_id": actor.family_id,
        "total_persons": len(persons),
        "males": genders["Male"],
        "females": genders["Female"],
        "other_gender": genders["Other"],
        "roots": sum(1 for p in persons if p.is_root),
        "couples": len(couples),
        "earliest_birth": min(births).isoformat() if births else None,
        "latest_birth": max(births).isoformat() if births else None,
    }
