"""Relationship maintenance for person create, update and delete.

This module is the only writer of ``parent_ids``, ``children_ids`` and
``spouse_id``. After every completed operation:

1. B in A.parent_ids  <=>  A in B.children_ids
2. A.spouse_id == B   <=>  B.spouse_id == A
3. spouses share the same children_ids

Each operation is a sequence of single-record store writes run through a
UnitOfWork. A failure part way raises PartialPropagationFailure; nothing is
rolled back and no lock is held across the sequence.
"""

from __future__ import annotations

import logging

from .core import populate
from .errors import Conflict, InvalidInput, NotFound
from .helpers import new_id, normalize_email, normalize_id, parse_date, unique_ids
from .models import DEFAULT_COUNTRY_CODE, GENDERS, Actor, Person
from .store import PersonStore
from .telemetry import get_tracer
from .unit_of_work import UnitOfWork
from .users import UserDirectory

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "gender", "date_of_birth", "place_of_birth")
ATTRIBUTE_FIELDS = REQUIRED_FIELDS + (
    "current_address",
    "contact_number",
    "country_code",
    "email",
    "occupation",
    "photo",
)
RELATION_FIELDS = ("parent_ids", "spouse_id")


def _scope(actor: Actor, **query) -> dict:
    return {"family_id": actor.family_id, **query}


def _clean_attributes(attributes: dict, partial: bool) -> dict:
    """Validate and normalize plain (non-relationship) person fields."""
    values = {}
    for key in ATTRIBUTE_FIELDS:
        if key not in attributes:
            if not partial and key in REQUIRED_FIELDS:
                raise InvalidInput(f"Missing required field: {key}")
            continue
        value = attributes[key]
        if key in REQUIRED_FIELDS and (value is None or (isinstance(value, str) and not value.strip())):
            raise InvalidInput(f"Missing required field: {key}")
        if key == "gender" and value not in GENDERS:
            raise InvalidInput(f"Unsupported gender: {value!r}")
        if key == "date_of_birth":
            value = parse_date(value)
        elif key == "email":
            value = normalize_email(value)
        elif key == "country_code":
            value = value or DEFAULT_COUNTRY_CODE
        values[key] = value
    if not partial:
        values.setdefault("country_code", DEFAULT_COUNTRY_CODE)
    return values


def _resolve_ids(store: PersonStore, actor: Actor, ids: list[str], role: str) -> list[str]:
    """Keep only ids that exist in the caller's family, in the given order."""
    if not ids:
        return []
    found = {p.id for p in store.find(_scope(actor, id={"$in": ids}))}
    for missing in (i for i in ids if i not in found):
        logger.warning(f"Skipping {role} reference {missing}: not found in family {actor.family_id}")
    return [i for i in ids if i in found]


def _resolve_spouse(store: PersonStore, actor: Actor, spouse_id: str | None) -> Person | None:
    if not spouse_id:
        return None
    spouse = store.find_one(_scope(actor, id=spouse_id))
    if spouse is None:
        logger.warning(f"Skipping spouse reference {spouse_id}: not found in family {actor.family_id}")
    return spouse


def merge_spouse_children(
    store: PersonStore, uow: UnitOfWork, actor: Actor, person_id: str, spouse_id: str
) -> None:
    """Make two spouses share the union of their children.

    Children only the spouse has are added to the person (and get the person as
    a parent); children only the person has are added to the spouse likewise.
    Running it again on a merged pair changes nothing.
    """
    person = store.find_one(_scope(actor, id=person_id))
    spouse = store.find_one(_scope(actor, id=spouse_id))
    if person is None or spouse is None:
        return

    spouse_only = [c for c in spouse.children_ids if c not in person.children_ids]
    person_only = [c for c in person.children_ids if c not in spouse.children_ids]

    if spouse_only:
        uow.step(
            "add spouse's children to person",
            store.find_one_and_update,
            _scope(actor, id=person_id),
            {"$addToSet": {"children_ids": spouse_only}},
        )
        uow.step(
            "add person as parent of spouse's children",
            store.update_many,
            _scope(actor, id={"$in": spouse_only}),
            {"$addToSet": {"parent_ids": [person_id]}},
        )
    if person_only:
        uow.step(
            "add person's children to spouse",
            store.find_one_and_update,
            _scope(actor, id=spouse_id),
            {"$addToSet": {"children_ids": person_only}},
        )
        uow.step(
            "add spouse as parent of person's children",
            store.update_many,
            _scope(actor, id={"$in": person_only}),
            {"$addToSet": {"parent_ids": [spouse_id]}},
        )


def _unlink_spouse(
    store: PersonStore, uow: UnitOfWork, actor: Actor, old_spouse_id: str, children_ids: list[str]
) -> None:
    """Detach a former spouse from a person and from that person's children."""
    uow.step(
        "clear old spouse link",
        store.find_one_and_update,
        _scope(actor, id=old_spouse_id),
        {"$set": {"spouse_id": None}},
    )
    if children_ids:
        uow.step(
            "remove old spouse from children's parents",
            store.update_many,
            _scope(actor, id={"$in": children_ids}),
            {"$pull": {"parent_ids": [old_spouse_id]}},
        )
        uow.step(
            "remove children from old spouse",
            store.find_one_and_update,
            _scope(actor, id=old_spouse_id),
            {"$pull": {"children_ids": children_ids}},
        )


def _release_previous_partner(
    store: PersonStore, uow: UnitOfWork, actor: Actor, spouse: Person, person_id: str
) -> None:
    # A person has at most one spouse: whoever the new spouse was married to
    # loses the link before the new one is made.
    if spouse.spouse_id and spouse.spouse_id != person_id:
        logger.info(f"Unlinking {spouse.spouse_id} from {spouse.id} before remarriage")
        uow.step(
            "clear new spouse's previous partner",
            store.update_many,
            _scope(actor, id=spouse.spouse_id, spouse_id=spouse.id),
            {"$set": {"spouse_id": None}},
        )


def create_person(
    store: PersonStore,
    actor: Actor,
    attributes: dict,
    parent_ids: list[str] | None = None,
    spouse_id: str | None = None,
) -> dict:
    """Create a person and link it to its parents and spouse.

    Parent and spouse ids that do not resolve in the caller's family are
    skipped with a warning instead of failing the request.

    Returns:
        The stored person with parents, spouse and children populated.
    """
    values = _clean_attributes(attributes, partial=False)
    parents = _resolve_ids(store, actor, unique_ids(parent_ids), "parent")
    spouse = _resolve_spouse(store, actor, normalize_id(spouse_id))

    person = Person(
        id=new_id(),
        family_id=actor.family_id,
        parent_ids=parents,
        children_ids=[],
        spouse_id=spouse.id if spouse else None,
        **values,
    )

    with get_tracer().start_as_current_span("create_person") as span, UnitOfWork("create_person") as uow:
        span.set_attribute("kinship.family_id", actor.family_id)
        uow.step("insert person", store.insert_one, person)

        if parents:
            uow.step(
                "add child to parents",
                store.update_many,
                _scope(actor, id={"$in": parents}),
                {"$addToSet": {"children_ids": [person.id]}},
            )

        if spouse:
            _release_previous_partner(store, uow, actor, spouse, person.id)
            uow.step(
                "link spouse",
                store.find_one_and_update,
                _scope(actor, id=spouse.id),
                {"$set": {"spouse_id": person.id}},
            )
            merge_spouse_children(store, uow, actor, person.id, spouse.id)

    logger.info(f"Created person {person.id} in family {actor.family_id}")
    return populate(store, actor, person.id)


def _check_patch_fields(patch: dict, current: Person) -> None:
    for key, value in patch.items():
        if key in ("id", "family_id"):
            if value != getattr(current, key):
                raise InvalidInput(f"Field cannot be changed: {key}")
        elif key == "children_ids":
            raise InvalidInput("children_ids is derived from the children's parent_ids")
        elif key not in ATTRIBUTE_FIELDS and key not in RELATION_FIELDS:
            raise InvalidInput(f"Unknown field: {key}")


def update_person(
    store: PersonStore,
    users: UserDirectory | None,
    actor: Actor,
    person_id: str,
    patch: dict,
) -> dict:
    """Apply a partial update, re-linking parents and spouse as needed.

    ``parent_ids`` is a full replacement: the person is removed from every
    previous parent and added to each new one. A falsy ``spouse_id`` removes
    the spouse; a different one switches spouses and merges children.

    Raises:
        NotFound: person_id does not exist in the caller's family.
        Conflict: the new email belongs to a user of another family.
        InvalidInput: unknown, identity or self-referencing fields.
    """
    person_id = normalize_id(person_id)
    if not person_id:
        raise InvalidInput("A person id is required")
    current = store.find_one(_scope(actor, id=person_id))
    if current is None:
        raise NotFound("Person not found")

    _check_patch_fields(patch, current)
    values = _clean_attributes(patch, partial=True)

    # User sync decided up front so a Conflict rejects before any write
    user_fields = {}
    new_email = values.get("email")
    if new_email and new_email != current.email:
        existing = users.find_by_email(new_email) if users else None
        if existing and existing.family_id != actor.family_id:
            raise Conflict("Email already in use.")
        user_fields["email"] = new_email
    if "name" in values and values["name"] != current.name:
        user_fields["name"] = values["name"]

    new_parents = None
    if "parent_ids" in patch:
        requested = unique_ids(patch["parent_ids"])
        if person_id in requested:
            raise InvalidInput("A person cannot be their own parent")
        new_parents = _resolve_ids(store, actor, requested, "parent")

    spouse_change = "spouse_id" in patch
    new_spouse_id = normalize_id(patch.get("spouse_id")) if spouse_change else None
    if new_spouse_id == person_id:
        raise InvalidInput("A person cannot be their own spouse")
    new_spouse = None
    if new_spouse_id and new_spouse_id != current.spouse_id:
        new_spouse = _resolve_spouse(store, actor, new_spouse_id)

    with get_tracer().start_as_current_span("update_person") as span, UnitOfWork("update_person") as uow:
        span.set_attribute("kinship.family_id", actor.family_id)

        if user_fields and users and current.email:
            user = users.find_by_email(current.email, actor.family_id)
            if user:
                uow.step("sync user", users.update_fields, user, **user_fields)

        if new_parents is not None:
            if current.parent_ids:
                uow.step(
                    "remove child from previous parents",
                    store.update_many,
                    _scope(actor, id={"$in": current.parent_ids}),
                    {"$pull": {"children_ids": [person_id]}},
                )
            if new_parents:
                uow.step(
                    "add child to new parents",
                    store.update_many,
                    _scope(actor, id={"$in": new_parents}),
                    {"$addToSet": {"children_ids": [person_id]}},
                )
            values["parent_ids"] = new_parents

        if spouse_change:
            old_spouse_id = current.spouse_id
            children = current.children_ids
            if not new_spouse_id:
                if old_spouse_id:
                    _unlink_spouse(store, uow, actor, old_spouse_id, children)
                values["spouse_id"] = None
            elif new_spouse_id != old_spouse_id and new_spouse is not None:
                if old_spouse_id:
                    _unlink_spouse(store, uow, actor, old_spouse_id, children)
                _release_previous_partner(store, uow, actor, new_spouse, person_id)
                uow.step(
                    "link new spouse",
                    store.find_one_and_update,
                    _scope(actor, id=new_spouse.id),
                    {"$set": {"spouse_id": person_id}},
                )
                if children:
                    uow.step(
                        "add new spouse to children's parents",
                        store.update_many,
                        _scope(actor, id={"$in": children}),
                        {"$addToSet": {"parent_ids": [new_spouse.id]}},
                    )
                    uow.step(
                        "add children to new spouse",
                        store.find_one_and_update,
                        _scope(actor, id=new_spouse.id),
                        {"$addToSet": {"children_ids": children}},
                    )
                merge_spouse_children(store, uow, actor, person_id, new_spouse.id)
                values["spouse_id"] = new_spouse.id

        if values:
            uow.step(
                "save person fields",
                store.find_one_and_update,
                _scope(actor, id=person_id),
                {"$set": values},
            )

    logger.info(f"Updated person {person_id} in family {actor.family_id}")
    return populate(store, actor, person_id)


def delete_person(store: PersonStore, actor: Actor, person_id: str) -> None:
    """Delete a person after removing every back-reference to it.

    Children stay with the surviving spouse; nothing is re-derived.
    """
    person_id = normalize_id(person_id)
    if not person_id:
        raise InvalidInput("A person id is required")
    person = store.find_one(_scope(actor, id=person_id))
    if person is None:
        raise NotFound("Person not found")

    with get_tracer().start_as_current_span("delete_person") as span, UnitOfWork("delete_person") as uow:
        span.set_attribute("kinship.family_id", actor.family_id)
        if person.parent_ids:
            uow.step(
                "remove from parents' children",
                store.update_many,
                _scope(actor, id={"$in": person.parent_ids}),
                {"$pull": {"children_ids": [person_id]}},
            )
        if person.children_ids:
            uow.step(
                "remove from children's parents",
                store.update_many,
                _scope(actor, id={"$in": person.children_ids}),
                {"$pull": {"parent_ids": [person_id]}},
            )
        if person.spouse_id:
            uow.step(
                "clear spouse link",
                store.find_one_and_update,
                _scope(actor, id=person.spouse_id),
                {"$set": {"spouse_id": None}},
            )
        uow.step("delete person", store.delete_one, _scope(actor, id=person_id))

    logger.info(f"Deleted person {person_id} from family {actor.family_id}")
