"""Tenant-scoped person store with a small document-query vocabulary.

Filters are dicts mapping a field to either a value (equality; for list fields
equality means "contains") or an operator dict using ``$in``, ``$ne``,
``$lte``, ``$gte``, ``$size`` and ``$exists``. A top-level ``$or`` takes a list
of sub-filters. Patches use ``$set``, ``$addToSet`` and ``$pull``.

Every call is atomic on its own. Sequences of calls are not: there is no
cross-record transaction.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import fields, replace
from datetime import date, datetime
from pathlib import Path

from .models import Person

logger = logging.getLogger(__name__)

LIST_FIELDS = ("parent_ids", "children_ids")
_PERSON_FIELDS = {f.name for f in fields(Person)}


def _copy(person: Person) -> Person:
    return replace(
        person,
        parent_ids=list(person.parent_ids),
        children_ids=list(person.children_ids),
    )


def _match_condition(value, cond) -> bool:
    if isinstance(cond, dict):
        for op, arg in cond.items():
            if op == "$in":
                if isinstance(value, list):
                    if not any(v in arg for v in value):
                        return False
                elif value not in arg:
                    return False
            elif op == "$ne":
                if isinstance(value, list) and arg in value:
                    return False
                if value == arg:
                    return False
            elif op == "$lte":
                if value is None or value > arg:
                    return False
            elif op == "$gte":
                if value is None or value < arg:
                    return False
            elif op == "$size":
                if not isinstance(value, list) or len(value) != arg:
                    return False
            elif op == "$exists":
                if (value is not None) != bool(arg):
                    return False
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
        return True
    if isinstance(value, list):
        return cond in value
    return value == cond


def matches(person: Person, query: dict) -> bool:
    """Check whether a person satisfies a filter dict."""
    for key, cond in query.items():
        if key == "$or":
            if not any(matches(person, sub) for sub in cond):
                return False
            continue
        if key not in _PERSON_FIELDS:
            raise ValueError(f"Unknown field in filter: {key}")
        if not _match_condition(getattr(person, key), cond):
            return False
    return True


def _apply_patch(person: Person, patch: dict) -> None:
    unknown = set(patch) - {"$set", "$addToSet", "$pull"}
    if unknown:
        raise ValueError(f"Unsupported update operator(s): {sorted(unknown)}")

    for key, value in patch.get("$set", {}).items():
        if key not in _PERSON_FIELDS or key in ("id", "family_id"):
            raise ValueError(f"Field cannot be set: {key}")
        setattr(person, key, list(value) if key in LIST_FIELDS else value)

    for key, values in patch.get("$addToSet", {}).items():
        if key not in LIST_FIELDS:
            raise ValueError(f"$addToSet requires a list field, got {key}")
        target = getattr(person, key)
        for v in values:
            if v not in target:
                target.append(v)

    for key, values in patch.get("$pull", {}).items():
        if key not in LIST_FIELDS:
            raise ValueError(f"$pull requires a list field, got {key}")
        setattr(person, key, [v for v in getattr(person, key) if v not in values])

    person.updated_at = datetime.now()


def _require_scope(query: dict) -> None:
    if not query.get("family_id"):
        raise ValueError("Person store queries must be scoped by family_id")


class PersonStore:
    """In-memory person collection, optionally persisted to a JSON file."""

    def __init__(self, path: Path | None = None):
        self.path = path
        self._persons: dict[str, Person] = {}
        self._lock = threading.RLock()
        if path is not None and path.exists():
            self._load()

    def __len__(self) -> int:
        return len(self._persons)

    # ---- reads ----

    def find_one(self, query: dict) -> Person | None:
        _require_scope(query)
        with self._lock:
            for person in self._persons.values():
                if matches(person, query):
                    return _copy(person)
        return None

    def find(self, query: dict, sort: str | None = None) -> list[Person]:
        _require_scope(query)
        with self._lock:
            result = [_copy(p) for p in self._persons.values() if matches(p, query)]
        if sort:
            result.sort(key=lambda p: getattr(p, sort))
        return result

    def distinct(self, field_name: str, query: dict) -> list:
        _require_scope(query)
        values = []
        for person in self.find(query):
            value = getattr(person, field_name)
            for v in value if isinstance(value, list) else [value]:
                if v not in values:
                    values.append(v)
        return values

    # ---- writes ----

    def insert_one(self, person: Person) -> Person:
        _require_scope({"family_id": person.family_id})
        with self._lock:
            if person.id in self._persons:
                raise ValueError(f"Duplicate person id: {person.id}")
            now = datetime.now()
            person.created_at = person.created_at or now
            person.updated_at = now
            self._persons[person.id] = _copy(person)
            self._save()
        return _copy(person)

    def update_many(self, query: dict, patch: dict) -> int:
        _require_scope(query)
        count = 0
        with self._lock:
            for person in self._persons.values():
                if matches(person, query):
                    _apply_patch(person, patch)
                    count += 1
            if count:
                self._save()
        return count

    def find_one_and_update(self, query: dict, patch: dict) -> Person | None:
        """Apply a patch to the first match and return the updated record."""
        _require_scope(query)
        with self._lock:
            for person in self._persons.values():
                if matches(person, query):
                    _apply_patch(person, patch)
                    self._save()
                    return _copy(person)
        return None

    def delete_one(self, query: dict) -> int:
        _require_scope(query)
        with self._lock:
            for person_id, person in self._persons.items():
                if matches(person, query):
                    del self._persons[person_id]
                    self._save()
                    return 1
        return 0

    # ---- persistence ----

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load person store from {self.path}: {e}")
            return
        for raw in data.get("persons", []):
            person = _person_from_json(raw)
            self._persons[person.id] = person
        logger.info(f"Loaded {len(self._persons)} persons from {self.path}")

    def _save(self) -> None:
        if self.path is None:
            return
        payload = {"persons": [p.to_dict() for p in self._persons.values()]}
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2))
        tmp_path.replace(self.path)


def _person_from_json(raw: dict) -> Person:
    values = {k: v for k, v in raw.items() if k in _PERSON_FIELDS}
    values["date_of_birth"] = date.fromisoformat(values["date_of_birth"])
    for key in ("created_at", "updated_at"):
        if values.get(key):
            values[key] = datetime.fromisoformat(values[key])
    return Person(**values)
