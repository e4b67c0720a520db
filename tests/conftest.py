"""Shared fixtures for kinship server tests."""

import os
from datetime import date

import pytest

# Set env vars BEFORE importing kinship_server: the package reads them at
# import/initialize time and load_dotenv() won't override existing values.
os.environ["KINSHIP_DATA_FILE"] = ""
os.environ["KINSHIP_FAMILY_ID"] = "FAMTEST"
os.environ["KINSHIP_ACTOR_EMAIL"] = "me@example.com"
os.environ["KINSHIP_ROLE"] = "admin"
os.environ["KINSHIP_TREE_DEPTH"] = ""
os.environ["KINSHIP_TRACING_ENABLED"] = "false"

from kinship_server import initialize  # noqa: E402

initialize()

from kinship_server.maintainer import create_person  # noqa: E402
from kinship_server.models import Actor  # noqa: E402
from kinship_server.store import PersonStore  # noqa: E402
from kinship_server.users import UserDirectory  # noqa: E402

TODAY = date(2026, 6, 15)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def born():
    """ISO birth date for someone who turned ``years`` a month before TODAY."""

    def _born(years: int) -> str:
        return date(TODAY.year - years, 5, 15).isoformat()

    return _born


@pytest.fixture
def store():
    """A fresh in-memory person store."""
    return PersonStore()


@pytest.fixture
def users():
    return UserDirectory()


@pytest.fixture
def actor():
    """Admin of family FAMTEST whose own person record uses me@example.com."""
    return Actor(family_id="FAMTEST", actor_id="u-admin", email="me@example.com", role="admin")


@pytest.fixture
def other_actor():
    """Admin of a different family."""
    return Actor(family_id="FAMOTHER", actor_id="u-other", email="other@example.com", role="admin")


@pytest.fixture
def add(store, actor):
    """Create a person in FAMTEST with sensible defaults; returns the populated dict."""

    def _add(name, gender="Male", dob="1980-01-01", parent_ids=None, spouse_id=None, **extra):
        attributes = {
            "name": name,
            "gender": gender,
            "date_of_birth": dob,
            "place_of_birth": "Pune",
            **extra,
        }
        return create_person(store, actor, attributes, parent_ids, spouse_id)

    return _add


@pytest.fixture
def family(add):
    """Three-generation family.

        Grandpa (1940) = Grandma (1942)
                 |
        Father (1965) = Mother (1967, no recorded parents)
           |                   |
        Me (1990, me@example.com)   Sister (1993)
           |
        Kid (2020)

    Returns a dict of name -> id.
    """
    grandpa = add("Grandpa", "Male", "1940-03-01")
    grandma = add("Grandma", "Female", "1942-07-09", spouse_id=grandpa["id"])
    father = add("Father", "Male", "1965-02-10", parent_ids=[grandpa["id"], grandma["id"]])
    mother = add("Mother", "Female", "1967-11-20", spouse_id=father["id"])
    me = add(
        "Me", "Male", "1990-05-05", parent_ids=[father["id"], mother["id"]], email="me@example.com"
    )
    sister = add("Sister", "Female", "1993-08-08", parent_ids=[father["id"], mother["id"]])
    kid = add("Kid", "Female", "2020-01-01", parent_ids=[me["id"]])
    return {
        "grandpa": grandpa["id"],
        "grandma": grandma["id"],
        "father": father["id"],
        "mother": mother["id"],
        "me": me["id"],
        "sister": sister["id"],
        "kid": kid["id"],
    }


@pytest.fixture
def check_graph(store):
    """Callable asserting the parent/child, spouse and shared-children invariants."""

    def _check(family_id="FAMTEST"):
        persons = {p.id: p for p in store.find({"family_id": family_id})}
        errors = []
        for p in persons.values():
            for parent_id in p.parent_ids:
                parent = persons.get(parent_id)
                if parent is None:
                    errors.append(f"{p.name} has dangling parent {parent_id}")
                elif p.id not in parent.children_ids:
                    errors.append(f"{parent.name} does not list child {p.name}")
            for child_id in p.children_ids:
                child = persons.get(child_id)
                if child is None:
                    errors.append(f"{p.name} has dangling child {child_id}")
                elif p.id not in child.parent_ids:
                    errors.append(f"{child.name} does not list parent {p.name}")
            if p.spouse_id:
                spouse = persons.get(p.spouse_id)
                if spouse is None:
                    errors.append(f"{p.name} has dangling spouse {p.spouse_id}")
                elif spouse.spouse_id != p.id:
                    errors.append(f"{spouse.name} is not married back to {p.name}")
                elif set(spouse.children_ids) != set(p.children_ids):
                    errors.append(f"{p.name} and {spouse.name} do not share children")
        assert not errors, errors

    return _check
