"""Family tree reconstruction from the person graph.

The stored graph is not guaranteed to be acyclic, so every walk carries a
visited map and a generation budget.
"""

from __future__ import annotations

import logging
from collections import deque

from .errors import InvalidInput, NotFound
from .helpers import normalize_email, normalize_id
from .models import Actor
from .store import PersonStore
from .telemetry import get_tracer

logger = logging.getLogger(__name__)

DEFAULT_DEPTH = 3
MAX_ANCESTOR_GENERATIONS = 10


def _build_node(
    store: PersonStore,
    actor: Actor,
    person_id: str | None,
    current_depth: int,
    depth: int,
    visited: dict[str, dict | None],
) -> dict | None:
    """Depth-first build of one subtree.

    Returns None past the depth budget, for a missing record, or for a person
    already placed in this traversal.
    """
    if current_depth > depth or not person_id:
        return None
    if person_id in visited:
        return None

    person = store.find_one({"family_id": actor.family_id, "id": person_id})
    if person is None:
        return None

    spouse = None
    if person.spouse_id:
        spouse = store.find_one({"family_id": actor.family_id, "id": person.spouse_id})

    node = person.to_card()
    node["spouse_id"] = spouse.id if spouse else None
    node["spouse"] = spouse.to_card() if spouse else None
    node["children"] = []
    visited[person_id] = node

    children = (
        _build_node(store, actor, child_id, current_depth + 1, depth, visited)
        for child_id in person.children_ids
    )
    node["children"] = [c for c in children if c is not None]
    return node


def _walk(tree: dict):
    """Yield every node of a built tree, breadth first."""
    queue = deque([tree])
    while queue:
        node = queue.popleft()
        yield node
        queue.extend(node.get("children") or [])


def tree_contains(tree: dict, person_id: str) -> bool:
    """Whether a person appears in the tree as a node or as a node's spouse."""
    for node in _walk(tree):
        if node["id"] == person_id:
            return True
        if node.get("spouse") and node["spouse"]["id"] == person_id:
            return True
    return False


def _mark_used(tree: dict, used: set[str]) -> None:
    for node in _walk(tree):
        used.add(node["id"])
        if node.get("spouse"):
            used.add(node["spouse"]["id"])


def _check_depth(depth) -> int:
    if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
        raise InvalidInput(f"Depth must be a non-negative integer, got {depth!r}")
    return depth


def get_family_tree(store: PersonStore, actor: Actor, depth: int = DEFAULT_DEPTH) -> list[dict]:
    """Build the trees that contain the caller's own person record.

    Roots (people without parents) are tried oldest first. A root already
    placed in an emitted tree, as a node or a spouse, is skipped. Each
    traversal has its own visited map, seeded with the people already placed
    as nodes, so nobody is expanded in two trees while an in-law placed only
    as a spouse can still head a branch of their own family's tree.
    ``depth`` counts generations below the root.

    Raises:
        InvalidInput: the caller has no email or depth is invalid.
        NotFound: no person for the caller, no roots, or no tree holds the caller.
    """
    depth = _check_depth(depth)
    email = normalize_email(actor.email)
    if not email:
        raise InvalidInput("User email not available")

    with get_tracer().start_as_current_span("get_family_tree") as span:
        span.set_attribute("kinship.family_id", actor.family_id)
        span.set_attribute("kinship.depth", depth)

        anchor = store.find_one({"family_id": actor.family_id, "email": email})
        if anchor is None:
            raise NotFound("Person record not found for current user")

        roots = store.find({"family_id": actor.family_id, "parent_ids": {"$size": 0}}, sort="date_of_birth")
        if not roots:
            raise NotFound("No persons with no parents found")

        used: set[str] = set()
        placed: set[str] = set()
        trees = []
        for root in roots:
            if root.id in used:
                continue
            # Only node ids: a spouse card does not expand that person's line
            tree = _build_node(store, actor, root.id, 0, depth, dict.fromkeys(placed))
            if tree is None or not tree_contains(tree, anchor.id):
                continue
            trees.append(tree)
            used.add(root.id)
            if tree["spouse_id"]:
                used.add(tree["spouse_id"])
            _mark_used(tree, used)
            placed.update(node["id"] for node in _walk(tree))

        if not trees:
            raise NotFound("No family trees found containing the current user")

    logger.debug(f"Built {len(trees)} tree(s) for family {actor.family_id}")
    return trees


def get_descendants(
    store: PersonStore, actor: Actor, person_id: str, generations: int = DEFAULT_DEPTH
) -> dict:
    """Descendant tree rooted at any person, same node shape as get_family_tree."""
    generations = _check_depth(generations)
    lookup_id = normalize_id(person_id)
    with get_tracer().start_as_current_span("get_descendants"):
        tree = _build_node(store, actor, lookup_id, 0, generations, {})
    if tree is None:
        raise NotFound("Person not found")
    return tree


def get_ancestors(
    store: PersonStore, actor: Actor, person_id: str, generations: int = DEFAULT_DEPTH
) -> dict:
    """Nested ancestor tree: each node lists its ``parents``."""
    generations = min(_check_depth(generations), MAX_ANCESTOR_GENERATIONS)
    visited: set[str] = set()

    def build_ancestor_tree(indi_id: str | None, remaining: int) -> dict | None:
        if not indi_id or indi_id in visited:
            return None
        person = store.find_one({"family_id": actor.family_id, "id": indi_id})
        if person is None:
            return None
        visited.add(indi_id)

        result = person.to_summary()
        result["parents"] = []
        if remaining > 0:
            for parent_id in person.parent_ids:
                parent_tree = build_ancestor_tree(parent_id, remaining - 1)
                if parent_tree:
                    result["parents"].append(parent_tree)
        return result

    with get_tracer().start_as_current_span("get_ancestors"):
        tree = build_ancestor_tree(normalize_id(person_id), generations)
    if tree is None:
        raise NotFound("Person not found")
    return tree


def find_ancestor_ids(store: PersonStore, actor: Actor, person_id: str, max_depth: int) -> set[str]:
    """Ids of a person, their ancestors up to ``max_depth`` and all their spouses."""
    found: set[str] = set()
    expanded: set[str] = set()
    queue = deque([(normalize_id(person_id), 0)])
    while queue:
        indi_id, level = queue.popleft()
        if not indi_id or level > max_depth or indi_id in expanded:
            continue
        expanded.add(indi_id)
        person = store.find_one({"family_id": actor.family_id, "id": indi_id})
        if person is None:
            continue
        found.add(person.id)
        if person.spouse_id:
            found.add(person.spouse_id)
        if level < max_depth:
            queue.extend((parent_id, level + 1) for parent_id in person.parent_ids)
    return found
