"""Tests for family tree reconstruction."""

from dataclasses import replace

import pytest

from kinship_server.errors import InvalidInput, NotFound
from kinship_server.tree import (
    find_ancestor_ids,
    get_ancestors,
    get_descendants,
    get_family_tree,
    tree_contains,
)


def _ids(tree):
    """All node ids in a tree, in visit order (duplicates kept)."""
    found = [tree["id"]]
    for child in tree["children"]:
        found.extend(_ids(child))
    return found


def _node(tree, person_id):
    if tree["id"] == person_id:
        return tree
    for child in tree["children"]:
        hit = _node(child, person_id)
        if hit:
            return hit
    return None


class TestGetFamilyTree:
    """Tests for get_family_tree."""

    def test_single_tree_from_oldest_root(self, family, store, actor):
        trees = get_family_tree(store, actor)

        assert len(trees) == 1
        tree = trees[0]
        assert tree["id"] == family["grandpa"]
        assert tree["spouse"]["id"] == family["grandma"]
        assert tree["children"][0]["id"] == family["father"]
        assert tree["children"][0]["spouse"]["id"] == family["mother"]

    def test_everyone_appears_once(self, family, store, actor):
        tree = get_family_tree(store, actor)[0]
        node_ids = _ids(tree)
        spouse_ids = [_node(tree, i)["spouse"]["id"] for i in node_ids if _node(tree, i)["spouse"]]

        assert len(node_ids) == len(set(node_ids))
        assert set(node_ids) | set(spouse_ids) == set(family.values())
        assert not set(node_ids) & set(spouse_ids)

    def test_node_shape(self, family, store, actor):
        tree = get_family_tree(store, actor)[0]
        for key in (
            "id",
            "name",
            "gender",
            "date_of_birth",
            "photo",
            "occupation",
            "current_address",
            "country_code",
            "contact_number",
            "email",
            "spouse_id",
            "spouse",
            "children",
        ):
            assert key in tree
        assert tree["country_code"] == "+91"

    def test_depth_one_drops_grandchildren(self, family, store, actor):
        """Depth counts generations below the root."""
        tree = get_family_tree(store, actor, depth=3)[0]
        assert family["kid"] in _ids(tree)

        shallow = get_family_tree(store, actor, depth=2)[0]
        assert family["me"] in _ids(shallow)
        assert family["kid"] not in _ids(shallow)

    def test_depth_one_children_only(self, add, store, actor):
        me = add("Me", "Male", "1960-01-01", email="me@example.com")
        child = add("Child", parent_ids=[me["id"]])
        grandchild = add("Grandchild", parent_ids=[child["id"]])

        tree = get_family_tree(store, actor, depth=1)[0]

        assert _ids(tree) == [me["id"], child["id"]]
        assert grandchild["id"] not in _ids(tree)

    def test_anchor_found_as_spouse(self, add, store, actor):
        """A married-in anchor with no parents is found via the spouse field."""
        husband = add("Husband", "Male", "1950-01-01")
        add("Me", "Female", "1955-01-01", spouse_id=husband["id"], email="me@example.com")

        trees = get_family_tree(store, actor)

        assert [t["id"] for t in trees] == [husband["id"]]

    def test_unrelated_trees_are_left_out(self, family, add, store, actor):
        stranger = add("Stranger", "Male", "1900-01-01")
        add("StrangerKid", parent_ids=[stranger["id"]])

        trees = get_family_tree(store, actor)

        assert [t["id"] for t in trees] == [family["grandpa"]]

    def test_two_roots_reaching_anchor_emit_one_tree(self, add, store, actor):
        """A person reachable from two unmarried roots goes to the older root only."""
        dad = add("Dad", "Male", "1950-01-01")
        mum = add("Mum", "Female", "1952-01-01")
        me = add("Me", parent_ids=[dad["id"], mum["id"]], email="me@example.com")

        trees = get_family_tree(store, actor)

        assert len(trees) == 1
        assert trees[0]["id"] == dad["id"]
        assert me["id"] in _ids(trees[0])

    def test_cycle_does_not_recurse_forever(self, add, store, actor):
        root = add("Root", "Male", "1900-01-01", email="me@example.com")
        child = add("Child", parent_ids=[root["id"]])
        # Corrupt the graph directly: child lists the root as its own child
        store.update_many(
            {"family_id": "FAMTEST", "id": child["id"]}, {"$addToSet": {"children_ids": [root["id"]]}}
        )

        tree = get_family_tree(store, actor, depth=10)[0]

        assert _ids(tree) == [root["id"], child["id"]]

    def test_missing_child_record_is_skipped(self, add, store, actor):
        root = add("Root", "Male", "1900-01-01", email="me@example.com")
        store.update_many(
            {"family_id": "FAMTEST", "id": root["id"]}, {"$addToSet": {"children_ids": ["ghost"]}}
        )
        tree = get_family_tree(store, actor)[0]
        assert tree["children"] == []

    def test_no_anchor(self, family, store):
        from kinship_server.models import Actor

        stranger = Actor(family_id="FAMTEST", email="nobody@example.com", role="viewer")
        with pytest.raises(NotFound, match="current user"):
            get_family_tree(store, stranger)

    def test_no_email(self, family, store, actor):
        with pytest.raises(InvalidInput):
            get_family_tree(store, replace(actor, email=None))

    def test_no_roots(self, add, store, actor):
        a = add("A", email="me@example.com")
        b = add("B", parent_ids=[a["id"]])
        store.update_many({"family_id": "FAMTEST", "id": a["id"]}, {"$set": {"parent_ids": [b["id"]]}})
        with pytest.raises(NotFound, match="no parents"):
            get_family_tree(store, actor)

    def test_shallow_depth_falls_back_to_nearer_root(self, family, store, actor):
        """Grandpa's tree stops above the anchor at depth 1; Mother's tree reaches it."""
        trees = get_family_tree(store, actor, depth=1)

        assert [t["id"] for t in trees] == [family["mother"]]
        assert {c["id"] for c in trees[0]["children"]} == {family["me"], family["sister"]}

    def test_anchor_beyond_depth(self, family, store, actor):
        """If the anchor is cut off in every tree, nothing qualifies."""
        with pytest.raises(NotFound, match="No family trees"):
            get_family_tree(store, actor, depth=0)

    def test_in_law_root_emits_own_tree(self, add, store, actor):
        """The spouse's family is a separate tree reaching the anchor as a spouse."""
        grandpa = add("Grandpa", "Male", "1940-01-01")
        me = add("Me", "Male", "1970-01-01", parent_ids=[grandpa["id"]], email="me@example.com")
        wife_dad = add("WifeDad", "Male", "1945-01-01")
        wife = add(
            "Wife", "Female", "1972-01-01", parent_ids=[wife_dad["id"]], spouse_id=me["id"]
        )
        kid = add("Kid", "Female", "2000-01-01", parent_ids=[me["id"], wife["id"]])

        trees = get_family_tree(store, actor)

        assert [t["id"] for t in trees] == [grandpa["id"], wife_dad["id"]]
        assert _node(trees[0], me["id"])["spouse"]["id"] == wife["id"]
        wife_node = _node(trees[1], wife["id"])
        assert wife_node["spouse"]["id"] == me["id"]
        # The shared child is expanded under the first tree only
        assert wife_node["children"] == []
        all_ids = [i for t in trees for i in _ids(t)]
        assert all_ids.count(kid["id"]) == 1

    def test_negative_depth(self, family, store, actor):
        with pytest.raises(InvalidInput):
            get_family_tree(store, actor, depth=-1)

    def test_other_family_sees_nothing(self, family, store):
        from kinship_server.models import Actor

        outsider = Actor(family_id="FAMOTHER", email="me@example.com")
        with pytest.raises(NotFound):
            get_family_tree(store, outsider)


class TestTreeContains:
    def test_node_and_spouse(self):
        tree = {
            "id": "a",
            "spouse": {"id": "b"},
            "children": [{"id": "c", "spouse": None, "children": []}],
        }
        assert tree_contains(tree, "a")
        assert tree_contains(tree, "b")
        assert tree_contains(tree, "c")
        assert not tree_contains(tree, "d")


class TestDescendantsAndAncestors:
    """Tests for get_descendants, get_ancestors and find_ancestor_ids."""

    def test_descendants(self, family, store, actor):
        tree = get_descendants(store, actor, family["father"], generations=1)
        assert tree["id"] == family["father"]
        assert {c["id"] for c in tree["children"]} == {family["me"], family["sister"]}
        assert all(c["children"] == [] for c in tree["children"])

    def test_descendants_not_found(self, store, actor):
        with pytest.raises(NotFound):
            get_descendants(store, actor, "missing")

    def test_ancestors(self, family, store, actor):
        tree = get_ancestors(store, actor, family["me"], generations=2)
        parents = {p["id"]: p for p in tree["parents"]}
        assert set(parents) == {family["father"], family["mother"]}
        grandparents = {g["id"] for g in parents[family["father"]]["parents"]}
        assert grandparents == {family["grandpa"], family["grandma"]}
        assert parents[family["mother"]]["parents"] == []

    def test_ancestors_generation_limit(self, family, store, actor):
        tree = get_ancestors(store, actor, family["kid"], generations=1)
        assert [p["id"] for p in tree["parents"]] == [family["me"]]
        assert tree["parents"][0]["parents"] == []

    def test_find_ancestor_ids(self, family, store, actor):
        found = find_ancestor_ids(store, actor, family["me"], max_depth=2)
        assert found == {
            family["me"],
            family["father"],
            family["mother"],
            family["grandpa"],
            family["grandma"],
        }

    def test_find_ancestor_ids_depth_zero(self, family, store, actor):
        assert find_ancestor_ids(store, actor, family["father"], max_depth=0) == {
            family["father"],
            family["mother"],
        }
