"""Tests for spouse and parent eligibility queries."""

import pytest

from kinship_server.eligibility import eligible_parents, eligible_spouses
from kinship_server.errors import InvalidInput


class TestEligibleSpouses:
    """Tests for eligible_spouses."""

    def test_adult_opposite_gender_unmarried(self, add, store, actor, born, today):
        """A single adult woman qualifies for a man; an under-age boy does not."""
        a = add("A", "Female", born(20))
        add("B", "Male", born(10))

        result = eligible_spouses(store, actor, None, "Male", "newMember", today=today)

        assert result == [{"id": a["id"], "name": "A"}]

    def test_female_gets_male_candidates(self, add, store, actor, born, today):
        man = add("Man", "Male", born(30))
        add("Woman", "Female", born(30))
        result = eligible_spouses(store, actor, None, "Female", "newMember", today=today)
        assert [r["id"] for r in result] == [man["id"]]

    def test_other_gender_has_no_filter(self, add, store, actor, born, today):
        add("Man", "Male", born(30))
        add("Woman", "Female", born(30))
        add("Person", "Other", born(30))
        result = eligible_spouses(store, actor, None, "Other", "newMember", today=today)
        assert len(result) == 3

    def test_exactly_eighteen_today_is_eligible(self, add, store, actor, today):
        birthday = today.replace(year=today.year - 18).isoformat()
        add("Birthday", "Female", birthday)
        result = eligible_spouses(store, actor, None, "Male", "newMember", today=today)
        assert [r["name"] for r in result] == ["Birthday"]

    def test_one_day_short_of_eighteen(self, add, store, actor, today):
        from datetime import timedelta

        day_after = (today.replace(year=today.year - 18) + timedelta(days=1)).isoformat()
        add("Almost", "Female", day_after)
        assert eligible_spouses(store, actor, None, "Male", "newMember", today=today) == []

    def test_new_member_excludes_married(self, add, store, actor, born, today):
        husband = add("Husband", "Male", born(40))
        add("Wife", "Female", born(40), spouse_id=husband["id"])
        single = add("Single", "Female", born(25))

        result = eligible_spouses(store, actor, None, "Male", "newMember", today=today)

        assert [r["id"] for r in result] == [single["id"]]

    def test_edit_keeps_married(self, add, store, actor, born, today):
        """In edit mode the current spouse must stay selectable."""
        husband = add("Husband", "Male", born(40))
        wife = add("Wife", "Female", born(40), spouse_id=husband["id"])

        result = eligible_spouses(store, actor, husband["id"], "Male", "edit", today=today)

        assert [r["id"] for r in result] == [wife["id"]]

    def test_excludes_current_person(self, add, store, actor, born, today):
        me = add("Me", "Other", born(30))
        result = eligible_spouses(store, actor, me["id"], "Other", "newMember", today=today)
        assert me["id"] not in [r["id"] for r in result]

    def test_scoped_to_family(self, add, store, other_actor, born, today):
        add("A", "Female", born(30))
        assert eligible_spouses(store, other_actor, None, "Male", "newMember", today=today) == []

    def test_unknown_mode(self, store, actor):
        with pytest.raises(InvalidInput):
            eligible_spouses(store, actor, None, "Male", "remarry")


class TestEligibleParents:
    """Tests for eligible_parents."""

    def test_married_couple_listed_once(self, add, store, actor, born, today):
        x = add("X", "Male", born(30))
        y = add("Y", "Female", born(30), spouse_id=x["id"])

        result = eligible_parents(store, actor, today=today)

        assert len(result) == 1
        entry = result[0]
        assert {entry["id"], entry["spouse"]["id"]} == {x["id"], y["id"]}

    def test_married_regardless_of_age(self, add, store, actor, born, today):
        x = add("Young", "Male", born(19))
        add("Younger", "Female", born(19), spouse_id=x["id"])
        assert len(eligible_parents(store, actor, today=today)) == 1

    def test_single_needs_twenty_years(self, add, store, actor, born, today):
        old_enough = add("Twenty", "Female", born(20))
        add("Nineteen", "Male", born(19))

        result = eligible_parents(store, actor, today=today)

        assert [r["id"] for r in result] == [old_enough["id"]]
        assert result[0]["spouse"] is None

    def test_entry_fields(self, add, store, actor, born, today):
        add("Solo", "Other", born(50))
        entry = eligible_parents(store, actor, today=today)[0]
        assert set(entry) == {"id", "name", "gender", "date_of_birth", "spouse"}
        assert entry["gender"] == "Other"
