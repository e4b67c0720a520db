"""MCP tool definitions for the kinship server.

Every tool runs as the configured caller (see state.get_actor). Mutations and
the pickers that feed them need an admin or sub-admin role, member management
needs admin, and reads accept any role.
"""

from dataclasses import replace

from . import state
from .core import get_occupations, get_person, get_statistics, list_persons, search_persons
from .eligibility import MODE_NEW_MEMBER, eligible_parents, eligible_spouses
from .maintainer import create_person, delete_person, update_person
from .tree import get_ancestors, get_descendants, get_family_tree
from .users import (
    EDIT_ROLES,
    VIEW_ROLES,
    change_email,
    invite_member,
    remove_user,
    require_role,
    update_user_role,
)


def _viewer():
    actor = state.get_actor()
    require_role(actor, VIEW_ROLES)
    return actor


def _editor():
    actor = state.get_actor()
    require_role(actor, EDIT_ROLES)
    return actor


def register_tools(mcp):
    """Register all MCP tools with the server."""

    # ============== MUTATION TOOLS (3) ==============

    @mcp.tool()
    def add_person(
        name: str,
        gender: str,
        date_of_birth: str,
        place_of_birth: str,
        parent_ids: list[str] | None = None,
        spouse_id: str | None = None,
        current_address: str | None = None,
        contact_number: str | None = None,
        country_code: str | None = None,
        email: str | None = None,
        occupation: str | None = None,
        photo: str | None = None,
    ) -> dict:
        """
        Add a person to the family and link parents and spouse.

        The new person is added to each parent's children. With a spouse,
        both partners end up sharing the same children.

        Args:
            name: Full name
            gender: "Male", "Female" or "Other"
            date_of_birth: ISO date, e.g. "1980-04-12"
            place_of_birth: Place of birth
            parent_ids: Ids of existing parents in this family
            spouse_id: Id of an existing spouse in this family

        Returns:
            The stored person with parents, spouse and children populated
        """
        attributes = {
            "name": name,
            "gender": gender,
            "date_of_birth": date_of_birth,
            "place_of_birth": place_of_birth,
            "current_address": current_address,
            "contact_number": contact_number,
            "country_code": country_code,
            "email": email,
            "occupation": occupation,
            "photo": photo,
        }
        return create_person(state.STORE, _editor(), attributes, parent_ids, spouse_id)

    @mcp.tool()
    def edit_person(person_id: str, changes: dict) -> dict:
        """
        Update any fields of a person, re-linking relationships as needed.

        "parent_ids" replaces the parent list. "spouse_id" set to null or ""
        removes the spouse; a different id switches spouses.

        Args:
            person_id: Id of the person to change
            changes: Field name to new value

        Returns:
            The updated person with relations populated
        """
        return update_person(state.STORE, state.USERS, _editor(), person_id, changes)

    @mcp.tool()
    def remove_person(person_id: str) -> dict:
        """
        Delete a person and remove every reference to them.

        Args:
            person_id: Id of the person to delete

        Returns:
            Confirmation message
        """
        delete_person(state.STORE, _editor(), person_id)
        return {"success": True, "message": "Person deleted and relations cleaned up"}

    # ============== LOOKUP TOOLS (4) ==============

    @mcp.tool()
    def get_person_details(person_id: str) -> dict | None:
        """
        Get a person with parents, spouse and children summaries.

        Args:
            person_id: Id of the person

        Returns:
            Person record, or None if not in this family
        """
        return get_person(state.STORE, _viewer(), person_id)

    @mcp.tool()
    def list_family_persons() -> list[dict]:
        """List every person in the family with relations populated."""
        return list_persons(state.STORE, _viewer())

    @mcp.tool()
    def search_person_names(name: str, max_results: int = 20) -> list[dict]:
        """
        Fuzzy search for people by name (handles typos and partial names).

        Args:
            name: Name or part of a name
            max_results: Maximum number of matches

        Returns:
            Person summaries with a match score, best first
        """
        return search_persons(state.STORE, _viewer(), name, max_results=max_results)

    @mcp.tool()
    def suggest_occupations(search: str | None = None) -> list[str]:
        """
        Occupations already used in the family, for autocomplete.

        Args:
            search: Optional case-insensitive substring

        Returns:
            Up to ten occupations, alphabetically
        """
        return get_occupations(state.STORE, _viewer(), search)

    # ============== PICKER TOOLS (2) ==============

    @mcp.tool()
    def find_eligible_spouses(
        current_person_id: str | None = None,
        current_person_gender: str | None = None,
        mode: str = MODE_NEW_MEMBER,
    ) -> list[dict]:
        """
        Adults who can be chosen as spouse.

        Args:
            current_person_id: Person being edited (excluded from results)
            current_person_gender: "Male" or "Female" restricts to the other gender
            mode: "newMember" (unmarried only) or "edit" (married allowed)

        Returns:
            List of {id, name}
        """
        return eligible_spouses(
            state.STORE, _editor(), current_person_id, current_person_gender, mode
        )

    @mcp.tool()
    def find_eligible_parents() -> list[dict]:
        """
        People who can be chosen as parent: married couples (listed once) and
        unmarried people aged 20 or more.
        """
        return eligible_parents(state.STORE, _editor())

    # ============== TREE AND STATISTICS TOOLS (4) ==============

    @mcp.tool()
    def get_my_family_tree(depth: int | None = None) -> list[dict]:
        """
        Family trees containing the caller's own person record.

        Args:
            depth: Generations below each root (default from KINSHIP_TREE_DEPTH)

        Returns:
            List of nested trees; nodes carry spouse and children
        """
        return get_family_tree(state.STORE, _viewer(), state.TREE_DEPTH if depth is None else depth)

    @mcp.tool()
    def get_person_descendants(person_id: str, generations: int = 3) -> dict:
        """
        Descendant tree below one person.

        Args:
            person_id: Id of the top person
            generations: Generations to include
        """
        return get_descendants(state.STORE, _viewer(), person_id, generations)

    @mcp.tool()
    def get_person_ancestors(person_id: str, generations: int = 3) -> dict:
        """
        Ancestor tree above one person (capped at 10 generations).

        Args:
            person_id: Id of the person
            generations: Generations to include
        """
        return get_ancestors(state.STORE, _viewer(), person_id, generations)

    @mcp.tool()
    def get_family_statistics() -> dict:
        """Counts of people, genders, roots and couples in the family."""
        return get_statistics(state.STORE, _viewer())

    # ============== MEMBER TOOLS (5) ==============

    @mcp.tool()
    def get_family_info() -> dict:
        """The caller's family id and its members, oldest account first."""
        actor = _viewer()
        return {
            "family_id": actor.family_id,
            "members": [u.to_dict() for u in state.USERS.members(actor.family_id)],
        }

    @mcp.tool()
    def invite_family_member(name: str, email: str, role: str = "viewer") -> dict:
        """
        Add a user to the caller's family (admin only).

        Args:
            name: Display name
            email: Login email, unique across all families
            role: "sub-admin" or "viewer"; a second admin cannot be invited

        Returns:
            The new user
        """
        return invite_member(state.USERS, state.get_actor(), name, email, role).to_dict()

    @mcp.tool()
    def update_member_role(user_id: str, role: str) -> dict:
        """
        Change another member's role (admin only). The last admin cannot be demoted.

        Args:
            user_id: Id of the member
            role: "admin", "sub-admin" or "viewer"
        """
        return update_user_role(state.USERS, state.get_actor(), user_id, role).to_dict()

    @mcp.tool()
    def remove_family_member(user_id: str) -> dict:
        """
        Remove another member from the family (admin only).

        Args:
            user_id: Id of the member
        """
        remove_user(state.USERS, state.get_actor(), user_id)
        return {"success": True, "message": "User removed from family"}

    @mcp.tool()
    def change_my_email(email: str) -> dict:
        """
        Change the caller's email on their user and their own person record.

        Args:
            email: New email address

        Returns:
            The updated user
        """
        actor = _viewer()
        user = change_email(state.USERS, state.STORE, actor, email)
        state.ACTOR = replace(actor, email=user.email)
        return user.to_dict()
