"""MCP resource definitions for the kinship server."""

from . import state
from .core import get_occupations, get_person, get_statistics


def register_resources(mcp):
    """Register all MCP resources with the server."""

    @mcp.resource("kinship://person/{id}")
    def resource_person(id: str) -> str:
        """Get person record by ID."""
        person = get_person(state.STORE, state.get_actor(), id)
        if person:
            return str(person)
        return f"Person {id} not found"

    @mcp.resource("kinship://members")
    def resource_members() -> str:
        """Users of the configured family with their roles."""
        actor = state.get_actor()
        return "\n".join(
            f"{u.name} <{u.email}>: {u.role}" for u in state.USERS.members(actor.family_id)
        )

    @mcp.resource("kinship://occupations")
    def resource_occupations() -> str:
        return "\n".join(get_occupations(state.STORE, state.get_actor()))

    @mcp.resource("kinship://stats")
    def resource_stats() -> str:
        """Get family statistics."""
        return str(get_statistics(state.STORE, state.get_actor()))
