"""Global configuration and the shared store instances."""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from .errors import InvalidInput
from .models import ROLES, Actor
from .store import PersonStore
from .tree import DEFAULT_DEPTH
from .users import UserDirectory, ensure_member

# Configuration (set by configure() at startup)
DATA_FILE: Path | None = None
TREE_DEPTH: int = DEFAULT_DEPTH
ACTOR: Actor | None = None

# Shared collections (replaced by configure())
STORE: PersonStore = PersonStore()
USERS: UserDirectory = UserDirectory()


def _resolve_data_path() -> Path | None:
    """Get the JSON store path from KINSHIP_DATA_FILE, if any.

    The file itself may not exist yet; its directory must.

    Raises:
        FileNotFoundError: If the parent directory does not exist.
    """
    env_path = os.getenv("KINSHIP_DATA_FILE")
    if not env_path:
        return None
    path = Path(env_path).expanduser().resolve()
    if not path.parent.is_dir():
        raise FileNotFoundError(f"Data directory not found: {path.parent}")
    return path


def _users_path(data_file: Path | None) -> Path | None:
    """Users are kept beside the person store: family.json -> family.users.json."""
    if data_file is None:
        return None
    return data_file.with_name(f"{data_file.stem}.users.json")


def _resolve_tree_depth() -> int:
    raw = os.getenv("KINSHIP_TREE_DEPTH", "")
    if not raw.strip():
        return DEFAULT_DEPTH
    try:
        depth = int(raw)
    except ValueError as e:
        raise ValueError(f"KINSHIP_TREE_DEPTH must be an integer, got {raw!r}") from e
    if depth < 0:
        raise ValueError(f"KINSHIP_TREE_DEPTH must not be negative, got {depth}")
    return depth


def _resolve_actor() -> Actor | None:
    """Build the caller context from KINSHIP_FAMILY_ID / _ACTOR_EMAIL / _ROLE."""
    family_id = os.getenv("KINSHIP_FAMILY_ID", "").strip()
    if not family_id:
        return None
    role = os.getenv("KINSHIP_ROLE", "viewer").strip() or "viewer"
    if role not in ROLES:
        raise ValueError(f"KINSHIP_ROLE must be one of {', '.join(ROLES)}, got {role!r}")
    return Actor(
        family_id=family_id,
        actor_id=os.getenv("KINSHIP_ACTOR_ID") or None,
        email=os.getenv("KINSHIP_ACTOR_EMAIL") or None,
        role=role,
    )


def get_actor() -> Actor:
    """The configured caller context.

    Raises:
        InvalidInput: If no family has been configured.
    """
    if ACTOR is None:
        raise InvalidInput(
            "No family configured. Set KINSHIP_FAMILY_ID (and KINSHIP_ACTOR_EMAIL, "
            "KINSHIP_ROLE) or pass --family-id on the command line."
        )
    return ACTOR


def configure() -> None:
    """Initialize configuration from environment. Called at startup.

    Loads .env file if present; existing env vars win. The configured caller
    is registered as a member of its family when not known yet.
    """
    global DATA_FILE, TREE_DEPTH, ACTOR, STORE, USERS
    load_dotenv()
    DATA_FILE = _resolve_data_path()
    TREE_DEPTH = _resolve_tree_depth()
    ACTOR = _resolve_actor()
    STORE = PersonStore(DATA_FILE)
    USERS = UserDirectory(_users_path(DATA_FILE))
    if ACTOR is not None:
        member = ensure_member(USERS, ACTOR)
        if member is not None and ACTOR.actor_id is None:
            ACTOR = replace(ACTOR, actor_id=member.id)
