"""User directory, family signup rules and role gates.

Credentials and tokens live with the authentication layer; this module only
tracks which principal belongs to which family and with what role.
"""

from __future__ import annotations

import json
import logging
import random
import string
import threading
import time
from datetime import datetime
from pathlib import Path

from .errors import Conflict, InvalidInput, NotFound, PermissionDenied
from .helpers import is_valid_email, new_id, normalize_email
from .models import ROLES, Actor, User
from .store import PersonStore
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

EDIT_ROLES = ("admin", "sub-admin")
VIEW_ROLES = ("admin", "sub-admin", "viewer")
MANAGE_ROLES = ("admin",)

_BASE36 = string.digits + string.ascii_lowercase


def require_role(actor: Actor, roles: tuple[str, ...]) -> None:
    if actor.role not in roles:
        raise PermissionDenied(f"Access denied. Required roles: {', '.join(roles)}")


def _to_base36(n: int) -> str:
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_family_id() -> str:
    """New tenant id: FAM + base36 millisecond timestamp + 6 random chars."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_BASE36, k=6))
    return f"FAM{timestamp}{suffix}".upper()


class UserDirectory:
    """Principal collection keyed by user id, optionally persisted to a JSON file."""

    def __init__(self, path: Path | None = None):
        self.path = path
        self._users: dict[str, User] = {}
        self._lock = threading.RLock()
        if path is not None and path.exists():
            self._load()

    def __len__(self) -> int:
        return len(self._users)

    def add(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = user
            self._save()
        return user

    def get(self, user_id: str, family_id: str) -> User | None:
        user = self._users.get(user_id)
        if user and user.family_id == family_id:
            return user
        return None

    def find_by_email(self, email: str | None, family_id: str | None = None) -> User | None:
        email = normalize_email(email)
        if not email:
            return None
        for user in self._users.values():
            if user.email == email and (family_id is None or user.family_id == family_id):
                return user
        return None

    def family_exists(self, family_id: str) -> bool:
        return any(u.family_id == family_id for u in self._users.values())

    def members(self, family_id: str) -> list[User]:
        found = [u for u in self._users.values() if u.family_id == family_id]
        found.sort(key=lambda u: u.created_at or datetime.min)
        return found

    def count_admins(self, family_id: str) -> int:
        return sum(1 for u in self.members(family_id) if u.role == "admin")

    def update_fields(self, user: User, name: str | None = None, email: str | None = None) -> User:
        with self._lock:
            if name is not None:
                user.name = name
            if email is not None:
                user.email = normalize_email(email)
            self._save()
        logger.info(f"Synced user {user.id} with person record")
        return user

    def set_role(self, user: User, role: str) -> User:
        with self._lock:
            user.role = role
            self._save()
        return user

    def remove(self, user: User) -> None:
        with self._lock:
            self._users.pop(user.id, None)
            self._save()

    # ---- persistence ----

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load users from {self.path}: {e}")
            return
        for raw in data.get("users", []):
            if raw.get("created_at"):
                raw["created_at"] = datetime.fromisoformat(raw["created_at"])
            user = User(**raw)
            self._users[user.id] = user
        logger.info(f"Loaded {len(self._users)} users from {self.path}")

    def _save(self) -> None:
        if self.path is None:
            return
        payload = {"users": [u.to_dict() for u in self._users.values()]}
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2))
        tmp_path.replace(self.path)


def _signup_decision(family_id: str | None, role: str | None) -> tuple[str, str]:
    """Decide how a signup is placed.

    Returns (action, role) where action is "create" (new family) or "join".

        family_id | requested role       | outcome
        ----------+----------------------+------------------------------
        none      | anything             | create family, admin
        given     | admin                | rejected
        given     | sub-admin / viewer   | join with requested role
        given     | anything else / none | join as viewer
    """
    if not family_id:
        return "create", "admin"
    if role == "admin":
        raise InvalidInput("Cannot invite another admin to an existing family.")
    if role in ("sub-admin", "viewer"):
        return "join", role
    return "join", "viewer"


def signup(
    directory: UserDirectory,
    name: str,
    email: str,
    role: str | None = None,
    family_id: str | None = None,
) -> User:
    """Register a principal, either founding a new family or joining one."""
    email = normalize_email(email)
    if not name or not email or not is_valid_email(email):
        raise InvalidInput("A name and a valid email address are required.")
    if directory.find_by_email(email):
        raise Conflict("User already exists")

    action, assigned_role = _signup_decision(family_id, role)
    if action == "create":
        family_id = generate_family_id()
    elif not directory.family_exists(family_id):
        raise InvalidInput("Invalid family ID")

    user = directory.add(
        User(
            id=new_id(),
            name=name,
            email=email,
            family_id=family_id,
            role=assigned_role,
            created_at=datetime.now(),
        )
    )
    logger.info(f"Signup: {action} family {family_id} as {assigned_role}")
    return user


def update_user_role(directory: UserDirectory, actor: Actor, user_id: str, role: str) -> User:
    require_role(actor, MANAGE_ROLES)
    if role not in ROLES:
        raise InvalidInput("Invalid role. Must be admin, sub-admin, or viewer")
    user = directory.get(user_id, actor.family_id)
    if user is None:
        raise NotFound("User not found")
    if user.id == actor.actor_id:
        raise InvalidInput("Cannot change your own role")
    if user.role == "admin" and role != "admin" and directory.count_admins(actor.family_id) <= 1:
        raise InvalidInput("Cannot demote the last admin. Promote another user to admin first.")
    return directory.set_role(user, role)


def remove_user(directory: UserDirectory, actor: Actor, user_id: str) -> None:
    require_role(actor, MANAGE_ROLES)
    user = directory.get(user_id, actor.family_id)
    if user is None:
        raise NotFound("User not found")
    if user.id == actor.actor_id:
        raise InvalidInput("Cannot remove yourself from family")
    if user.role == "admin" and directory.count_admins(actor.family_id) <= 1:
        raise InvalidInput("Cannot remove the last admin. Promote another user to admin first.")
    directory.remove(user)


def invite_member(
    directory: UserDirectory, actor: Actor, name: str, email: str, role: str | None = None
) -> User:
    """Add a principal to the caller's family; admins only.

    Placement follows the signup table for a known family id, so an invite
    can never create a second admin.
    """
    require_role(actor, MANAGE_ROLES)
    if role is not None and role not in ROLES:
        raise InvalidInput("Invalid role. Must be admin, sub-admin, or viewer")
    return signup(directory, name, email, role=role or "viewer", family_id=actor.family_id)


def ensure_member(directory: UserDirectory, actor: Actor, name: str | None = None) -> User | None:
    """Register the configured caller as a member of its family if unknown.

    Returns the caller's user, or None when the caller has no email.

    Raises:
        Conflict: the email belongs to a user of another family.
    """
    email = normalize_email(actor.email)
    if not email:
        return None
    user = directory.find_by_email(email)
    if user is None:
        user = directory.add(
            User(
                id=actor.actor_id or new_id(),
                name=name or email.split("@")[0],
                email=email,
                family_id=actor.family_id,
                role=actor.role,
                created_at=datetime.now(),
            )
        )
        logger.info(f"Registered {email} as {actor.role} of family {actor.family_id}")
    elif user.family_id != actor.family_id:
        raise Conflict(f"{email} is registered with another family")
    return user


def change_email(directory: UserDirectory, store: PersonStore, actor: Actor, email: str) -> User:
    """Change the caller's own email, on their user and on their person record."""
    new_email = normalize_email(email)
    if not new_email or not is_valid_email(new_email):
        raise InvalidInput("Invalid email address.")

    if actor.actor_id:
        user = directory.get(actor.actor_id, actor.family_id)
    else:
        user = directory.find_by_email(actor.email, actor.family_id)
    if user is None:
        raise NotFound("User not found")
    existing = directory.find_by_email(new_email)
    if existing is not None and existing.id != user.id:
        raise Conflict("Email already in use.")

    old_email = user.email
    with UnitOfWork("change_email") as uow:
        uow.step("update user email", directory.update_fields, user, email=new_email)
        uow.step(
            "update person email",
            store.find_one_and_update,
            {"family_id": actor.family_id, "email": old_email},
            {"$set": {"email": new_email}},
        )
    return user
