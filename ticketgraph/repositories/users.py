"""User repository over (:User) nodes.

Passwords are hashed with passlib before they reach the store and are never
logged. Tickets reference users by id only, so deleting a user leaves its
tickets in place (relationships to it are detached).
"""

import logging

from passlib.context import CryptContext

from ..db_result_helpers import node_properties, to_native_datetime, to_store_datetime
from ..models import RepoResult, User, UserRole, generate_user_id
from .base import GraphRepository

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a recognised hash
        return False


def to_user(node) -> User:
    props = node_properties(node)
    fields = {
        "id": props["id"],
        "username": props.get("username") or "",
        "email": props.get("email") or "",
        "password_hash": props.get("passwordHash") or "",
        "full_name": props.get("fullName") or "",
        "role": props.get("role") or UserRole.CUSTOMER.value,
        "active": props.get("active", True) is not False,
    }
    created_at = to_native_datetime(props.get("createdAt"))
    if created_at is not None:
        fields["created_at"] = created_at
    return User(**fields)


class UserRepository(GraphRepository):
    label = "User"

    def create(self, user: User, password: str = None) -> RepoResult[User]:
        """Persist a new user. ``password``, when given, replaces any existing hash."""
        user = user.model_copy()
        if not user.id:
            user.id = generate_user_id()
        if password is not None:
            user.password_hash = hash_password(password)

        result = self._fetch_one("create", """
            CREATE (u:User {
                id: $id,
                username: $username,
                email: $email,
                passwordHash: $passwordHash,
                fullName: $fullName,
                role: $role,
                active: $active,
                createdAt: datetime($createdAt)
            })
            RETURN u
        """, {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "passwordHash": user.password_hash,
            "fullName": user.full_name,
            "role": UserRole(user.role).value,
            "active": user.active,
            "createdAt": to_store_datetime(user.created_at),
        }, to_user, "u")
        if result.ok:
            logger.info(f"User created: {user.id} ({user.username})")
        return result

    def update(self, user: User) -> RepoResult[User]:
        """Overwrite profile fields. The password hash is changed via change_password."""
        if not user.id:
            return RepoResult.missing()
        return self._fetch_one("update", """
            MATCH (u:User {id: $id})
            SET u.username = $username,
                u.email = $email,
                u.fullName = $fullName,
                u.role = $role,
                u.active = $active
            RETURN u
        """, {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "fullName": user.full_name,
            "role": UserRole(user.role).value,
            "active": user.active,
        }, to_user, "u")

    def change_password(self, user_id: str, new_password: str) -> RepoResult[User]:
        result = self._fetch_one("change_password", """
            MATCH (u:User {id: $id})
            SET u.passwordHash = $passwordHash
            RETURN u
        """, {"id": user_id, "passwordHash": hash_password(new_password)}, to_user, "u")
        if result.ok:
            logger.info(f"Password changed for user {user_id}")
        return result

    def authenticate(self, username: str, password: str) -> RepoResult[User]:
        """The user when the credentials match and the account is active, else NOT_FOUND."""
        found = self.find_by_username(username)
        if not found.ok:
            return found
        user = found.value
        if not user.active or not verify_password(password, user.password_hash):
            logger.info(f"Authentication rejected for {username}")
            return RepoResult.missing()
        return found

    def delete(self, user_id: str) -> RepoResult[bool]:
        result = self._execute("delete", """
            MATCH (u:User {id: $id})
            DETACH DELETE u
        """, {"id": user_id}, lambda rows: True)
        if result.ok:
            logger.info(f"User deleted: {user_id}")
        return result

    def find_by_id(self, user_id: str) -> RepoResult[User]:
        return self._fetch_one("find_by_id", "MATCH (u:User {id: $id}) RETURN u",
                               {"id": user_id}, to_user, "u")

    def find_by_username(self, username: str) -> RepoResult[User]:
        return self._fetch_one("find_by_username", "MATCH (u:User {username: $username}) RETURN u",
                               {"username": username}, to_user, "u")

    def find_by_email(self, email: str) -> RepoResult[User]:
        return self._fetch_one("find_by_email", "MATCH (u:User {email: $email}) RETURN u",
                               {"email": (email or "").strip().lower()}, to_user, "u")

    def find_all(self) -> RepoResult[list[User]]:
        return self._fetch_many("find_all", "MATCH (u:User) RETURN u ORDER BY u.username",
                                {}, to_user, "u")

    def find_by_role(self, role: UserRole) -> RepoResult[list[User]]:
        return self._fetch_many("find_by_role", """
            MATCH (u:User {role: $role})
            RETURN u ORDER BY u.username
        """, {"role": UserRole(role).value}, to_user, "u")

    def search(self, keyword: str) -> RepoResult[list[User]]:
        """Case-insensitive substring match on username, email or full name."""
        return self._fetch_many("search", """
            MATCH (u:User)
            WHERE toLower(u.username) CONTAINS toLower($keyword)
               OR toLower(u.email) CONTAINS toLower($keyword)
               OR toLower(u.fullName) CONTAINS toLower($keyword)
            RETURN u ORDER BY u.username
        """, {"keyword": keyword}, to_user, "u")

    def count(self) -> RepoResult[int]:
        return self._count("count", "MATCH (u:User) RETURN count(u) AS count")

    def count_by_role(self, role: UserRole) -> RepoResult[int]:
        return self._count("count_by_role", "MATCH (u:User {role: $role}) RETURN count(u) AS count",
                           {"role": UserRole(role).value})
