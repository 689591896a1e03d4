import logging
import re
import secrets
from typing import Any, Dict, Optional

from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import PUBLIC, SESSIONS, USERS, create_document, new_id
from errors import Conflict, NotFound

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

# Fields an account holder or admin may change after signup
UPDATABLE_USER_FIELDS = {"email", "phone_number", "gender", "password_hash", "is_admin"}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _ci_exact(value: str) -> Dict[str, str]:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password_hash"}


class UserService:
    def __init__(self, db: Database):
        self.users = db[USERS]
        self.db = db

    def create_user(
        self,
        username: str,
        email: str,
        phone_number: str,
        gender: str,
        password_hash: str,
        is_admin: bool = False,
    ) -> Dict[str, Any]:
        username = username.strip()
        email = email.strip().lower()
        phone_number = phone_number.strip()

        # Not atomic on its own; the unique indexes catch what slips through
        if self.find_user_by_username(username):
            raise Conflict("Username already exists", field="username")
        if self.find_user_by_email(email):
            raise Conflict("Email already exists", field="email")
        if self.users.find_one({"phone_number": phone_number}):
            raise Conflict("Phone number already exists", field="phone_number")

        doc = {
            "id": new_id(),
            "username": username,
            "email": email,
            "phone_number": phone_number,
            "gender": gender,
            "password_hash": password_hash,
            "is_admin": is_admin,
        }
        try:
            user = create_document(self.db, USERS, doc)
        except DuplicateKeyError as e:
            raise Conflict("User already exists") from e
        logger.info("Created user %s (%s)", user["username"], user["id"])
        return user

    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"username": _ci_exact(username)}, PUBLIC)

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"email": _ci_exact(email)}, PUBLIC)

    def find_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"id": user_id}, PUBLIC)

    def find_user_by_login(self, email_or_username: str) -> Optional[Dict[str, Any]]:
        value = email_or_username.strip()
        if "@" in value:
            return self.find_user_by_email(value)
        return self.find_user_by_username(value)

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        changes = {k: v for k, v in updates.items() if k in UPDATABLE_USER_FIELDS}
        user = self.users.find_one_and_update(
            {"id": user_id},
            {"$set": changes},
            projection=PUBLIC,
            return_document=True,
        )
        if not user:
            raise NotFound("User not found", id=user_id)
        return user

    def set_admin(self, user_id: str, is_admin: bool = True) -> Dict[str, Any]:
        return self.update_user(user_id, {"is_admin": is_admin})

    def delete_user(self, user_id: str) -> bool:
        res = self.users.delete_one({"id": user_id})
        if res.deleted_count:
            logger.info("Deleted user %s", user_id)
        return res.deleted_count > 0

    def ensure_admin(self, username: str, email: str, password: str, phone_number: str) -> Optional[Dict[str, Any]]:
        """Create or promote the seed admin.

        Returns None, and seeds nothing, when the email or phone already
        belongs to a different account.
        """
        existing = self.find_user_by_username(username)
        if existing:
            if existing.get("is_admin"):
                return existing
            logger.info("Promoting %s to admin", username)
            return self.set_admin(existing["id"], True)
        try:
            return self.create_user(
                username=username,
                email=email,
                phone_number=phone_number,
                gender="other",
                password_hash=hash_password(password),
                is_admin=True,
            )
        except Conflict as e:
            logger.warning("Skipping admin seed for %s: %s", username, e.message)
            return None


class SessionService:
    """Bearer sessions stored as plain documents. They never expire on their own."""

    def __init__(self, db: Database):
        self.sessions = db[SESSIONS]
        self.db = db

    def create_session(self, user_id: str) -> Dict[str, Any]:
        session = create_document(self.db, SESSIONS, {"token": secrets.token_urlsafe(32), "user_id": user_id})
        session.pop("updated_at", None)
        return session

    def get_session(self, token: str) -> Optional[Dict[str, Any]]:
        return self.sessions.find_one({"token": token}, PUBLIC)

    def delete_session(self, token: str) -> bool:
        return self.sessions.delete_one({"token": token}).deleted_count > 0

    def delete_user_sessions(self, user_id: str) -> bool:
        res = self.sessions.delete_many({"user_id": user_id})
        logger.info("Deleted %d session(s) for user %s", res.deleted_count, user_id)
        return res.deleted_count > 0
