"""Organization accounts: registration, confirmation, login and profile."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .errors import (
    AccountNotFound,
    DuplicateAccount,
    InvalidCredentials,
    ValidationError,
    VerificationPending,
)
from .models import User
from .registry import RegistryService
from .storage import JsonStore, StoreKeys

logger = logging.getLogger(__name__)

_REGISTRATION_FIELDS = {
    "email": "email",
    "password": "password",
    "fullName": "full_name",
    "organization": "organization",
    "jobTitle": "job_title",
}


def _field(payload: Mapping[str, Any], camel: str, snake: str) -> str:
    value = payload.get(camel)
    if value is None:
        value = payload.get(snake)
    return "" if value is None else str(value)


class AccountService:
    """Manages the all-users collection, pending registrations and the session user."""

    def __init__(
        self,
        store: JsonStore,
        registry: RegistryService,
        *,
        min_password_length: int = 6,
    ) -> None:
        self.store = store
        self.registry = registry
        self.min_password_length = min_password_length

    # registration -------------------------------------------------------
    def register(self, payload: Mapping[str, Any]) -> User:
        values = {
            snake: _field(payload, camel, snake) for camel, snake in _REGISTRATION_FIELDS.items()
        }
        missing = {
            key: "This field is required"
            for key, value in values.items()
            if key != "password" and not value.strip()
        }
        if not values["password"]:
            missing["password"] = "This field is required"
        if missing:
            raise ValidationError("Please fill in all required fields", missing)
        email = values["email"].strip()
        with self.store.lock:
            if self._find_user(self._load_users_locked(), email) is not None:
                raise DuplicateAccount("An account with this email already exists")
            user = User(
                email=email,
                full_name=values["full_name"].strip(),
                organization=values["organization"].strip(),
                job_title=values["job_title"].strip(),
                password_hash=generate_password_hash(values["password"]),
                is_admin="admin" in email,
                is_verified=False,
                notifications_enabled=True,
            )
            self.store.save(StoreKeys.pending_user(email), user.to_record())
        logger.info("Registered pending account %s", email)
        return user

    def confirm(self, email: str) -> User:
        email = email.strip()
        key = StoreKeys.pending_user(email)
        with self.store.lock:
            pending = self.store.load_dict(key)
            if pending is None:
                raise AccountNotFound(f"No pending registration for '{email}'")
            try:
                user = User.from_record(pending)
            except ValueError as exc:
                self.store.delete(key)
                raise AccountNotFound(f"No pending registration for '{email}'") from exc
            user.is_verified = True
            users = [
                existing
                for existing in self._load_users_locked()
                if existing.email != user.email
            ]
            users.append(user)
            self._save_users_locked(users)
            self.store.delete(key)
        logger.info("Confirmed account %s", email)
        return user

    # session ------------------------------------------------------------
    def login(self, email: str, password: str) -> User:
        email = (email or "").strip()
        with self.store.lock:
            user = self._find_user(self._load_users_locked(), email)
            if user is None:
                pending = self.store.load_dict(StoreKeys.pending_user(email))
                if pending is not None:
                    try:
                        user = User.from_record(pending)
                    except ValueError:
                        user = None
            if user is None or not user.password_hash or not check_password_hash(
                user.password_hash, password or ""
            ):
                raise InvalidCredentials("Invalid email or password")
            if not user.is_verified:
                raise VerificationPending(
                    "Email is not confirmed yet, follow the link in the confirmation email"
                )
            self.start_session(user)
        logger.info("User %s logged in", email)
        return user

    def start_session(self, user: User) -> None:
        if not user.is_verified:
            raise VerificationPending("Email is not confirmed yet")
        self.store.save(StoreKeys.CURRENT_USER, user.to_record())

    def logout(self) -> None:
        self.store.delete(StoreKeys.CURRENT_USER)

    def current_user(self) -> Optional[User]:
        """Return the persisted session user, discarding unverified ones."""

        with self.store.lock:
            record = self.store.load_dict(StoreKeys.CURRENT_USER)
            if record is None:
                return None
            try:
                user = User.from_record(record)
            except ValueError:
                user = None
            if user is None or not user.is_verified:
                self.store.delete(StoreKeys.CURRENT_USER)
                return None
            return user

    def get_user(self, email: str) -> User:
        with self.store.lock:
            user = self._find_user(self._load_users_locked(), email)
        if user is None:
            raise AccountNotFound(f"User '{email}' not found")
        return user

    def list_users(self) -> List[User]:
        with self.store.lock:
            return self._load_users_locked()

    # profile ------------------------------------------------------------
    def change_password(
        self, email: str, current: str, new: str, confirm: str
    ) -> User:
        with self.store.lock:
            user = self.get_user(email)
            if not check_password_hash(user.password_hash, current or ""):
                raise ValidationError(
                    "Current password is incorrect", {"current": "Incorrect password"}
                )
            if new != confirm:
                raise ValidationError(
                    "New passwords do not match", {"confirm": "Passwords do not match"}
                )
            if len(new or "") < self.min_password_length:
                raise ValidationError(
                    f"New password is too short (min. {self.min_password_length} characters)",
                    {"new": "Too short"},
                )
            user.password_hash = generate_password_hash(new)
            self._replace_user_locked(user)
        logger.info("Password changed for %s", email)
        return user

    def toggle_notifications(self, email: str) -> User:
        with self.store.lock:
            user = self.get_user(email)
            user.notifications_enabled = not user.notifications_enabled
            self._replace_user_locked(user)
        if user.notifications_enabled:
            logger.info("Notifications enabled for %s", email)
        else:
            logger.info("Notifications disabled for %s", email)
        return user

    def delete_account(self, email: str, password: str) -> None:
        with self.store.lock:
            user = self.get_user(email)
            if not check_password_hash(user.password_hash, password or ""):
                raise InvalidCredentials("Incorrect password for account deletion")
            users = [
                existing for existing in self._load_users_locked() if existing.email != email
            ]
            self._save_users_locked(users)
            self.registry.purge()
            self.logout()
        logger.info("Deleted account %s and purged its records", email)

    # helpers ------------------------------------------------------------
    def _replace_user_locked(self, user: User) -> None:
        users = self._load_users_locked()
        for index, existing in enumerate(users):
            if existing.email == user.email:
                users[index] = user
                break
        else:
            raise AccountNotFound(f"User '{user.email}' not found")
        self._save_users_locked(users)
        current = self.store.load_dict(StoreKeys.CURRENT_USER)
        if current is not None and current.get("email") == user.email:
            self.store.save(StoreKeys.CURRENT_USER, user.to_record())

    def _load_users_locked(self) -> List[User]:
        users: List[User] = []
        for record in self.store.load_list(StoreKeys.ALL_USERS):
            try:
                users.append(User.from_record(record))
            except ValueError:
                continue
        return users

    def _save_users_locked(self, users: List[User]) -> None:
        self.store.save(StoreKeys.ALL_USERS, [user.to_record() for user in users])

    @staticmethod
    def _find_user(users: List[User], email: str) -> Optional[User]:
        for user in users:
            if user.email == email:
                return user
        return None

    @staticmethod
    def profile_summary(user: User, records_total: int, synced_total: int) -> Dict[str, Any]:
        payload = user.to_public_dict()
        payload["recordsTotal"] = records_total
        payload["recordsSynced"] = synced_total
        return payload


__all__ = ["AccountService"]
