import hashlib
import logging
import secrets
import sqlite3
import uuid
from typing import Optional

from orcamais.database.connection import DatabaseManager
from orcamais.identity.base import (
    EmailInUseError,
    IdentityProvider,
    InvalidCredentialsError,
    UserNotFoundError,
    UserRef,
    WeakPasswordError,
)
from orcamais.repositories.base import PersistenceError
from orcamais.utils.validators import validate_password

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000


def hash_password(password: str, salt: str) -> str:
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), PBKDF2_ITERATIONS
    )
    return digest.hex()


class SQLiteIdentityProvider(IdentityProvider):
    """
    Local identity provider backed by the application database.

    Passwords are stored as salted PBKDF2 hashes. The signed-in user is
    remembered in the `sessions` table so a new process resumes it.
    """

    def __init__(self, db_manager: DatabaseManager):
        super().__init__()
        self.db = db_manager
        self._current: Optional[UserRef] = self._restore_session()

    def sign_in(self, email: str, password: str) -> UserRef:
        row = self._find_account(email)
        if row is None or hash_password(password, row["salt"]) != row["password_hash"]:
            raise InvalidCredentialsError(f"Sign-in rejected for {email}")

        user = self._row_to_user(row)
        self._start_session(user)
        return user

    def sign_up(self, email: str, password: str) -> UserRef:
        if not validate_password(password):
            raise WeakPasswordError("Password shorter than 6 characters")

        uid = uuid.uuid4().hex
        salt = secrets.token_hex(16)
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO accounts (uid, email, password_hash, salt)
                    VALUES (?, ?, ?, ?)
                    """,
                    (uid, email.strip(), hash_password(password, salt), salt),
                )
        except sqlite3.IntegrityError as e:
            raise EmailInUseError(f"{email} already registered") from e
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not create account: {e}") from e

        user = UserRef(uid=uid, email=email.strip())
        self._start_session(user)
        logger.info("Created local account %s", uid)
        return user

    def update_profile(self, user: UserRef, display_name: str) -> UserRef:
        self._execute(
            "update profile",
            "UPDATE accounts SET display_name = ? WHERE uid = ?",
            (display_name, user.uid),
        )

        updated = UserRef(uid=user.uid, email=user.email, display_name=display_name)
        if self._current and self._current.uid == user.uid:
            self._current = updated
        return updated

    def send_password_reset(self, email: str) -> None:
        """
        Record a reset token for the account.

        There is no mail server locally; the token is logged so an
        operator can hand it over.
        """
        row = self._find_account(email)
        if row is None:
            raise UserNotFoundError(f"No account for {email}")

        token = secrets.token_urlsafe(24)
        self._execute(
            "record password reset",
            "INSERT INTO password_resets (token, uid) VALUES (?, ?)",
            (token, row["uid"]),
        )
        logger.info("Password reset requested for %s (token %s)", email, token)

    def sign_out(self) -> None:
        self._execute("sign out", "DELETE FROM sessions")
        self._current = None
        self._notify(None)

    def current_user(self) -> Optional[UserRef]:
        return self._current

    def _start_session(self, user: UserRef) -> None:
        self._execute(
            "start session",
            """
            INSERT INTO sessions (id, uid) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET
                uid = excluded.uid,
                signed_in_at = CURRENT_TIMESTAMP
            """,
            (user.uid,),
        )
        self._current = user
        self._notify(user)

    def _restore_session(self) -> Optional[UserRef]:
        row = self._query_one(
            "restore session",
            """
            SELECT a.uid, a.email, a.display_name
            FROM sessions s JOIN accounts a ON a.uid = s.uid
            WHERE s.id = 1
            """,
        )
        return self._row_to_user(row) if row else None

    def _find_account(self, email: str) -> Optional[sqlite3.Row]:
        return self._query_one(
            "find account",
            "SELECT * FROM accounts WHERE email = ?",
            (email.strip(),),
        )

    def _execute(self, action: str, sql: str, params: tuple = ()) -> None:
        try:
            with self.db.transaction() as conn:
                conn.execute(sql, params)
        except sqlite3.Error as e:
            logger.error("Could not %s: %s", action, e)
            raise PersistenceError(f"Could not {action}: {e}") from e

    def _query_one(self, action: str, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        try:
            return self.db.get_connection().execute(sql, params).fetchone()
        except sqlite3.Error as e:
            logger.error("Could not %s: %s", action, e)
            raise PersistenceError(f"Could not {action}: {e}") from e

    def _row_to_user(self, row: sqlite3.Row) -> UserRef:
        return UserRef(
            uid=row["uid"],
            email=row["email"],
            display_name=row["display_name"],
        )
