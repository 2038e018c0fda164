import logging
from typing import Optional

from supabase import AuthError as SupabaseAuthError
from supabase import Client

from orcamais.identity.base import (
    AuthError,
    EmailInUseError,
    IdentityProvider,
    InvalidCredentialsError,
    UserNotFoundError,
    UserRef,
    WeakPasswordError,
)

logger = logging.getLogger(__name__)

# Supabase auth error codes -> our error types
ERROR_CODES = {
    "invalid_credentials": InvalidCredentialsError,
    "email_not_confirmed": InvalidCredentialsError,
    "user_already_exists": EmailInUseError,
    "email_exists": EmailInUseError,
    "weak_password": WeakPasswordError,
    "user_not_found": UserNotFoundError,
}


def _translate(error: SupabaseAuthError) -> AuthError:
    code = getattr(error, "code", None)
    error_class = ERROR_CODES.get(code, AuthError)
    return error_class(f"supabase auth error {code}: {error}")


def _to_user_ref(user) -> Optional[UserRef]:
    if user is None:
        return None
    metadata = getattr(user, "user_metadata", None) or {}
    return UserRef(
        uid=user.id,
        email=user.email,
        display_name=metadata.get("display_name"),
    )


class SupabaseIdentityProvider(IdentityProvider):
    """Identity provider backed by Supabase Auth"""

    def __init__(self, client: Client):
        super().__init__()
        self.client = client
        self._current: Optional[UserRef] = None

    def sign_in(self, email: str, password: str) -> UserRef:
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except SupabaseAuthError as e:
            raise _translate(e) from e

        return self._set_current(_to_user_ref(response.user))

    def sign_up(self, email: str, password: str) -> UserRef:
        try:
            response = self.client.auth.sign_up({"email": email, "password": password})
        except SupabaseAuthError as e:
            raise _translate(e) from e

        if response.user is None:
            raise AuthError("Sign-up returned no user")
        return self._set_current(_to_user_ref(response.user))

    def update_profile(self, user: UserRef, display_name: str) -> UserRef:
        try:
            self.client.auth.update_user({"data": {"display_name": display_name}})
        except SupabaseAuthError as e:
            raise _translate(e) from e

        updated = UserRef(uid=user.uid, email=user.email, display_name=display_name)
        if self._current and self._current.uid == user.uid:
            self._current = updated
        return updated

    def send_password_reset(self, email: str) -> None:
        try:
            self.client.auth.reset_password_for_email(email)
        except SupabaseAuthError as e:
            raise _translate(e) from e

    def sign_out(self) -> None:
        try:
            self.client.auth.sign_out()
        except SupabaseAuthError as e:
            logger.warning("Supabase sign-out failed: %s", e)
        self._current = None
        self._notify(None)

    def current_user(self) -> Optional[UserRef]:
        return self._current

    def _set_current(self, user: UserRef) -> UserRef:
        self._current = user
        self._notify(user)
        return user
