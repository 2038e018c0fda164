import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

from orcamais.domain.errors import OrcaMaisError

logger = logging.getLogger(__name__)


class AuthError(OrcaMaisError):
    """
    Identity provider rejection.

    Each subclass carries a fixed user-facing message; the provider's own
    error code is never shown to the user.
    """
    user_message = "Não foi possível autenticar. Tente novamente."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


class InvalidCredentialsError(AuthError):
    user_message = "Usuário ou senha inválidos."


class EmailInUseError(AuthError):
    user_message = "Este email já está em uso."


class WeakPasswordError(AuthError):
    user_message = "A senha deve ter pelo menos 6 caracteres."


class UserNotFoundError(AuthError):
    user_message = "Nenhuma conta encontrada com este email."


class NotAuthenticatedError(AuthError):
    user_message = "Faça login para continuar."


@dataclass(frozen=True)
class UserRef:
    """Identity of an authenticated user"""
    uid: str
    email: str
    display_name: Optional[str] = None


AuthListener = Callable[[Optional[UserRef]], None]


class IdentityProvider(ABC):
    """
    Abstract identity provider.

    Subclasses call `_notify` whenever the signed-in user changes so
    that every listener registered with `on_auth_state_changed` learns
    about it.
    """

    def __init__(self):
        self._listeners: List[AuthListener] = []

    @abstractmethod
    def sign_in(self, email: str, password: str) -> UserRef:
        """
        Raises:
            InvalidCredentialsError: Wrong email or password
        """
        pass

    @abstractmethod
    def sign_up(self, email: str, password: str) -> UserRef:
        """
        Create an account and sign it in.

        Raises:
            EmailInUseError: An account already uses this email
            WeakPasswordError: The provider rejected the password
        """
        pass

    @abstractmethod
    def update_profile(self, user: UserRef, display_name: str) -> UserRef:
        pass

    @abstractmethod
    def send_password_reset(self, email: str) -> None:
        """
        Raises:
            UserNotFoundError: No account uses this email
        """
        pass

    @abstractmethod
    def sign_out(self) -> None:
        pass

    @abstractmethod
    def current_user(self) -> Optional[UserRef]:
        pass

    def on_auth_state_changed(self, callback: AuthListener) -> Callable[[], None]:
        """
        Register a callback for session changes.

        The callback is invoked right away with the current user, then on
        every sign-in and sign-out.

        Returns:
            A function that removes the callback
        """
        self._listeners.append(callback)
        callback(self.current_user())

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, user: Optional[UserRef]) -> None:
        for listener in list(self._listeners):
            listener(user)
