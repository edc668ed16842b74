# stockdesk/auth.py
from enum import Enum
from typing import Any, Callable, List, Optional

import requests
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from stockdesk.config import Settings, current_settings
from stockdesk.errors import AuthError, NetworkError, StockdeskError, StoreError
from stockdesk.logger import get_logger

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthState(str, Enum):
    RESOLVING = "resolving"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class Gate(str, Enum):
    WAIT = "wait"          # render nothing protected yet
    REDIRECT = "redirect"  # send the user to sign-in
    ALLOW = "allow"


class User(BaseModel):
    id: str
    email: str


class AuthTokens(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


# ---------------------------
# Provider: the store's auth endpoints
# ---------------------------
class StoreAuthProvider:
    def __init__(self, settings: Callable[[], Settings] = current_settings, session: Optional[requests.Session] = None):
        self._settings = settings
        self.session = session if session is not None else requests.Session()

    def _call(self, method: str, path: str, action: str, token: Optional[str] = None, **kwargs):
        settings = self._settings()
        headers = {
            "apikey": settings.STORE_API_KEY,
            "Authorization": f"Bearer {token or settings.STORE_API_KEY}",
            "Content-Type": "application/json",
        }
        url = f"{settings.STORE_URL.rstrip('/')}/auth/v1/{path}"
        try:
            return self.session.request(method, url, headers=headers, timeout=settings.STORE_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"Failed to {action}", detail=str(e)) from e

    def sign_in(self, email: str, password: str) -> AuthTokens:
        r = self._call("POST", "token", "sign in", params={"grant_type": "password"},
                       json={"email": email, "password": password})
        if r.status_code in (400, 401):
            raise AuthError(INVALID_CREDENTIALS)
        if not 200 <= r.status_code < 300:
            raise StoreError("Failed to sign in", status_code=r.status_code)
        try:
            return AuthTokens.model_validate(r.json())
        except (ValueError, PydanticValidationError) as e:
            raise StoreError("Failed to sign in", detail="unexpected response") from e

    def get_user(self, access_token: str) -> Optional[User]:
        r = self._call("GET", "user", "fetch user", token=access_token)
        if r.status_code in (401, 403):
            return None
        if not 200 <= r.status_code < 300:
            raise StoreError("Failed to fetch user", status_code=r.status_code)
        try:
            return User.model_validate(r.json())
        except (ValueError, PydanticValidationError) as e:
            raise StoreError("Failed to fetch user", detail="unexpected response") from e

    def sign_out(self, access_token: str) -> None:
        r = self._call("POST", "logout", "sign out", token=access_token)
        if not 200 <= r.status_code < 300:
            raise StoreError("Failed to sign out", status_code=r.status_code)


# ---------------------------
# Session: who is signed in, shared by every view
# ---------------------------
class AuthSession:
    def __init__(self, provider: Any):
        self.provider = provider
        self.state = AuthState.RESOLVING
        self.user: Optional[User] = None
        self._token: Optional[str] = None
        self._listeners: List[Callable[["AuthSession"], None]] = []

    @property
    def access_token(self) -> Optional[str]:
        return self._token

    @property
    def loading(self) -> bool:
        return self.state is AuthState.RESOLVING

    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    def subscribe(self, listener: Callable[["AuthSession"], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _set(self, state: AuthState, user: Optional[User] = None, token: Optional[str] = None):
        self.state, self.user, self._token = state, user, token
        logger.debug("auth state -> %s", state.value)
        for listener in list(self._listeners):
            listener(self)

    def resolve(self, access_token: Optional[str] = None) -> AuthState:
        """Settle the initial state, restoring a saved access token if it is still valid"""
        user = None
        if access_token:
            try:
                user = self.provider.get_user(access_token)
            except StockdeskError as e:
                logger.warning("could not restore session: %s", e)
        if user is not None:
            self._set(AuthState.AUTHENTICATED, user, access_token)
        else:
            self._set(AuthState.ANONYMOUS)
        return self.state

    def sign_in(self, email: str, password: str) -> User:
        try:
            tokens = self.provider.sign_in(email, password)
        except StockdeskError as e:
            if not isinstance(e, AuthError):
                logger.warning("sign in failed: %s", e)
            self._set(AuthState.ANONYMOUS)
            raise AuthError(INVALID_CREDENTIALS) from e
        self._set(AuthState.AUTHENTICATED, tokens.user, tokens.access_token)
        logger.info("signed in as %s", tokens.user.email)
        return tokens.user

    def sign_out(self) -> None:
        token = self._token
        if token:
            try:
                self.provider.sign_out(token)
            except StockdeskError as e:
                logger.warning("remote sign out failed: %s", e)
        self._set(AuthState.ANONYMOUS)

    def gate(self) -> Gate:
        if self.state is AuthState.RESOLVING:
            return Gate.WAIT
        if self.state is AuthState.ANONYMOUS:
            return Gate.REDIRECT
        return Gate.ALLOW
