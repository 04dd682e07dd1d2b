# src/nanit_client/login_flow.py

import logging
import typing
from enum import Enum

from .errors import FlowStateError, NanitError
from .models import Authenticated, MfaRequired
from .session_store import SessionStore
from .vendor_client import VendorClient

logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    AWAITING_CREDENTIALS = "awaiting_credentials"
    AWAITING_MFA_CODE = "awaiting_mfa_code"
    AUTHENTICATED = "authenticated"


class LoginFlow:
    """
    Two-step sign-in: password first, then the one-time code when the vendor
    asks for one. Failures keep the current step, record `error` for display
    and propagate to the awaiting caller.
    """

    def __init__(self, vendor_client: VendorClient, session_store: SessionStore):
        self.vendor_client = vendor_client
        self.session_store = session_store
        self.error: typing.Optional[str] = None
        self.challenge: typing.Optional[MfaRequired] = None
        self._email: typing.Optional[str] = None
        self._password: typing.Optional[str] = None
        if session_store.get_access_token():
            self.state = LoginState.AUTHENTICATED
        else:
            self.state = LoginState.AWAITING_CREDENTIALS

    # Fields shown on the code entry screen
    @property
    def mfa_token(self) -> typing.Optional[str]:
        return self.challenge.mfa_token if self.challenge else None

    @property
    def channel(self) -> typing.Optional[str]:
        return self.challenge.channel if self.challenge else None

    @property
    def phone_suffix(self) -> typing.Optional[str]:
        return self.challenge.phone_suffix if self.challenge else None

    def _expect(self, state: LoginState) -> None:
        if self.state != state:
            raise FlowStateError(f"Expected state '{state.value}', flow is in '{self.state.value}'.")

    def _complete(self, result: Authenticated) -> LoginState:
        self.session_store.store_tokens(result)
        self.state = LoginState.AUTHENTICATED
        self.challenge = None
        self._email = self._password = None
        return self.state

    async def submit_credentials(self, email: str, password: str) -> LoginState:
        self._expect(LoginState.AWAITING_CREDENTIALS)
        self.error = None
        try:
            result = await self.vendor_client.login(email, password)
        except NanitError as e:
            self.error = e.message
            raise

        if isinstance(result, MfaRequired):
            self._email, self._password = email, password
            self.challenge = result
            self.state = LoginState.AWAITING_MFA_CODE
            return self.state
        return self._complete(result)

    async def submit_code(self, code: str) -> LoginState:
        self._expect(LoginState.AWAITING_MFA_CODE)
        self.error = None
        try:
            result = await self.vendor_client.verify_mfa(
                self._email, self._password, self.challenge.mfa_token, code, self.challenge.channel)
        except NanitError as e:
            self.error = e.message
            raise
        logger.info("LoginFlow: Signed in after MFA.")
        return self._complete(result)

    def back(self) -> LoginState:
        self._expect(LoginState.AWAITING_MFA_CODE)
        self.state = LoginState.AWAITING_CREDENTIALS
        self.challenge = None
        self.error = None
        self._email = self._password = None
        return self.state

    def sign_out(self) -> LoginState:
        self.session_store.clear()
        self.state = LoginState.AWAITING_CREDENTIALS
        self.challenge = None
        self.error = None
        self._email = self._password = None
        return self.state
