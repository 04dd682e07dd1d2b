"""Client core for the Nanit care dashboard: session, vendor calls, token refresh and MFA login."""

from .authenticated import AuthenticatedClient
from .errors import (
    FlowStateError,
    InvalidResponse,
    NanitError,
    NotAuthenticated,
    SessionExpired,
    Unauthorized,
    UpstreamError,
    requires_login,
)
from .login_flow import LoginFlow, LoginState
from .models import Authenticated, Baby, CareEvent, CareEventKind, DiaperSubtype, MfaRequired, Session
from .session_store import JsonFileTokenStorage, MemoryTokenStorage, SessionStore, default_session_store
from .vendor_client import ProxyVendorClient, VendorClient, build_vendor_client
