# src/nanit_client/session_store.py

import json
import logging
import os
import typing
from pathlib import Path

from .config import Settings, settings
from .models import Authenticated, Session

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "nanit_token"
REFRESH_TOKEN_KEY = "nanit_refresh_token"


class TokenStorage(typing.Protocol):
    """Durable string key/value storage offered by the host environment."""

    def get(self, key: str) -> typing.Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryTokenStorage:
    """Storage that lives as long as the object. Useful for tests and one-off scripts."""

    def __init__(self, initial: typing.Optional[typing.Dict[str, str]] = None):
        self._data: typing.Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> typing.Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileTokenStorage:
    """Keeps tokens in a small JSON object on disk so they survive a restart."""

    def __init__(self, path: typing.Union[str, Path]):
        self.path = Path(path).expanduser()

    def _read(self) -> typing.Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("SessionStore: Ignoring unreadable token file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: typing.Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        # Owner-only from creation; readers never see a half-written file.
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def get(self, key: str) -> typing.Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SessionStore:
    """
    Owns the Session. Reads hydrate lazily from storage when the in-memory
    value is empty; writes go to memory and storage together.
    """

    def __init__(self, storage: TokenStorage, session: typing.Optional[Session] = None):
        self._storage = storage
        self.session = session if session is not None else Session()

    def get_access_token(self) -> typing.Optional[str]:
        if not self.session.access_token:
            self.session.access_token = self._storage.get(ACCESS_TOKEN_KEY)
        return self.session.access_token

    def get_refresh_token(self) -> typing.Optional[str]:
        if not self.session.refresh_token:
            self.session.refresh_token = self._storage.get(REFRESH_TOKEN_KEY)
        return self.session.refresh_token

    def set_access_token(self, token: str) -> None:
        self.session.access_token = token
        self._storage.set(ACCESS_TOKEN_KEY, token)

    def set_refresh_token(self, token: str) -> None:
        self.session.refresh_token = token
        self._storage.set(REFRESH_TOKEN_KEY, token)

    def store_tokens(self, result: Authenticated) -> None:
        self.set_access_token(result.access_token)
        # The vendor does not always rotate the refresh token.
        if result.refresh_token:
            self.set_refresh_token(result.refresh_token)

    def clear(self) -> None:
        self.session.access_token = None
        self.session.refresh_token = None
        self._storage.remove(ACCESS_TOKEN_KEY)
        self._storage.remove(REFRESH_TOKEN_KEY)
        logger.info("SessionStore: Session cleared.")


def default_session_store(cfg: Settings = settings) -> SessionStore:
    return SessionStore(JsonFileTokenStorage(cfg.NANIT_TOKEN_STORE_PATH))
