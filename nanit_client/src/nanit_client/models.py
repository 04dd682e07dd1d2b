# src/nanit_client/models.py

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Session(BaseModel):
    """
    The tokens of the one signed-in account.
    Only SessionStore mutates it; everything else reads through the store.
    """
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


# --- Login results ---

class Authenticated(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None


class MfaRequired(BaseModel):
    mfa_token: str
    channel: str = ""
    phone_suffix: Optional[str] = None


LoginResult = Union[Authenticated, MfaRequired]


# --- Care data ---

class CareEventKind(str, Enum):
    DIAPER_CHANGE = "diaper_change"
    BOTTLE_FEED = "bottle_feed"


class DiaperSubtype(str, Enum):
    PEE = "pee"
    POO = "poo"
    MIXED = "mixed"


class CareEvent(BaseModel):
    """One logged diaper change or bottle feed. Field aliases are the vendor's wire names."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    timestamp_seconds: int = Field(alias="time")
    kind: CareEventKind = Field(alias="type")
    diaper_subtype: Optional[DiaperSubtype] = Field(default=None, alias="change_type")
    feed_volume_ml: Optional[float] = Field(default=None, alias="feed_amount")

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v: Any) -> str:
        return str(v)

    @field_validator("timestamp_seconds", mode="before")
    @classmethod
    def whole_seconds(cls, v: Any) -> int:
        # pydantic only reports ValueError as a validation failure
        try:
            return int(float(v))
        except TypeError as e:
            raise ValueError(f"time must be a number, got {type(v).__name__}") from e


class Baby(BaseModel):
    uid: str
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    birthday: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)
