# memory/profile_store.py
"""
Optional demographic hints per session.

The real profile store lives outside this library; the pipeline only depends on
the ProfileStore protocol. Every field is optional and independently omittable,
and a missing profile must never break a turn.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol, runtime_checkable

from utils.logging_utils import get_logger

logger = get_logger("profile_store")


class AgeRange(Enum):
    AGE_18_29 = "18-29"
    AGE_30_39 = "30-39"
    AGE_40_49 = "40-49"
    AGE_50_59 = "50-59"
    AGE_60_69 = "60-69"
    AGE_70_79 = "70-79"
    AGE_80_PLUS = "80+"


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"
    TRANSGENDER = "transgender"
    NON_BINARY = "non-binary"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"


class Region(Enum):
    BANGKOK = "bangkok"
    CENTRAL = "central"
    NORTH = "north"
    NORTHEAST = "northeast"
    SOUTH = "south"
    OTHER = "other"


@dataclass(frozen=True)
class UserProfile:
    session_id: str
    age_range: Optional[AgeRange] = None
    gender: Optional[Gender] = None
    region: Optional[Region] = None

    @property
    def is_empty(self) -> bool:
        return self.age_range is None and self.gender is None and self.region is None

    @classmethod
    def from_dict(cls, session_id: str, data: Dict) -> "UserProfile":
        """Build from loose key/value data, silently dropping unknown values."""
        def _enum(enum_cls, value):
            try:
                return enum_cls(value) if value else None
            except ValueError:
                logger.debug(f"[PROFILE] Ignoring unknown {enum_cls.__name__} value: {value!r}")
                return None

        return cls(
            session_id=session_id,
            age_range=_enum(AgeRange, data.get("age_range") or data.get("ageRange")),
            gender=_enum(Gender, data.get("gender")),
            region=_enum(Region, data.get("region") or data.get("location")),
        )


@runtime_checkable
class ProfileStore(Protocol):
    """Contract for anything that can look up a profile by session id."""

    async def get_profile(self, session_id: str) -> Optional[UserProfile]:
        """Return the profile, or None when the session has none."""
        ...


class InMemoryProfileStore:
    """Dict-backed ProfileStore for tests and single-process use."""

    def __init__(self):
        self._profiles: Dict[str, UserProfile] = {}

    async def get_profile(self, session_id: str) -> Optional[UserProfile]:
        return self._profiles.get(session_id)

    def save_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.session_id] = profile
