import json
from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Enumerations
# ============================================================================

class CatchStatus(str, Enum):
    PROVISIONAL = "provisional"
    UNDER_PROTEST = "under_protest"
    CONFIRMED = "confirmed"
    DISQUALIFIED = "disqualified"


class EventStatus(str, Enum):
    PROVISIONAL = "provisional"
    FINAL = "final"


class Division(str, Enum):
    """Leaderboard tab. Every team is in Open, so ALL means no filter."""
    ALL = "all"
    WOMEN = "women"
    JUNIORS = "juniors"


# ============================================================================
# Boundary helpers
# ============================================================================

def blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def coerce_team_number(value):
    value = blank_to_none(value)
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def coerce_photo_urls(value):
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return [value]
    return [str(u) for u in value if u]


def parse_timestamp(value):
    """Accept datetimes or ISO strings; anything unreadable is treated as absent."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


# ============================================================================
# Stored records
# ============================================================================

class Team(BaseModel):
    id: Optional[int] = None
    team_number: Optional[int] = None
    competitor1_name: Optional[str] = None
    competitor1_email: Optional[str] = None
    competitor1_shirt: Optional[str] = None
    competitor2_name: Optional[str] = None
    competitor2_email: Optional[str] = None
    competitor2_shirt: Optional[str] = None
    competitor3_name: Optional[str] = None
    competitor3_email: Optional[str] = None
    club: Optional[str] = None
    notes: Optional[str] = None
    is_junior: bool = False
    is_women: bool = False
    registered: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "competitor1_name", "competitor1_email", "competitor1_shirt",
        "competitor2_name", "competitor2_email", "competitor2_shirt",
        "competitor3_name", "competitor3_email", "club", "notes",
        mode="before",
    )
    @classmethod
    def _blank_strings(cls, v):
        return blank_to_none(v)

    @field_validator("team_number", mode="before")
    @classmethod
    def _team_number(cls, v):
        return coerce_team_number(v)

    @field_validator("is_junior", "is_women", "registered", mode="before")
    @classmethod
    def _flags(cls, v):
        return bool(v)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamps(cls, v):
        return parse_timestamp(v)

    @property
    def has_second_competitor(self) -> bool:
        return self.competitor2_name is not None

    @property
    def has_third_competitor(self) -> bool:
        return self.competitor3_name is not None

    @property
    def names(self) -> List[str]:
        return [n for n in (self.competitor1_name, self.competitor2_name, self.competitor3_name) if n]


class CatchEntry(BaseModel):
    id: Optional[int] = None
    team_id: int
    catfish_count: int = Field(0, ge=0)
    heaviest_fish_grams: Optional[int] = Field(None, gt=0)
    lightest_fish_grams: Optional[int] = Field(None, gt=0)
    photo_urls: List[str] = []
    status: CatchStatus = CatchStatus.PROVISIONAL
    protest_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("photo_urls", mode="before")
    @classmethod
    def _photo_urls(cls, v):
        return coerce_photo_urls(v)


class EventState(BaseModel):
    id: Optional[int] = None
    status: EventStatus = EventStatus.PROVISIONAL
    protest_deadline: Optional[str] = None
    prizegiving_time: Optional[str] = None


# ============================================================================
# Derived projections
# ============================================================================

class LeaderboardRow(BaseModel):
    catch_id: int
    team_id: int
    team_number: Optional[int] = None
    competitor1_name: Optional[str] = None
    competitor2_name: Optional[str] = None
    competitor3_name: Optional[str] = None
    team_names: str = ""
    is_junior: bool = False
    is_women: bool = False
    catfish_count: int = 0
    heaviest_fish_grams: Optional[int] = None
    lightest_fish_grams: Optional[int] = None
    photo_urls: List[str] = []
    status: CatchStatus = CatchStatus.PROVISIONAL
    protest_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    eligible: bool = True
    rank: Optional[int] = None

    @field_validator("competitor1_name", "competitor2_name", "competitor3_name", "protest_notes", mode="before")
    @classmethod
    def _blank_strings(cls, v):
        return blank_to_none(v)

    @field_validator("team_number", mode="before")
    @classmethod
    def _team_number(cls, v):
        return coerce_team_number(v)

    @field_validator("is_junior", "is_women", mode="before")
    @classmethod
    def _flags(cls, v):
        return bool(v)

    @field_validator("catfish_count", mode="before")
    @classmethod
    def _count(cls, v):
        try:
            return max(0, int(v))
        except (TypeError, ValueError):
            return 0

    @field_validator("heaviest_fish_grams", "lightest_fish_grams", mode="before")
    @classmethod
    def _grams(cls, v):
        try:
            grams = int(v)
        except (TypeError, ValueError):
            return None
        return grams if grams > 0 else None

    @field_validator("photo_urls", mode="before")
    @classmethod
    def _photo_urls(cls, v):
        return coerce_photo_urls(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _timestamps(cls, v):
        return parse_timestamp(v)


class PrizeFish(BaseModel):
    grams: int
    team_number: Optional[int] = None
    team_names: str = ""


# ============================================================================
# Request bodies
# ============================================================================

class LoginRequest(BaseModel):
    password: str


class CheckInUpdate(BaseModel):
    registered: bool = True


class CatchCreate(BaseModel):
    team_number: int
    catfish_count: int = Field(..., ge=0)
    heaviest_fish_grams: Optional[int] = Field(None, gt=0)
    lightest_fish_grams: Optional[int] = Field(None, gt=0)
    photo_urls: List[str] = []


class CatchStatusUpdate(BaseModel):
    status: CatchStatus
    protest_notes: Optional[str] = None


class SectionSwitch(BaseModel):
    section: str


class PageNavigation(BaseModel):
    delta: Optional[int] = Field(None, ge=-1, le=1)
    page: Optional[int] = Field(None, ge=0)


class ViewportReport(BaseModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class TeamCandidate(BaseModel):
    team_number: int = Field(..., gt=0)
    competitor1_name: Optional[str] = None
    competitor1_email: Optional[str] = None
    competitor1_shirt: Optional[str] = None
    competitor2_name: Optional[str] = None
    competitor2_email: Optional[str] = None
    competitor2_shirt: Optional[str] = None
    is_junior: bool = False
    is_women: bool = False
    matched: bool = True
    partner_text: Optional[str] = None
    notes: Optional[str] = None


class ImportCommit(BaseModel):
    candidates: List[TeamCandidate]
