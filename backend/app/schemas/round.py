from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

GameFormat = Literal[
    "stroke-play",
    "match-play",
    "scramble",
    "best-ball",
    "alternate-shot",
    "stableford",
    "skins",
    "nassau",
    "wolf",
    "bingo-bango-bongo",
]

RoundStatus = Literal["draft", "open", "full", "in-progress", "completed", "cancelled"]

MAX_PLAYERS_PER_TEAM = 4
HANDICAP_MIN = -10.0
HANDICAP_MAX = 36.0

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class ScoreEntry(BaseModel):
    hole: int = Field(ge=1, le=18)
    strokes: int | None = Field(default=None, ge=1, le=15)
    putts: int | None = Field(default=None, ge=0, le=10)


class _PlayerBase(BaseModel):
    # Applies to this round only; independent of profile and team handicap.
    round_handicap: float = Field(ge=HANDICAP_MIN, le=HANDICAP_MAX)
    scores: list[ScoreEntry] = []
    total_score: int | None = None
    net_score: float | None = None


class RegisteredPlayer(_PlayerBase):
    kind: Literal["registered"] = "registered"
    user_id: str = Field(max_length=128)


class GuestPlayer(_PlayerBase):
    kind: Literal["guest"] = "guest"
    name: str = Field(max_length=100)
    email: str | None = None
    handicap: float = Field(default=HANDICAP_MAX, ge=HANDICAP_MIN, le=HANDICAP_MAX)


RoundPlayer = Annotated[RegisteredPlayer | GuestPlayer, Field(discriminator="kind")]


class Team(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    # Size (1-4) is a roster rule checked by the engine, not a parse error.
    players: list[RoundPlayer]
    team_handicap: float = Field(default=0, ge=-40, le=144)
    total_score: float | None = None
    net_score: float | None = None
    position: int | None = None


class RegisteredPlayerIn(BaseModel):
    kind: Literal["registered"] = "registered"
    user_id: str = Field(max_length=128)
    round_handicap: float = Field(ge=HANDICAP_MIN, le=HANDICAP_MAX)


class GuestPlayerIn(BaseModel):
    kind: Literal["guest"] = "guest"
    name: str = Field(max_length=100)
    email: str | None = None
    handicap: float = Field(default=HANDICAP_MAX, ge=HANDICAP_MIN, le=HANDICAP_MAX)
    round_handicap: float = Field(ge=HANDICAP_MIN, le=HANDICAP_MAX)


class TeamIn(BaseModel):
    """Join request: a team roster without any scoring fields."""

    name: str = Field(min_length=1, max_length=100)
    players: list[Annotated[RegisteredPlayerIn | GuestPlayerIn, Field(discriminator="kind")]]
    team_handicap: float = Field(default=0, ge=-40, le=144)

    def to_team(self) -> "Team":
        return Team.model_validate(self.model_dump())


class CustomCourse(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    holes: Literal[9, 18] = 18
    par: int | None = Field(default=None, ge=27, le=144)


class RoundSettings(BaseModel):
    holes_count: Literal[9, 18] = 18
    allow_guests: bool = True
    max_teams: int = Field(default=8, ge=1, le=20)
    is_private: bool = False
    require_invitation: bool = False
    registration_deadline: datetime | None = None


class RoundSettingsPatch(BaseModel):
    holes_count: Literal[9, 18] | None = None
    allow_guests: bool | None = None
    max_teams: int | None = Field(default=None, ge=1, le=20)
    is_private: bool | None = None
    require_invitation: bool | None = None
    registration_deadline: datetime | None = None


class RoundResults(BaseModel):
    winner_team: str | None = None
    winner_score: float | None = None
    completed: bool = False
    completed_at: datetime | None = None


class Weather(BaseModel):
    condition: Literal["sunny", "cloudy", "rainy", "windy", "stormy"] | None = None
    temperature: float | None = None
    wind_speed: float | None = None


class Invitation(BaseModel):
    user_id: str | None = None
    email: str | None = None
    status: Literal["pending", "accepted", "declined"] = "pending"
    sent_at: datetime


class Comment(BaseModel):
    user_id: str
    message: str = Field(min_length=1, max_length=500)
    created_at: datetime


class RoundState(BaseModel):
    """Snapshot of everything the roster and standings engines reason about."""

    organizer_id: str
    game_format: GameFormat
    status: RoundStatus = "draft"
    settings: RoundSettings = Field(default_factory=RoundSettings)
    teams: list[Team] = []
    results: RoundResults = Field(default_factory=RoundResults)


class RoundCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    course_id: int | None = None
    custom_course: CustomCourse | None = None
    scheduled_date: date
    scheduled_time: str = Field(pattern=TIME_PATTERN)
    game_format: GameFormat
    settings: RoundSettings = Field(default_factory=RoundSettings)
    weather: Weather | None = None


class RoundUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    scheduled_date: date | None = None
    scheduled_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    game_format: GameFormat | None = None
    settings: RoundSettingsPatch | None = None
    weather: Weather | None = None


class ScoreSubmission(BaseModel):
    hole: int = Field(ge=1, le=18)
    strokes: int | None = Field(default=None, ge=1, le=15)
    putts: int | None = Field(default=None, ge=0, le=10)
    # Target player: a registered user, or a guest by name (optionally within a team).
    # Defaults to the submitting user.
    user_id: str | None = None
    guest_name: str | None = None
    team: str | None = None


class RoundFilters(BaseModel):
    status: RoundStatus | None = None
    game_format: GameFormat | None = None
    date_from: date | None = None
    date_to: date | None = None
    participant_id: str | None = None
