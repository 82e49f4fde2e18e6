"""Round lifecycle and roster rules.

Everything here is a pure function over a ``RoundState`` snapshot: inputs
are never mutated, a new snapshot is returned on success, and every check
runs before any change so a failure leaves nothing half-applied. Callers
persist the result (see ``app.services.rounds``).
"""

from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import ValidationError

from app.core.errors import (
    DuplicateParticipant,
    InvalidArgument,
    InvalidRoster,
    InvalidStateTransition,
    NotParticipating,
    RoundFull,
)
from app.schemas.round import (
    MAX_PLAYERS_PER_TEAM,
    GuestPlayer,
    RegisteredPlayer,
    RoundState,
    RoundStatus,
    ScoreEntry,
    Team,
)

# Statuses recomputed from the roster after every change.
ROSTER_STATUSES: frozenset[str] = frozenset({"draft", "open", "full"})
# Statuses in which joining, leaving and editing are rejected.
LOCKED_STATUSES: frozenset[str] = frozenset({"in-progress", "completed", "cancelled"})

# Settings a patch may reset to null.
CLEARABLE_SETTINGS: frozenset[str] = frozenset({"registration_deadline"})

_EXPLICIT_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"in-progress", "completed", "cancelled"}),
    "open": frozenset({"in-progress", "completed", "cancelled"}),
    "full": frozenset({"in-progress", "completed", "cancelled"}),
    "in-progress": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


def evaluate_status(state: RoundState) -> RoundStatus:
    """Status implied by the roster; explicit statuses are returned unchanged."""

    if state.status not in ROSTER_STATUSES:
        return state.status
    if len(state.teams) >= state.settings.max_teams:
        return "full"
    if state.status == "full":
        return "open"
    if state.status == "draft" and state.teams:
        return "open"
    return state.status


def transition(state: RoundState, target: RoundStatus, *, now: datetime | None = None) -> RoundState:
    """Organizer-driven status change (start, complete, cancel)."""

    allowed = _EXPLICIT_TRANSITIONS.get(state.status, frozenset())
    if target not in allowed:
        raise InvalidStateTransition(f"Cannot move round from {state.status} to {target}")

    new = state.model_copy(deep=True)
    new.status = target
    if target == "completed":
        new.results.completed = True
        new.results.completed_at = now or datetime.now(timezone.utc)
    return new


def ensure_mutable(state: RoundState, action: str = "modify") -> None:
    if state.status in LOCKED_STATUSES:
        raise InvalidStateTransition(f"Cannot {action} a round that is {state.status}")


def is_organizer(state: RoundState, user_id: str) -> bool:
    return state.organizer_id == user_id


def participant_ids(state: RoundState) -> list[str]:
    return [
        p.user_id
        for team in state.teams
        for p in team.players
        if isinstance(p, RegisteredPlayer)
    ]


def is_participating(state: RoundState, user_id: str) -> bool:
    return user_id in participant_ids(state)


def available_slots(state: RoundState) -> int:
    taken = sum(len(team.players) for team in state.teams)
    return state.settings.max_teams * MAX_PLAYERS_PER_TEAM - taken


def validate_team(
    state: RoundState,
    team: Team,
    is_resolvable: Callable[[str], bool] = lambda _user_id: True,
) -> None:
    if not 1 <= len(team.players) <= MAX_PLAYERS_PER_TEAM:
        raise InvalidRoster(f"Team must have between 1 and {MAX_PLAYERS_PER_TEAM} players")

    seen: set[str] = set()
    for p in team.players:
        if isinstance(p, GuestPlayer):
            if not p.name.strip():
                raise InvalidRoster("Guest players must have a name")
            if not state.settings.allow_guests:
                raise InvalidRoster("This round does not allow guest players")
            continue

        user_id = p.user_id.strip()
        if not user_id or not is_resolvable(user_id):
            raise InvalidRoster("Registered players must reference an existing user")
        if user_id in seen:
            raise DuplicateParticipant(f"Player {user_id} appears twice in the team")
        seen.add(user_id)

    already = set(participant_ids(state))
    clash = sorted(seen & already)
    if clash:
        raise DuplicateParticipant(f"Player {clash[0]} is already participating in this round")


def add_team(
    state: RoundState,
    team: Team,
    is_resolvable: Callable[[str], bool] = lambda _user_id: True,
) -> RoundState:
    ensure_mutable(state, "join")
    if len(state.teams) >= state.settings.max_teams:
        raise RoundFull("Round is full")
    validate_team(state, team, is_resolvable)

    new = state.model_copy(deep=True)
    cleaned = team.model_copy(deep=True)
    for p in cleaned.players:
        if isinstance(p, RegisteredPlayer):
            p.user_id = p.user_id.strip()
        else:
            p.name = p.name.strip()
    new.teams.append(cleaned)
    new.status = evaluate_status(new)
    return new


def remove_participant(state: RoundState, user_id: str) -> RoundState:
    ensure_mutable(state, "leave")
    if not is_participating(state, user_id):
        raise NotParticipating("User is not participating in this round")

    new = state.model_copy(deep=True)
    teams = []
    for team in new.teams:
        team.players = [
            p for p in team.players if not (isinstance(p, RegisteredPlayer) and p.user_id == user_id)
        ]
        if team.players:
            teams.append(team)
    new.teams = teams
    new.status = evaluate_status(new)
    return new


def apply_settings(state: RoundState, **changes) -> RoundState:
    """Replace settings fields and re-evaluate status (e.g. after resizing)."""

    ensure_mutable(state, "update")
    cleared = sorted(k for k, v in changes.items() if v is None and k not in CLEARABLE_SETTINGS)
    if cleared:
        raise InvalidArgument(f"{cleared[0]} cannot be null")

    new = state.model_copy(deep=True)
    merged = {**new.settings.model_dump(), **changes}
    try:
        settings = type(new.settings).model_validate(merged)
    except ValidationError as exc:
        raise InvalidArgument(f"Invalid round settings: {exc.errors()[0]['msg']}") from exc
    if len(new.teams) > settings.max_teams:
        raise InvalidArgument(
            f"max_teams cannot be lower than the current number of teams ({len(new.teams)})"
        )
    new.settings = settings
    new.status = evaluate_status(new)
    return new


def find_player(
    state: RoundState,
    *,
    user_id: str | None = None,
    guest_name: str | None = None,
    team_name: str | None = None,
) -> tuple[int, int]:
    """Locate a player as (team index, player index)."""

    matches: list[tuple[int, int]] = []
    for ti, team in enumerate(state.teams):
        if team_name is not None and team.name != team_name:
            continue
        for pi, p in enumerate(team.players):
            if user_id is not None:
                if isinstance(p, RegisteredPlayer) and p.user_id == user_id:
                    matches.append((ti, pi))
            elif guest_name is not None:
                if isinstance(p, GuestPlayer) and p.name.lower() == guest_name.strip().lower():
                    matches.append((ti, pi))

    if not matches:
        raise NotParticipating("Player is not part of this round")
    if len(matches) > 1:
        raise InvalidArgument("Player reference is ambiguous; include the team name")
    return matches[0]


def record_score(
    state: RoundState,
    team_index: int,
    player_index: int,
    hole: int,
    strokes: int | None,
    putts: int | None = None,
) -> RoundState:
    if state.status in {"completed", "cancelled"}:
        raise InvalidStateTransition(f"Cannot record scores for a round that is {state.status}")
    if hole > state.settings.holes_count:
        raise InvalidArgument(f"hole must be between 1 and {state.settings.holes_count}")

    new = state.model_copy(deep=True)
    player = new.teams[team_index].players[player_index]
    entry = ScoreEntry(hole=hole, strokes=strokes, putts=putts)
    player.scores = sorted(
        [s for s in player.scores if s.hole != hole] + [entry],
        key=lambda s: s.hole,
    )
    return new
