"""Round persistence: loads a round, runs a pure roster/standings step on its
snapshot and writes the result back under the round's version check.

Each mutating operation is one read-modify-write transaction; a concurrent
writer makes the commit fail with a version mismatch and the whole step is
re-run on fresh data (see ``run_optimistic``).
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from app.core.errors import Forbidden, InvalidArgument, InvalidStateTransition, NotFound
from app.db.concurrency import commit_once, run_optimistic
from app.models.player import Player
from app.models.round import Round
from app.schemas.round import (
    Comment,
    Invitation,
    RegisteredPlayer,
    RoundCreate,
    RoundFilters,
    RoundResults,
    RoundSettings,
    RoundState,
    RoundStatus,
    RoundUpdate,
    ScoreSubmission,
    Team,
)
from app.services import catalog, roster, standings
from app.services.identity import resolve_user

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


@dataclass
class RoundPage:
    items: list[Round]
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


def state_of(rnd: Round) -> RoundState:
    return RoundState(
        organizer_id=rnd.owner_id,
        game_format=rnd.game_format,
        status=rnd.status,
        settings=RoundSettings.model_validate(rnd.settings or {}),
        teams=[Team.model_validate(t) for t in rnd.teams or []],
        results=RoundResults.model_validate(rnd.results or {}),
    )


def _store(rnd: Round, state: RoundState) -> None:
    rnd.game_format = state.game_format
    rnd.status = state.status
    rnd.settings = state.settings.model_dump(mode="json")
    rnd.teams = [t.model_dump(mode="json") for t in state.teams]
    rnd.results = state.results.model_dump(mode="json")


def _utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _normalize_time(value: str) -> str:
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{int(minutes):02d}"


def _starts_at(day: date, hhmm: str) -> datetime:
    hours, minutes = (int(x) for x in hhmm.split(":"))
    return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)


def _load(db: Session, round_id: int) -> Round:
    rnd = db.execute(
        select(Round)
        .options(joinedload(Round.owner), joinedload(Round.course))
        .where(Round.id == round_id)
    ).scalars().one_or_none()
    if not rnd:
        raise NotFound("Round not found")
    return rnd


def _is_invited(rnd: Round, user_id: str) -> bool:
    return any(
        inv.get("user_id") == user_id and inv.get("status") != "declined"
        for inv in rnd.invitations or []
    )


def can_view(rnd: Round, state: RoundState, user_id: str) -> bool:
    if not state.settings.is_private:
        return True
    return (
        roster.is_organizer(state, user_id)
        or roster.is_participating(state, user_id)
        or _is_invited(rnd, user_id)
    )


def _mutate(
    db: Session,
    round_id: int,
    mutate: Callable[[Round, RoundState], RoundState],
) -> Round:
    def attempt() -> Round:
        rnd = _load(db, round_id)
        state = state_of(rnd)
        new = mutate(rnd, state)
        if new is not state:
            _store(rnd, new)
        return rnd

    return run_optimistic(db, attempt, what=f"round {round_id}")


def create_round(db: Session, organizer: Player, payload: RoundCreate, now: datetime | None = None) -> Round:
    if payload.course_id is not None and payload.custom_course is not None:
        raise InvalidArgument("Provide either a golf course or a custom course, not both")
    if payload.course_id is not None:
        catalog.get_course(db, payload.course_id)
    elif payload.custom_course is None or not payload.custom_course.name.strip():
        raise InvalidArgument("Either golf course or custom course information is required")

    scheduled_time = _normalize_time(payload.scheduled_time)
    now = now or datetime.now(timezone.utc)
    if _starts_at(payload.scheduled_date, scheduled_time) <= now:
        raise InvalidArgument("Scheduled date must be in the future")

    rnd = Round(
        name=payload.name.strip(),
        description=payload.description,
        owner_player_id=organizer.id,
        course_id=payload.course_id,
        custom_course=payload.custom_course.model_dump(mode="json") if payload.custom_course else None,
        scheduled_date=payload.scheduled_date,
        scheduled_time=scheduled_time,
        game_format=payload.game_format,
        status="draft",
        settings=payload.settings.model_dump(mode="json"),
        teams=[],
        results=RoundResults().model_dump(mode="json"),
        weather=payload.weather.model_dump(mode="json") if payload.weather else None,
        invitations=[],
        comments=[],
    )
    db.add(rnd)
    commit_once(db, what="round")
    logger.info("Round %s created by %s (%s)", rnd.id, organizer.external_id, payload.game_format)
    return _load(db, rnd.id)


def get_round(db: Session, round_id: int, viewer_id: str) -> Round:
    rnd = _load(db, round_id)
    if not can_view(rnd, state_of(rnd), viewer_id):
        raise NotFound("Round not found")
    return rnd


def list_rounds(
    db: Session,
    viewer_id: str,
    filters: RoundFilters | None = None,
    page: int = 1,
    page_size: int = 10,
) -> RoundPage:
    filters = filters or RoundFilters()
    if page < 1:
        raise InvalidArgument("page must be 1 or greater")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise InvalidArgument(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    stmt = select(Round).options(joinedload(Round.owner), joinedload(Round.course))
    if filters.status:
        stmt = stmt.where(Round.status == filters.status)
    if filters.game_format:
        stmt = stmt.where(Round.game_format == filters.game_format)
    if filters.date_from:
        stmt = stmt.where(Round.scheduled_date >= filters.date_from)
    if filters.date_to:
        stmt = stmt.where(Round.scheduled_date <= filters.date_to)
    stmt = stmt.order_by(Round.scheduled_date, Round.scheduled_time, Round.id)

    matches = []
    for rnd in db.execute(stmt).scalars().all():
        state = state_of(rnd)
        if not can_view(rnd, state, viewer_id):
            continue
        if filters.participant_id and not (
            roster.is_organizer(state, filters.participant_id)
            or roster.is_participating(state, filters.participant_id)
        ):
            continue
        matches.append(rnd)

    start = (page - 1) * page_size
    return RoundPage(matches[start:start + page_size], page, page_size, len(matches))


def upcoming_rounds(db: Session, viewer_id: str, limit: int = 10, today: date | None = None) -> list[Round]:
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidArgument(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    today = today or datetime.now(timezone.utc).date()

    rows = db.execute(
        select(Round)
        .options(joinedload(Round.owner), joinedload(Round.course))
        .where(Round.scheduled_date >= today, Round.status.in_(("open", "in-progress")))
        .order_by(Round.scheduled_date, Round.scheduled_time, Round.id)
    ).scalars().all()
    return [r for r in rows if can_view(r, state_of(r), viewer_id)][:limit]


def _check_registration(rnd: Round, state: RoundState, user_id: str) -> None:
    deadline = state.settings.registration_deadline
    if deadline is not None and datetime.now(timezone.utc) > _utc(deadline):
        raise InvalidStateTransition("Registration for this round is closed")
    if (
        state.settings.require_invitation
        and not roster.is_organizer(state, user_id)
        and not _is_invited(rnd, user_id)
    ):
        raise Forbidden("This round requires an invitation")


def join_round(db: Session, round_id: int, user_id: str, team: Team) -> Round:
    def mutate(rnd: Round, state: RoundState) -> RoundState:
        roster.ensure_mutable(state, "join")
        _check_registration(rnd, state, user_id)
        new = roster.add_team(state, team, is_resolvable=lambda uid: resolve_user(db, uid).usable)

        joined = {p.user_id for p in team.players if isinstance(p, RegisteredPlayer)} | {user_id}
        if any(inv.get("user_id") in joined for inv in rnd.invitations or []):
            rnd.invitations = [
                {**inv, "status": "accepted"} if inv.get("user_id") in joined else inv
                for inv in rnd.invitations
            ]
        return new

    rnd = _mutate(db, round_id, mutate)
    logger.info("Team %r joined round %s (status %s)", team.name, round_id, rnd.status)
    return rnd


def leave_round(db: Session, round_id: int, user_id: str, acting_user_id: str | None = None) -> Round:
    acting_user_id = acting_user_id or user_id

    def mutate(rnd: Round, state: RoundState) -> RoundState:
        if acting_user_id != user_id and not roster.is_organizer(state, acting_user_id):
            raise Forbidden("Only the organizer can remove other participants")
        return roster.remove_participant(state, user_id)

    rnd = _mutate(db, round_id, mutate)
    logger.info("User %s left round %s (status %s)", user_id, round_id, rnd.status)
    return rnd


def update_round(db: Session, round_id: int, user_id: str, patch: RoundUpdate) -> Round:
    fields = patch.model_fields_set

    def mutate(rnd: Round, state: RoundState) -> RoundState:
        if not roster.is_organizer(state, user_id):
            raise Forbidden("Only the organizer can update this round")
        roster.ensure_mutable(state, "update")

        new = state
        if "settings" in fields and patch.settings is not None:
            new = roster.apply_settings(new, **patch.settings.model_dump(exclude_unset=True))
        if "game_format" in fields and patch.game_format is not None:
            new = new.model_copy(update={"game_format": patch.game_format})

        if "name" in fields and patch.name is not None:
            rnd.name = patch.name.strip()
        if "description" in fields:
            rnd.description = patch.description
        if "scheduled_date" in fields and patch.scheduled_date is not None:
            rnd.scheduled_date = patch.scheduled_date
        if "scheduled_time" in fields and patch.scheduled_time is not None:
            rnd.scheduled_time = _normalize_time(patch.scheduled_time)
        if "weather" in fields:
            rnd.weather = patch.weather.model_dump(mode="json") if patch.weather else None

        return new

    return _mutate(db, round_id, mutate)


def delete_round(db: Session, round_id: int, user_id: str) -> None:
    def attempt() -> None:
        rnd = _load(db, round_id)
        state = state_of(rnd)
        if not roster.is_organizer(state, user_id):
            raise Forbidden("Only the organizer can delete this round")
        if state.status in ("in-progress", "completed"):
            raise InvalidStateTransition(f"Cannot delete a round that is {state.status}")
        db.delete(rnd)

    run_optimistic(db, attempt, what=f"round {round_id}")
    logger.info("Round %s deleted by %s", round_id, user_id)


def set_status(db: Session, round_id: int, user_id: str, target: RoundStatus) -> Round:
    def mutate(rnd: Round, state: RoundState) -> RoundState:
        if not roster.is_organizer(state, user_id):
            raise Forbidden("Only the organizer can change the round status")
        new = roster.transition(state, target)
        if target == "completed":
            new = standings.compute_standings(new)
        return new

    rnd = _mutate(db, round_id, mutate)
    logger.info("Round %s moved to %s", round_id, target)
    return rnd


def record_score(db: Session, round_id: int, acting_user_id: str, sub: ScoreSubmission) -> Round:
    def mutate(rnd: Round, state: RoundState) -> RoundState:
        target_user = sub.user_id
        if target_user is None and sub.guest_name is None:
            target_user = acting_user_id

        ti, pi = roster.find_player(
            state, user_id=target_user, guest_name=sub.guest_name, team_name=sub.team
        )
        if not roster.is_organizer(state, acting_user_id):
            if target_user is not None and target_user != acting_user_id:
                raise Forbidden("Only the organizer can enter scores for other players")
            teammates = {
                p.user_id for p in state.teams[ti].players if isinstance(p, RegisteredPlayer)
            }
            if acting_user_id not in teammates:
                raise Forbidden("Only teammates or the organizer can enter scores for guests")

        return roster.record_score(state, ti, pi, sub.hole, sub.strokes, sub.putts)

    return _mutate(db, round_id, mutate)


def compute_standings(db: Session, round_id: int, viewer_id: str) -> Round:
    def mutate(rnd: Round, state: RoundState) -> RoundState:
        if not can_view(rnd, state, viewer_id):
            raise NotFound("Round not found")
        return standings.compute_standings(state)

    return _mutate(db, round_id, mutate)


def add_comment(db: Session, round_id: int, user_id: str, message: str) -> Round:
    def mutate(rnd: Round, state: RoundState) -> RoundState:
        if not (roster.is_organizer(state, user_id) or roster.is_participating(state, user_id)):
            raise Forbidden("Only the organizer and participants can comment")
        comment = Comment(user_id=user_id, message=message.strip(), created_at=datetime.now(timezone.utc))
        rnd.comments = [*(rnd.comments or []), comment.model_dump(mode="json")]
        return state

    return _mutate(db, round_id, mutate)


def invite(
    db: Session,
    round_id: int,
    user_id: str,
    invitee_id: str | None = None,
    email: str | None = None,
) -> Round:
    invitee_id = (invitee_id or "").strip() or None
    email = (email or "").strip().lower() or None
    if not invitee_id and not email:
        raise InvalidArgument("Invite a registered user or an email address")
    if invitee_id and not resolve_user(db, invitee_id).usable:
        raise NotFound("User not found")

    def mutate(rnd: Round, state: RoundState) -> RoundState:
        if not roster.is_organizer(state, user_id):
            raise Forbidden("Only the organizer can send invitations")
        roster.ensure_mutable(state, "invite players to")

        existing = rnd.invitations or []
        if any(
            (invitee_id and inv.get("user_id") == invitee_id) or (email and inv.get("email") == email)
            for inv in existing
        ):
            return state

        inv = Invitation(user_id=invitee_id, email=email, sent_at=datetime.now(timezone.utc))
        rnd.invitations = [*existing, inv.model_dump(mode="json")]
        return state

    return _mutate(db, round_id, mutate)
