from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_current_player, get_current_user_id, get_db
from app.api.v1.courses import PaginationOut
from app.models.player import Player
from app.models.round import Round
from app.schemas.round import (
    GameFormat,
    RoundCreate,
    RoundFilters,
    RoundResults,
    RoundSettings,
    RoundStatus,
    RoundUpdate,
    ScoreSubmission,
    Team,
    TeamIn,
)
from app.services import roster
from app.services import rounds as round_service
from app.services.standings import ranked_teams

router = APIRouter()


class RoundOut(BaseModel):
    id: int
    name: str
    description: str | None
    owner_id: str
    course_id: int | None
    course_name: str
    custom_course: dict | None
    scheduled_date: date
    scheduled_time: str
    game_format: GameFormat
    status: RoundStatus
    settings: RoundSettings
    teams: list[Team]
    results: RoundResults
    weather: dict | None
    invitations: list[dict]
    comments: list[dict]
    available_slots: int
    created_at: datetime
    updated_at: datetime


class RoundListOut(BaseModel):
    rounds: list[RoundOut]
    pagination: PaginationOut


class StandingOut(BaseModel):
    position: int | None
    team: str
    total_score: float | None
    net_score: float | None
    players: list[dict]


class StandingsOut(BaseModel):
    round_id: int
    game_format: GameFormat
    status: RoundStatus
    standings: list[StandingOut]
    results: RoundResults


class StatusIn(BaseModel):
    status: Literal["in-progress", "completed", "cancelled"]


class CommentIn(BaseModel):
    message: str = Field(min_length=1, max_length=500)


class InvitationIn(BaseModel):
    user_id: str | None = None
    email: str | None = None


def _round_to_out(rnd: Round) -> RoundOut:
    state = round_service.state_of(rnd)

    if rnd.course is not None:
        course_name = rnd.course.name
    elif rnd.custom_course:
        course_name = rnd.custom_course.get("name") or "(custom course)"
    else:
        course_name = "(unknown course)"

    return RoundOut(
        id=rnd.id,
        name=rnd.name,
        description=rnd.description,
        owner_id=rnd.owner_id,
        course_id=rnd.course_id,
        course_name=course_name,
        custom_course=rnd.custom_course,
        scheduled_date=rnd.scheduled_date,
        scheduled_time=rnd.scheduled_time,
        game_format=state.game_format,
        status=state.status,
        settings=state.settings,
        teams=state.teams,
        results=state.results,
        weather=rnd.weather,
        invitations=list(rnd.invitations or []),
        comments=list(rnd.comments or []),
        available_slots=roster.available_slots(state),
        created_at=rnd.created_at,
        updated_at=rnd.updated_at,
    )


def _standings_to_out(rnd: Round) -> StandingsOut:
    state = round_service.state_of(rnd)
    return StandingsOut(
        round_id=rnd.id,
        game_format=state.game_format,
        status=state.status,
        standings=[
            StandingOut(
                position=t.position,
                team=t.name,
                total_score=t.total_score,
                net_score=t.net_score,
                players=[p.model_dump(mode="json", exclude={"scores"}) for p in t.players],
            )
            for t in ranked_teams(state)
        ],
        results=state.results,
    )


@router.get("/rounds", response_model=RoundListOut)
def list_rounds(
    status: RoundStatus | None = None,
    game_format: GameFormat | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    participant_id: str | None = None,
    my_rounds: bool = False,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    filters = RoundFilters(
        status=status,
        game_format=game_format,
        date_from=date_from,
        date_to=date_to,
        participant_id=user_id if my_rounds else participant_id,
    )
    result = round_service.list_rounds(db, user_id, filters, page, limit)
    return RoundListOut(
        rounds=[_round_to_out(r) for r in result.items],
        pagination=PaginationOut(
            page=result.page, limit=result.page_size, total=result.total, pages=result.pages
        ),
    )


@router.get("/rounds/upcoming", response_model=list[RoundOut])
def upcoming_rounds(
    limit: int = 10,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return [_round_to_out(r) for r in round_service.upcoming_rounds(db, user_id, limit)]


@router.get("/rounds/{round_id}", response_model=RoundOut)
def get_round(
    round_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(round_service.get_round(db, round_id, user_id))


@router.post("/rounds", response_model=RoundOut, status_code=201)
def create_round(
    payload: RoundCreate,
    db: Session = Depends(get_db),
    organizer: Player = Depends(get_current_player),
):
    return _round_to_out(round_service.create_round(db, organizer, payload))


@router.put("/rounds/{round_id}", response_model=RoundOut)
def update_round(
    round_id: int,
    payload: RoundUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(round_service.update_round(db, round_id, user_id, payload))


@router.delete("/rounds/{round_id}")
def delete_round(
    round_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    round_service.delete_round(db, round_id, user_id)
    return {"ok": True}


@router.post("/rounds/{round_id}/join", response_model=RoundOut)
def join_round(
    round_id: int,
    payload: TeamIn,
    db: Session = Depends(get_db),
    player: Player = Depends(get_current_player),
):
    return _round_to_out(round_service.join_round(db, round_id, player.external_id, payload.to_team()))


@router.delete("/rounds/{round_id}/leave", response_model=RoundOut)
def leave_round(
    round_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(round_service.leave_round(db, round_id, user_id))


@router.delete("/rounds/{round_id}/participants/{participant_id}", response_model=RoundOut)
def remove_participant(
    round_id: int,
    participant_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(
        round_service.leave_round(db, round_id, participant_id, acting_user_id=user_id)
    )


@router.post("/rounds/{round_id}/status", response_model=RoundOut)
def set_round_status(
    round_id: int,
    payload: StatusIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(round_service.set_status(db, round_id, user_id, payload.status))


@router.post("/rounds/{round_id}/scores", response_model=RoundOut)
def submit_score(
    round_id: int,
    payload: ScoreSubmission,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(round_service.record_score(db, round_id, user_id, payload))


@router.post("/rounds/{round_id}/standings", response_model=StandingsOut)
def compute_standings(
    round_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _standings_to_out(round_service.compute_standings(db, round_id, user_id))


@router.post("/rounds/{round_id}/comments", response_model=RoundOut)
def add_comment(
    round_id: int,
    payload: CommentIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(round_service.add_comment(db, round_id, user_id, payload.message))


@router.post("/rounds/{round_id}/invitations", response_model=RoundOut)
def invite(
    round_id: int,
    payload: InvitationIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return _round_to_out(
        round_service.invite(db, round_id, user_id, invitee_id=payload.user_id, email=payload.email)
    )
