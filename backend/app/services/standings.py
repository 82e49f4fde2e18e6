"""Score aggregation and team ranking.

Never raises on partially scored rounds: a team without any recorded strokes
gets ``UNSCORED`` (999) as both total and net so it ranks after every scored
team.
"""

from app.schemas.round import RoundState, Team

UNSCORED = 999

# Formats where the best individual score stands for the whole team.
BEST_SCORE_FORMATS: frozenset[str] = frozenset({"scramble", "best-ball"})


def player_total(scores, holes_count: int = 18) -> int | None:
    # Holes beyond the round's hole count (e.g. after switching to 9) do not count.
    strokes = [s.strokes for s in scores if s.strokes is not None and s.hole <= holes_count]
    return sum(strokes) if strokes else None


def _score_team(team: Team, game_format: str, holes_count: int) -> None:
    for p in team.players:
        p.total_score = player_total(p.scores, holes_count)
        p.net_score = None if p.total_score is None else p.total_score - p.round_handicap

    if game_format in BEST_SCORE_FORMATS:
        best = min((p.total_score for p in team.players if p.total_score is not None), default=UNSCORED)
        team.total_score = best
        team.net_score = best
        return

    scored = [p for p in team.players if p.total_score is not None]
    if not scored:
        team.total_score = UNSCORED
        team.net_score = UNSCORED
        return

    team.total_score = sum(p.total_score for p in scored)
    team.net_score = sum(p.net_score if p.net_score is not None else p.total_score for p in scored)


def rank_key(team: Team) -> float:
    return UNSCORED if team.net_score is None else team.net_score


def compute_standings(state: RoundState) -> RoundState:
    """Return a copy with player/team totals and 1-based positions filled in.

    Team order in the roster is preserved; positions come from a stable sort
    by net score, so tied teams keep their join order.
    """

    new = state.model_copy(deep=True)
    for team in new.teams:
        _score_team(team, new.game_format, new.settings.holes_count)

    ranked = sorted(range(len(new.teams)), key=lambda i: rank_key(new.teams[i]))
    for position, index in enumerate(ranked, start=1):
        new.teams[index].position = position

    leader = new.teams[ranked[0]] if ranked else None
    if leader is not None and rank_key(leader) != UNSCORED:
        new.results.winner_team = leader.name
        new.results.winner_score = leader.net_score
    else:
        new.results.winner_team = None
        new.results.winner_score = None
    return new


def ranked_teams(state: RoundState) -> list[Team]:
    """Teams ordered by position (unranked teams keep roster order at the end)."""

    order = {id(t): i for i, t in enumerate(state.teams)}
    return sorted(
        state.teams,
        key=lambda t: (t.position is None, t.position or 0, order[id(t)]),
    )
