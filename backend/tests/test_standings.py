from app.schemas.round import (
    GuestPlayer,
    RegisteredPlayer,
    RoundSettings,
    RoundState,
    ScoreEntry,
    Team,
)
from app.services.standings import UNSCORED, compute_standings, ranked_teams


def _scores(total: int, holes: int = 18) -> list[ScoreEntry]:
    base, extra = divmod(total, holes)
    return [ScoreEntry(hole=h, strokes=base + (1 if h <= extra else 0)) for h in range(1, holes + 1)]


def _player(user_id: str, total: int | None, handicap: float = 0) -> RegisteredPlayer:
    return RegisteredPlayer(
        user_id=user_id,
        round_handicap=handicap,
        scores=_scores(total) if total is not None else [],
    )


def _state(game_format: str, teams: list[Team]) -> RoundState:
    return RoundState(
        organizer_id="org",
        game_format=game_format,
        status="in-progress",
        settings=RoundSettings(max_teams=8),
        teams=teams,
    )


def test_scramble_team_takes_best_individual_total():
    team = Team(name="A", players=[_player("u1", 85), _player("u2", 91), _player("u3", 88)])
    result = compute_standings(_state("scramble", [team]))

    scored = result.teams[0]
    assert scored.total_score == 85
    assert scored.net_score == 85
    assert [p.total_score for p in scored.players] == [85, 91, 88]


def test_stroke_play_sums_net_scores():
    team = Team(name="A", players=[_player("u1", 30, handicap=18), _player("u2", 30, handicap=15)])
    result = compute_standings(_state("stroke-play", [team]))

    scored = result.teams[0]
    assert scored.total_score == 60
    assert scored.net_score == 27
    assert [p.net_score for p in scored.players] == [12, 15]


def test_positions_follow_net_score_with_stable_ties():
    teams = [
        Team(name="First", players=[_player("u1", 90)]),
        Team(name="Second", players=[_player("u2", 85)]),
        Team(name="Third", players=[_player("u3", 90)]),
    ]
    result = compute_standings(_state("stroke-play", teams))

    # Roster order is kept; only positions are assigned.
    assert [t.name for t in result.teams] == ["First", "Second", "Third"]
    assert [t.position for t in result.teams] == [2, 1, 3]
    assert [t.name for t in ranked_teams(result)] == ["Second", "First", "Third"]
    assert result.results.winner_team == "Second"
    assert result.results.winner_score == 85


def test_unscored_team_ranks_last():
    teams = [
        Team(name="Nobody", players=[_player("u1", None)]),
        Team(name="Scored", players=[_player("u2", 72)]),
    ]
    result = compute_standings(_state("best-ball", teams))

    nobody, scored = result.teams
    assert nobody.total_score == UNSCORED
    assert nobody.net_score == UNSCORED
    assert nobody.position == 2
    assert scored.position == 1


def test_guest_scores_count_like_registered_players():
    guest = GuestPlayer(name="Pat", round_handicap=4, scores=_scores(40, holes=9))
    team = Team(name="Mixed", players=[_player("u1", 45, handicap=0), guest])
    result = compute_standings(_state("stroke-play", [team]))

    assert result.teams[0].total_score == 85
    assert result.teams[0].net_score == 81


def test_no_scores_means_no_winner():
    result = compute_standings(_state("stroke-play", [Team(name="A", players=[_player("u1", None)])]))
    assert result.teams[0].position == 1
    assert result.results.winner_team is None
    assert result.results.winner_score is None


def test_empty_round_has_no_standings():
    result = compute_standings(_state("stroke-play", []))
    assert result.teams == []
    assert result.results.winner_team is None


def test_input_state_is_not_modified():
    state = _state("stroke-play", [Team(name="A", players=[_player("u1", 80)])])
    compute_standings(state)
    assert state.teams[0].total_score is None
    assert state.teams[0].position is None


def test_scores_beyond_hole_count_are_ignored():
    # Scored over 18 holes, then the round was switched to 9.
    state = _state("stroke-play", [Team(name="A", players=[_player("u1", 90)])])
    state.settings.holes_count = 9

    result = compute_standings(state)
    assert result.teams[0].players[0].total_score == 45
    assert result.teams[0].total_score == 45
