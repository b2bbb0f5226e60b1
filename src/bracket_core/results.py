"""
Recording match results and advancing teams through the bracket.

Both entry points take the tournament, a dict of teams by id and the full
match list. Matches are updated in place; the returned dict holds the new
Team values (teams are never mutated, see models.apply_result).
"""
import logging
from typing import Dict, List, Optional

from .double_elimination import get_advancement_slot
from .errors import NotFoundError, ValidationError
from .models import (
    BracketType,
    Match,
    MatchStatus,
    ResultDelta,
    Team,
    TeamStatus,
    Tournament,
    TournamentStatus,
    apply_result,
)

logger = logging.getLogger(__name__)


def _is_whole_number(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def result_deltas(tournament: Tournament, match: Match) -> Dict[str, ResultDelta]:
    """
    Statistic changes implied by the result currently recorded on match.

    A forfeit has no scores, so it counts the win and loss without goals.
    """
    goals = {
        match.home_team_id: match.home_score or 0,
        match.away_team_id: match.away_score or 0,
    }
    home, away = match.home_team_id, match.away_team_id
    if match.winner_team_id is None:
        return {
            home: ResultDelta(ties=1, points=tournament.points_tie,
                              goals_for=goals[home], goals_against=goals[away]),
            away: ResultDelta(ties=1, points=tournament.points_tie,
                              goals_for=goals[away], goals_against=goals[home]),
        }
    winner = match.winner_team_id
    loser = away if winner == home else home
    return {
        winner: ResultDelta(wins=1, points=tournament.points_win,
                            goals_for=goals[winner], goals_against=goals[loser]),
        loser: ResultDelta(losses=1, points=tournament.points_loss,
                           goals_for=goals[loser], goals_against=goals[winner]),
    }


class _Bracket:
    """Lookup and mutation helpers over one tournament's matches and teams."""

    def __init__(self, tournament: Tournament, teams: Dict[str, Team], matches: List[Match]):
        self.tournament = tournament
        self.teams = dict(teams)
        self.matches = {match.id: match for match in matches}

    def get(self, match_id: str) -> Match:
        match = self.matches.get(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        return match

    def set_status(self, team_id: Optional[str], status: TeamStatus) -> None:
        if team_id is None:
            return
        self.teams[team_id] = self.teams[team_id].copy(status=status)

    def apply(self, match: Match, sign: int = 1) -> None:
        for team_id, delta in result_deltas(self.tournament, match).items():
            self.teams[team_id] = apply_result(self.teams[team_id], delta if sign > 0 else -delta)

    def was_played(self, match_id: Optional[str]) -> bool:
        """True if match_id (or whatever a bye there already fed) has a real result."""
        if match_id is None:
            return False
        match = self.get(match_id)
        if match.is_bye:
            return self.was_played(match.next_match_id)
        return match.has_result

    def check_downstream(self, match: Match, new_winner: Optional[str]) -> None:
        if not match.has_result or match.winner_team_id == new_winner:
            return
        if not self.tournament.format.is_elimination:
            return
        for destination in (match.next_match_id, match.loser_next_match_id):
            if self.was_played(destination):
                raise ValidationError(
                    "Cannot change the winner of a match whose next match has already been played")

    def record(self, match: Match, winner: Optional[str], home_score, away_score,
               status: MatchStatus, reason: Optional[str] = None) -> None:
        self.check_downstream(match, winner)
        if match.has_result:
            logger.info(f"Reversing previous result of match {match.id}")
            self.apply(match, sign=-1)
            if self.tournament.format.is_elimination and match.winner_team_id != winner:
                for team_id in match.participants:
                    self.set_status(team_id, TeamStatus.REGISTERED)

        match.home_score = home_score
        match.away_score = away_score
        match.winner_team_id = winner
        match.status = status
        match.forfeit_reason = reason
        self.apply(match)

        if self.tournament.format.is_elimination:
            self.advance(match)

    def place(self, source: Match, destination: Match, team_id: str, as_loser: bool = False) -> None:
        slot = get_advancement_slot(source, destination, as_loser)
        setattr(destination, f"{slot}_team_id", team_id)
        logger.debug(f"Team {team_id} advances from {source.id} to {destination.id} ({slot})")
        if destination.is_bye:
            destination.status = MatchStatus.COMPLETED
            destination.winner_team_id = team_id
            if destination.next_match_id:
                self.place(destination, self.get(destination.next_match_id), team_id)

    def advance(self, match: Match) -> None:
        winner = match.winner_team_id
        loser = match.loser_team_id()

        if match.bracket_type is BracketType.GRAND_FINAL and match.round == 1:
            self.resolve_grand_final(match, winner, loser)
            return

        if match.next_match_id:
            self.place(match, self.get(match.next_match_id), winner)
        else:
            self.set_status(winner, TeamStatus.WINNER)

        if match.loser_next_match_id:
            self.place(match, self.get(match.loser_next_match_id), loser, as_loser=True)
        else:
            self.set_status(loser, TeamStatus.ELIMINATED)

    def resolve_grand_final(self, match: Match, winner: str, loser: str) -> None:
        bracket_reset = self.get(match.next_match_id)
        if winner == match.home_team_id:
            # Winners champion is still unbeaten: GF2 is never played
            bracket_reset.home_team_id = None
            bracket_reset.away_team_id = None
            self.set_status(winner, TeamStatus.WINNER)
            self.set_status(loser, TeamStatus.ELIMINATED)
        else:
            self.place(match, bracket_reset, winner)
            self.place(match, bracket_reset, loser, as_loser=True)


def _require_in_progress(tournament: Tournament) -> None:
    if tournament.status is not TournamentStatus.IN_PROGRESS:
        raise ValidationError(
            f"Results can only be entered while the tournament is in progress (status is {tournament.status.value})")


def _require_playable(match: Match) -> None:
    if match.is_bye:
        raise ValidationError("Cannot enter a result for a bye match")
    if match.home_team_id is None or match.away_team_id is None:
        raise ValidationError("Cannot enter scores for match with TBD teams")


def determine_winner(tournament: Tournament, match: Match, home_score: int, away_score: int,
                     overtime_winner_id: Optional[str] = None) -> Optional[str]:
    """
    Winner implied by a score, or None for a round robin tie.

    A tied elimination score needs overtime_winner_id, which must be one of
    the two participants. Round robin ignores the overtime winner.
    """
    if home_score > away_score:
        return match.home_team_id
    if away_score > home_score:
        return match.away_team_id
    if not tournament.format.is_elimination:
        return None
    if overtime_winner_id is None:
        raise ValidationError("Scores are tied in elimination format. Please specify overtime winner.")
    if overtime_winner_id not in (match.home_team_id, match.away_team_id):
        raise ValidationError("Overtime winner must be either the home or away team")
    return overtime_winner_id


def enter_score(tournament: Tournament, teams: Dict[str, Team], matches: List[Match], match_id: str,
                home_score: int, away_score: int,
                overtime_winner_id: Optional[str] = None) -> Dict[str, Team]:
    """
    Record (or correct) the score of a match and advance the teams.

    Returns:
        Dict of team id -> updated Team
    """
    _require_in_progress(tournament)
    bracket = _Bracket(tournament, teams, matches)
    match = bracket.get(match_id)
    _require_playable(match)
    if not (_is_whole_number(home_score) and _is_whole_number(away_score)):
        raise ValidationError("Scores must be whole numbers")
    if home_score < 0 or away_score < 0:
        raise ValidationError("Scores cannot be negative")

    winner = determine_winner(tournament, match, home_score, away_score, overtime_winner_id)
    bracket.record(match, winner, home_score, away_score, MatchStatus.COMPLETED)
    logger.info(f"Match {match.id} scored {home_score}-{away_score}, winner {winner or 'none (tie)'}")
    return bracket.teams


def forfeit_match(tournament: Tournament, teams: Dict[str, Team], matches: List[Match], match_id: str,
                  forfeiting_team_id: str, reason: str) -> Dict[str, Team]:
    """
    Award a match to the opponent of forfeiting_team_id.

    The win and loss count with points, but no goals are recorded.
    """
    _require_in_progress(tournament)
    bracket = _Bracket(tournament, teams, matches)
    match = bracket.get(match_id)
    _require_playable(match)
    if forfeiting_team_id not in (match.home_team_id, match.away_team_id):
        raise ValidationError("Forfeiting team is not a participant in this match")

    winner = match.away_team_id if forfeiting_team_id == match.home_team_id else match.home_team_id
    bracket.record(match, winner, None, None, MatchStatus.FORFEIT, reason=reason)
    logger.info(f"Match {match.id} forfeited by {forfeiting_team_id}: {reason}")
    return bracket.teams


def is_bracket_complete(matches: List[Match]) -> bool:
    """
    True once every match that will ever be played has a result.

    GF2 only counts when GF1 was won by the losers bracket champion.
    """
    by_id = {match.id: match for match in matches}
    for match in matches:
        if match.has_result:
            continue
        if match.bracket_type is BracketType.GRAND_FINAL and match.round == 2:
            grand_final = next((m for m in by_id.values() if m.next_match_id == match.id), None)
            if grand_final and grand_final.has_result and grand_final.winner_team_id == grand_final.home_team_id:
                continue
        return False
    return bool(matches)
