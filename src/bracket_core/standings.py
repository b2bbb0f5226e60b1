"""
Standings calculation with a configurable tiebreaker chain.

Teams are grouped by points. Inside a group each tiebreaker only separates
teams that every earlier tiebreaker left level, and teams still level after
the whole chain keep seed order.

A run of three or more teams level on points, goal differential and goals
scored, none of which has a decisive direct result against the first team of
the run, is reported as a tied group.
"""
from collections import Counter
from itertools import groupby
from typing import Dict, List, Optional, Sequence

from .models import Match, Team, Tiebreaker, parse_tiebreaker_order

UNRESOLVED_TIE_REASON = "Teams tied on points, head-to-head, goal differential and goals scored"

# Mini-table scoring used for head-to-head among tied teams
HEAD_TO_HEAD_WIN = 3
HEAD_TO_HEAD_TIE = 1


class StandingRow:
    def __init__(self, team: Team, rank: int, games_played: int, is_playoff_bound: bool):
        self.team_id = team.id
        self.team_name = team.name
        self.seed = team.seed
        self.rank = rank
        self.wins = team.wins
        self.losses = team.losses
        self.ties = team.ties
        self.points = team.points
        self.goals_for = team.goals_for
        self.goals_against = team.goals_against
        self.goal_differential = team.goal_differential
        self.games_played = games_played
        self.is_playoff_bound = is_playoff_bound

    def to_dict(self) -> Dict:
        return dict(self.__dict__)

    def __repr__(self):
        return f"StandingRow(rank={self.rank}, team={self.team_id}, points={self.points})"


class TiedGroup:
    def __init__(self, team_ids: List[str], reason: str = UNRESOLVED_TIE_REASON):
        self.team_ids = team_ids
        self.reason = reason

    def to_dict(self) -> Dict:
        return {'team_ids': list(self.team_ids), 'reason': self.reason}

    def __repr__(self):
        return f"TiedGroup(team_ids={self.team_ids})"


class Standings:
    def __init__(self, rows: List[StandingRow], tied_groups: List[TiedGroup],
                 playoff_cutoff: Optional[int] = None):
        self.rows = rows
        self.tied_groups = tied_groups
        self.playoff_cutoff = playoff_cutoff

    def to_dict(self) -> Dict:
        return {
            'standings': [row.to_dict() for row in self.rows],
            'playoff_cutoff': self.playoff_cutoff,
            'tied_groups': [group.to_dict() for group in self.tied_groups],
        }


def _counted_matches(matches: List[Match]) -> List[Match]:
    return [m for m in matches if m.has_result and not m.is_bye and m.away_team_id is not None]


def _head_to_head_keys(teams: List[Team], matches: List[Match]) -> Dict[str, tuple]:
    """
    Mini-table over matches played among teams: (points, wins).

    With two teams this reduces to the direct result: the winner of a
    decisive meeting ranks first, a drawn or missing meeting leaves them level.
    """
    ids = {team.id for team in teams}
    points = Counter()
    wins = Counter()
    for match in matches:
        if match.home_team_id not in ids or match.away_team_id not in ids:
            continue
        if match.winner_team_id is None:
            points[match.home_team_id] += HEAD_TO_HEAD_TIE
            points[match.away_team_id] += HEAD_TO_HEAD_TIE
        else:
            points[match.winner_team_id] += HEAD_TO_HEAD_WIN
            wins[match.winner_team_id] += 1
    return {team.id: (points[team.id], wins[team.id]) for team in teams}


def _criterion_keys(criterion: Tiebreaker, teams: List[Team], matches: List[Match]) -> Dict[str, tuple]:
    if criterion is Tiebreaker.HEAD_TO_HEAD:
        return _head_to_head_keys(teams, matches)
    if criterion is Tiebreaker.GOAL_DIFFERENTIAL:
        return {team.id: (team.goal_differential,) for team in teams}
    if criterion is Tiebreaker.GOALS_SCORED:
        return {team.id: (team.goals_for,) for team in teams}
    raise ValueError(f"Unknown tiebreaker: {criterion}")


def _seed_order(team: Team):
    return (team.seed is None, team.seed or 0, team.id)


def _rank_group(teams: List[Team], criteria: Sequence[Tiebreaker], matches: List[Match]) -> List[List[Team]]:
    """Split a points group into ordered clusters of teams no criterion separates."""
    if len(teams) < 2 or not criteria:
        return [sorted(teams, key=_seed_order)]

    keys = _criterion_keys(criteria[0], teams, matches)
    ordered = sorted(teams, key=lambda t: keys[t.id], reverse=True)
    clusters = []
    for _, level in groupby(ordered, key=lambda t: keys[t.id]):
        clusters.extend(_rank_group(list(level), criteria[1:], matches))
    return clusters


def _has_decisive_result(first: Team, other: Team, matches: List[Match]) -> bool:
    pair = {first.id, other.id}
    return any({m.home_team_id, m.away_team_id} == pair and m.winner_team_id is not None
               for m in matches)


def _level_on_all_criteria(first: Team, other: Team, matches: List[Match]) -> bool:
    return (first.points == other.points
            and first.goal_differential == other.goal_differential
            and first.goals_for == other.goals_for
            and not _has_decisive_result(first, other, matches))


def find_tied_groups(ordered: List[Team], matches: List[Match]) -> List[TiedGroup]:
    """Runs of 3+ consecutive teams level with the first team of the run on every criterion."""
    groups = []
    start = 0
    while start < len(ordered):
        end = start + 1
        while end < len(ordered) and _level_on_all_criteria(ordered[start], ordered[end], matches):
            end += 1
        if end - start >= 3:
            groups.append(TiedGroup([team.id for team in ordered[start:end]]))
        start = end
    return groups


def calculate_standings(teams: List[Team], matches: List[Match],
                        tiebreaker_order: Optional[Sequence] = None,
                        playoff_teams_count: Optional[int] = None) -> Standings:
    """
    Rank teams by points and the tiebreaker chain.

    Args:
        teams: teams with their accumulated statistics
        matches: all tournament matches; only completed or forfeited non-bye matches count
        tiebreaker_order: criteria applied in order (default HeadToHead,
            GoalDifferential, GoalsScored)
        playoff_teams_count: top N teams flagged as playoff bound

    Returns:
        Standings with sequential ranks 1..N and any unresolvable tied groups
    """
    criteria = parse_tiebreaker_order(tiebreaker_order)
    counted = _counted_matches(matches)

    games_played = Counter()
    for match in counted:
        games_played[match.home_team_id] += 1
        games_played[match.away_team_id] += 1

    by_points = sorted(teams, key=lambda t: -t.points)
    clusters: List[List[Team]] = []
    for _, group in groupby(by_points, key=lambda t: t.points):
        clusters.extend(_rank_group(list(group), criteria, counted))

    ordered = [team for cluster in clusters for team in cluster]
    rows = []
    for team in ordered:
        rank = len(rows) + 1
        playoff_bound = playoff_teams_count is not None and rank <= playoff_teams_count
        rows.append(StandingRow(team, rank, games_played[team.id], playoff_bound))

    return Standings(rows, find_tied_groups(ordered, counted), playoff_teams_count)
