"""
Round robin schedule generation and format dispatch.
"""
from typing import List, Optional, Tuple

from .double_elimination import build_double_elimination
from .elimination import build_single_elimination, validate_seeding
from .errors import ValidationError
from .models import Match, Team, Tournament, TournamentFormat


def build_round_robin(tournament_id: str, teams: List[Team]) -> Tuple[List[Match], List[Team]]:
    """
    Build a full round robin with the circle method.

    With an odd team count a phantom entry is added and its pairings are
    skipped, so each team sits out exactly one round. Position 0 stays fixed
    and the last entry rotates into position 1 after every round. The lower
    seed number is home in even rounds and away in odd rounds.
    """
    if len(teams) < 2:
        raise ValidationError("Tournament must have at least 2 teams to generate bracket")
    validate_seeding(teams)

    entries: List[Optional[Team]] = sorted(teams, key=lambda t: t.seed)
    if len(entries) % 2 == 1:
        entries.append(None)
    n = len(entries)

    matches = []
    for round_num in range(1, n):
        match_number = 0
        for i in range(n // 2):
            first, second = entries[i], entries[n - 1 - i]
            if first is None or second is None:
                continue
            match_number += 1
            lower, higher = sorted((first, second), key=lambda t: t.seed)
            home, away = (lower, higher) if round_num % 2 == 0 else (higher, lower)
            label = f"RR-R{round_num}-M{match_number}"
            matches.append(Match(
                id=f"{tournament_id}-{label}",
                tournament_id=tournament_id,
                round=round_num,
                match_number=match_number,
                bracket_position=label,
                home_team_id=home.id,
                away_team_id=away.id,
            ))
        entries.insert(1, entries.pop())

    return matches, [team.copy(has_bye=False) for team in teams]


BUILDERS = {
    TournamentFormat.SINGLE_ELIMINATION: build_single_elimination,
    TournamentFormat.DOUBLE_ELIMINATION: build_double_elimination,
    TournamentFormat.ROUND_ROBIN: build_round_robin,
}


def generate_matches(tournament: Tournament, teams: List[Team]) -> Tuple[List[Match], List[Team]]:
    """Generate the full match set for the tournament's format."""
    builder = BUILDERS[tournament.format]
    return builder(tournament.id, teams)
