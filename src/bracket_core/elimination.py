"""
Single elimination bracket generation.

Seeds are placed with the standard bracket position table so that, if every
higher seed wins, seeds 1 and 2 meet in the final, 1-4 and 2-3 in the
semifinals, and so on. When the team count is not a power of two the top seeds
receive byes into round 2.
"""
import math
from collections import Counter
from typing import List, Optional, Tuple

from .errors import ValidationError
from .models import BracketType, Match, MatchStatus, Team


# Round-1 slot order for the common bracket sizes. Match k takes slots 2k and 2k+1.
POSITION_TABLES = {
    2: [1, 2],
    4: [1, 4, 3, 2],
    8: [1, 8, 4, 5, 3, 6, 2, 7],
    16: [1, 16, 8, 9, 4, 13, 5, 12, 3, 14, 6, 11, 2, 15, 7, 10],
}


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def calculate_total_rounds(num_teams: int) -> int:
    """Number of rounds needed to reduce num_teams to a single winner."""
    if num_teams < 2:
        return 0
    return int(math.log2(calculate_bracket_size(num_teams)))


def calculate_byes(num_teams: int) -> int:
    """Calculate number of byes needed."""
    bracket_size = calculate_bracket_size(num_teams)
    return bracket_size - num_teams


def validate_seeding(teams: List[Team]) -> None:
    """
    Check that every team has a seed and that the seeds are exactly 1..N.

    Raises:
        ValidationError: naming the missing count, the duplicates, or the
            first seed missing from the sequence.
    """
    unseeded = [team for team in teams if team.seed is None]
    if unseeded:
        raise ValidationError(
            f"All teams must have a seed assigned. {len(unseeded)} team(s) are missing seeds.")

    counts = Counter(team.seed for team in teams)
    duplicates = sorted(seed for seed, count in counts.items() if count > 1)
    if duplicates:
        raise ValidationError(f"Duplicate seeds found: {', '.join(str(s) for s in duplicates)}")

    seeds = sorted(counts)
    for index, seed in enumerate(seeds):
        if seed != index + 1:
            raise ValidationError(f"Seeds must be contiguous starting from 1. Missing seed: {index + 1}")


def generate_bracket_positions(bracket_size: int) -> List[int]:
    """
    Return the seed in each round-1 slot for a bracket of bracket_size.

    Adjacent slots (2k, 2k+1) are paired and always sum to bracket_size + 1.
    Sizes above 16 double the 16 table: each seed is followed by its
    complement in the doubled bracket.
    """
    if bracket_size < 2 or bracket_size & (bracket_size - 1):
        raise ValueError(f"Bracket size must be a power of two >= 2, got {bracket_size}")

    if bracket_size in POSITION_TABLES:
        return list(POSITION_TABLES[bracket_size])

    positions = list(POSITION_TABLES[16])
    size = 16
    while size < bracket_size:
        size *= 2
        positions = [seed for s in positions for seed in (s, size + 1 - s)]
    return positions


def get_position_label(round_num: int, match_number: int, total_rounds: int, team_count: int) -> str:
    """Display label for a match: Final, SF{n}, QF{n} or R{round}-M{n}."""
    rounds_from_final = total_rounds - round_num
    if rounds_from_final == 0:
        return "Final"
    if rounds_from_final == 1 and team_count >= 4:
        return f"SF{match_number}"
    if rounds_from_final == 2 and team_count >= 8:
        return f"QF{match_number}"
    return f"R{round_num}-M{match_number}"


def build_single_elimination(tournament_id: str, teams: List[Team],
                             bracket_type: Optional[BracketType] = None,
                             id_prefix: str = "R",
                             label_prefix: str = "") -> Tuple[List[Match], List[Team]]:
    """
    Build every match of a seeded single elimination bracket.

    Args:
        tournament_id: owner of the generated matches
        teams: teams with seeds 1..N, N >= 2
        bracket_type: set on every match (Winners when used inside double elimination)
        id_prefix: round prefix used in match ids
        label_prefix: prepended to every bracket position label

    Returns:
        (matches ordered by round then match number, copies of teams with has_bye set)
    """
    if len(teams) < 2:
        raise ValidationError("Tournament must have at least 2 teams to generate bracket")
    validate_seeding(teams)

    team_count = len(teams)
    bracket_size = calculate_bracket_size(team_count)
    total_rounds = calculate_total_rounds(team_count)
    by_seed = {team.seed: team for team in teams}

    rounds: List[List[Match]] = []
    for round_num in range(1, total_rounds + 1):
        match_count = bracket_size // (2 ** round_num)
        rounds.append([
            Match(
                id=f"{tournament_id}-{id_prefix}{round_num}-M{n}",
                tournament_id=tournament_id,
                round=round_num,
                match_number=n,
                bracket_position=label_prefix + get_position_label(round_num, n, total_rounds, team_count),
                bracket_type=bracket_type,
            )
            for n in range(1, match_count + 1)
        ])

    for round_index in range(total_rounds - 1):
        for i, match in enumerate(rounds[round_index]):
            match.next_match_id = rounds[round_index + 1][i // 2].id

    positions = generate_bracket_positions(bracket_size)
    for i, match in enumerate(rounds[0]):
        home = by_seed.get(positions[2 * i])
        away = by_seed.get(positions[2 * i + 1])
        if home is None or away is None:
            # Phantom opponent: the present team advances without playing
            present = home or away
            match.home_team_id = present.id
            match.is_bye = True
            match.status = MatchStatus.COMPLETED
            match.winner_team_id = present.id
        else:
            match.home_team_id = home.id
            match.away_team_id = away.id

    # Bye winners move into round 2 only once every round-1 slot is assigned
    if total_rounds > 1:
        for i, match in enumerate(rounds[0]):
            if not match.is_bye:
                continue
            next_match = rounds[1][i // 2]
            if i % 2 == 0:
                next_match.home_team_id = match.winner_team_id
            else:
                next_match.away_team_id = match.winner_team_id

    bye_holders = {match.winner_team_id for match in rounds[0] if match.is_bye}
    seeded = [team.copy(has_bye=team.id in bye_holders) for team in teams]
    return [match for round_matches in rounds for match in round_matches], seeded
