"""
Double elimination bracket generation.

In double elimination:
- Teams must lose twice to be eliminated
- Winners Bracket: the seeded single elimination bracket
- Losers Bracket: teams that have lost once, alternating minor rounds (losers
  bracket survivors play each other) and major rounds (survivors meet the
  teams dropping from the next winners round)
- Grand Final: Winners bracket champion vs Losers bracket champion
- Bracket Reset: if the losers bracket champion wins GF1, GF2 decides the title
"""
import math
from typing import Dict, List, Optional, Tuple

from .elimination import build_single_elimination, calculate_bracket_size
from .models import BracketType, Match, Team

HOME = "home"
AWAY = "away"


def calculate_losers_bracket_rounds(bracket_size: int) -> int:
    """
    Calculate number of losers bracket rounds.

    For a bracket of size N (power of 2) with log2(N) winners rounds there are
    2 * (log2(N) - 1) losers rounds. A 2-team bracket has none.
    """
    if bracket_size <= 2:
        return 0
    return 2 * (int(math.log2(bracket_size)) - 1)


def get_losers_position_label(round_num: int, match_number: int, total_losers_rounds: int) -> str:
    """Label for a losers bracket match (round_num is 1-based)."""
    if round_num == total_losers_rounds:
        return "L-Final"
    if round_num == total_losers_rounds - 1 and total_losers_rounds >= 4:
        return "L-SF"
    return f"L{round_num}-M{match_number}"


def get_advancement_slot(source: Match, destination: Match, as_loser: bool = False) -> str:
    """
    Which slot of destination a team leaving source takes.

    Winners go home when the source match number is odd, away when even.
    Exceptions: the losers champion and a dropping winners finalist take GF1
    away, a team dropping into a major losers round takes the slot opposite
    the losers bracket survivor, and a bye is always filled from home.
    """
    if destination.is_bye:
        return HOME
    if destination.bracket_type is BracketType.GRAND_FINAL:
        if destination.round == 1:
            if as_loser or source.bracket_type is BracketType.LOSERS:
                return AWAY
            return HOME
        return AWAY if as_loser else HOME
    odd = source.match_number % 2 == 1
    if as_loser and destination.bracket_type is BracketType.LOSERS and destination.round > 1:
        return AWAY if odd else HOME
    return HOME if odd else AWAY


def _losers_match(tournament_id: str, round_num: int, match_number: int,
                  total_losers_rounds: int, entrants: int) -> Match:
    # A position only one team can ever reach is a bye that completes on arrival
    return Match(
        id=f"{tournament_id}-L{round_num}-M{match_number}",
        tournament_id=tournament_id,
        round=round_num,
        match_number=match_number,
        bracket_position=get_losers_position_label(round_num, match_number, total_losers_rounds),
        bracket_type=BracketType.LOSERS,
        is_bye=entrants == 1,
    )


def _group_by_round(matches: List[Match]) -> Dict[int, List[Match]]:
    by_round: Dict[int, List[Match]] = {}
    for match in matches:
        by_round.setdefault(match.round, []).append(match)
    for round_matches in by_round.values():
        round_matches.sort(key=lambda m: m.match_number)
    return by_round


def _generate_losers_bracket(tournament_id: str, winners: Dict[int, List[Match]],
                             bracket_size: int) -> List[List[Optional[Match]]]:
    """
    Generate losers bracket rounds and wire the winners bracket drops into them.

    Returns one list per losers round. A round-1 position both of whose
    winners feeders are byes can never be filled, so it is left as None.
    """
    total_losers_rounds = calculate_losers_bracket_rounds(bracket_size)
    rounds: List[List[Optional[Match]]] = []

    # Round 1: losers of winners round 1, paired two by two
    first_round: List[Optional[Match]] = []
    for m in range(1, bracket_size // 4 + 1):
        feeders = [w for w in winners[1][2 * m - 2:2 * m] if not w.is_bye]
        if not feeders:
            first_round.append(None)
            continue
        match = _losers_match(tournament_id, 1, m, total_losers_rounds, len(feeders))
        for feeder in feeders:
            feeder.loser_next_match_id = match.id
        first_round.append(match)
    rounds.append(first_round)

    for round_num in range(2, total_losers_rounds + 1):
        previous = rounds[-1]
        current: List[Optional[Match]] = []
        if round_num % 2 == 0:
            # Major round: survivors meet the losers of winners round round_num/2 + 1
            drops = winners[round_num // 2 + 1]
            for m, (survivor_feeder, drop) in enumerate(zip(previous, drops), start=1):
                entrants = 1 + (1 if survivor_feeder is not None else 0)
                match = _losers_match(tournament_id, round_num, m, total_losers_rounds, entrants)
                if survivor_feeder is not None:
                    survivor_feeder.next_match_id = match.id
                drop.loser_next_match_id = match.id
                current.append(match)
        else:
            # Minor round: losers bracket survivors play each other
            for m in range(1, len(previous) // 2 + 1):
                match = _losers_match(tournament_id, round_num, m, total_losers_rounds, 2)
                for feeder in previous[2 * m - 2:2 * m]:
                    feeder.next_match_id = match.id
                current.append(match)
        rounds.append(current)

    return rounds


def build_double_elimination(tournament_id: str, teams: List[Team]) -> Tuple[List[Match], List[Team]]:
    """
    Build the winners bracket, losers bracket and both grand final matches.

    Returns:
        (matches: winners, then losers, then GF1 and GF2; copies of teams with has_bye set)
    """
    winners, seeded = build_single_elimination(
        tournament_id, teams,
        bracket_type=BracketType.WINNERS,
        id_prefix="W",
        label_prefix="W-",
    )
    bracket_size = calculate_bracket_size(len(teams))
    winners_by_round = _group_by_round(winners)
    winners_final = winners_by_round[max(winners_by_round)][0]

    grand_final = Match(
        id=f"{tournament_id}-GF1",
        tournament_id=tournament_id,
        round=1,
        match_number=1,
        bracket_position="GF1",
        bracket_type=BracketType.GRAND_FINAL,
    )
    bracket_reset = Match(
        id=f"{tournament_id}-GF2",
        tournament_id=tournament_id,
        round=2,
        match_number=1,
        bracket_position="GF2",
        bracket_type=BracketType.GRAND_FINAL,
    )
    grand_final.next_match_id = bracket_reset.id
    winners_final.next_match_id = grand_final.id

    losers: List[Match] = []
    if calculate_losers_bracket_rounds(bracket_size) == 0:
        winners_final.loser_next_match_id = grand_final.id
    else:
        losers_rounds = _generate_losers_bracket(tournament_id, winners_by_round, bracket_size)
        losers_rounds[-1][0].next_match_id = grand_final.id
        losers = [match for round_matches in losers_rounds for match in round_matches if match is not None]

    return winners + losers + [grand_final, bracket_reset], seeded
