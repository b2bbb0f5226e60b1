"""
Tests for seed validation and bracket position generation.
"""
import pytest

from bracket_core.elimination import (
    calculate_bracket_size,
    calculate_byes,
    calculate_total_rounds,
    generate_bracket_positions,
    validate_seeding,
)
from bracket_core.errors import ValidationError
from bracket_core.models import Team
from conftest import make_teams


def _chalk_rounds(positions):
    """Rounds of pairings assuming the better seed always wins."""
    rounds = []
    current = positions
    while len(current) > 1:
        pairs = [(current[i], current[i + 1]) for i in range(0, len(current), 2)]
        rounds.append(pairs)
        current = [min(pair) for pair in pairs]
    return rounds


class TestBracketSize:
    """Tests for bracket size, round and bye arithmetic."""

    def test_powers_of_two_are_unchanged(self):
        assert calculate_bracket_size(2) == 2
        assert calculate_bracket_size(8) == 8
        assert calculate_bracket_size(16) == 16

    def test_rounds_up_to_next_power(self):
        assert calculate_bracket_size(5) == 8
        assert calculate_bracket_size(9) == 16
        assert calculate_bracket_size(17) == 32

    def test_empty_bracket(self):
        assert calculate_bracket_size(0) == 0

    def test_total_rounds(self):
        assert calculate_total_rounds(2) == 1
        assert calculate_total_rounds(5) == 3
        assert calculate_total_rounds(16) == 4

    def test_byes(self):
        assert calculate_byes(5) == 3
        assert calculate_byes(6) == 2
        assert calculate_byes(8) == 0


class TestValidateSeeding:
    """Tests for validate_seeding."""

    def test_valid_seeds_pass(self):
        validate_seeding(make_teams(6))

    def test_seed_order_in_list_does_not_matter(self):
        validate_seeding(list(reversed(make_teams(4))))

    def test_missing_seed_reports_count(self):
        teams = make_teams(4)
        teams[1].seed = None
        teams[3].seed = None
        with pytest.raises(ValidationError, match=r"2 team\(s\) are missing seeds"):
            validate_seeding(teams)

    def test_duplicate_seeds_are_named(self):
        teams = make_teams(3) + [Team(id='dup', name='Dup', seed=2)]
        with pytest.raises(ValidationError, match="Duplicate seeds found: 2"):
            validate_seeding(teams)

    def test_gap_reports_first_missing_seed(self):
        teams = make_teams(4)
        teams[2].seed = 7
        with pytest.raises(ValidationError, match="Missing seed: 3"):
            validate_seeding(teams)

    def test_sequence_must_start_at_one(self):
        teams = [Team(id='a', name='A', seed=2), Team(id='b', name='B', seed=3)]
        with pytest.raises(ValidationError, match="Missing seed: 1"):
            validate_seeding(teams)

    def test_validation_does_not_mutate(self):
        teams = make_teams(3)
        teams[0].seed = None
        with pytest.raises(ValidationError):
            validate_seeding(teams)
        assert [t.seed for t in teams] == [None, 2, 3]


class TestBracketPositions:
    """Tests for generate_bracket_positions."""

    def test_fixed_tables(self):
        assert generate_bracket_positions(2) == [1, 2]
        assert generate_bracket_positions(4) == [1, 4, 3, 2]
        assert generate_bracket_positions(8) == [1, 8, 4, 5, 3, 6, 2, 7]
        assert generate_bracket_positions(16) == [1, 16, 8, 9, 4, 13, 5, 12, 3, 14, 6, 11, 2, 15, 7, 10]

    def test_larger_sizes_double_the_sixteen_table(self):
        positions = generate_bracket_positions(32)
        assert positions[:6] == [1, 32, 16, 17, 8, 25]

    @pytest.mark.parametrize("size", [2, 4, 8, 16, 32, 64])
    def test_positions_are_a_permutation(self, size):
        assert sorted(generate_bracket_positions(size)) == list(range(1, size + 1))

    @pytest.mark.parametrize("size", [2, 4, 8, 16, 32, 64])
    def test_adjacent_slots_sum_to_size_plus_one(self, size):
        positions = generate_bracket_positions(size)
        for i in range(0, size, 2):
            assert positions[i] + positions[i + 1] == size + 1

    @pytest.mark.parametrize("size", [2, 4, 8, 16, 32, 64])
    def test_top_seed_plays_lowest_seed_first(self, size):
        assert generate_bracket_positions(size)[:2] == [1, size]

    @pytest.mark.parametrize("size", [4, 8, 16, 32, 64])
    def test_seeds_one_and_two_in_opposite_halves(self, size):
        positions = generate_bracket_positions(size)
        half = size // 2
        assert 1 in positions[:half]
        assert 2 in positions[half:]

    @pytest.mark.parametrize("size", [4, 8, 16, 32])
    def test_chalk_bracket_pairs_by_seed_complement(self, size):
        """If favorites always win, every round pairs seed s with (remaining + 1 - s)."""
        for pairs in _chalk_rounds(generate_bracket_positions(size)):
            remaining = len(pairs) * 2
            for a, b in pairs:
                assert a + b == remaining + 1

    def test_chalk_semifinals_for_eight(self):
        rounds = _chalk_rounds(generate_bracket_positions(8))
        assert rounds[1] == [(1, 4), (3, 2)]
        assert rounds[2] == [(1, 2)]

    @pytest.mark.parametrize("size", [0, 1, 3, 6, 12, 24])
    def test_invalid_sizes_rejected(self, size):
        with pytest.raises(ValueError):
            generate_bracket_positions(size)
