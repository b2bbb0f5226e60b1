"""
Print the matches a tournament format would generate for a teams file.

Usage:
    python src/generate_matches.py data/teams.yaml
    python src/generate_matches.py data/teams.yaml --format DoubleElimination

The teams file is either a mapping of team name to seed or a list of
{id, name, seed} entries.
"""
import argparse
import os
import sys

import yaml

from bracket_core.errors import ValidationError
from bracket_core.formats import generate_matches
from bracket_core.models import Team, Tournament, TournamentFormat


def load_teams(file_path):
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []

    teams = []
    if isinstance(data, dict):
        for name, seed in data.items():
            teams.append(Team(id=str(name), name=str(name), seed=seed))
    else:
        for entry in data:
            team_id = str(entry.get('id', entry['name']))
            teams.append(Team(id=team_id, name=entry['name'], seed=entry.get('seed')))
    return teams


def format_matches(matches, teams):
    """Render matches grouped by bracket section and round, one per line."""
    names = {team.id: team.name for team in teams}
    lines = []
    current_section = None
    for match in matches:
        section = (match.bracket_type.value if match.bracket_type else 'Bracket', match.round)
        if section != current_section:
            if lines:
                lines.append('')
            lines.append(f"# {section[0]} round {section[1]}")
            current_section = section
        home = names.get(match.home_team_id, 'TBD')
        if match.is_bye:
            lines.append(f"{match.bracket_position}: {home if match.home_team_id else 'TBD'} (bye)")
        else:
            away = names.get(match.away_team_id, 'TBD')
            lines.append(f"{match.bracket_position}: {home} vs {away}")
    return lines


def main(argv=None):
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)

    parser = argparse.ArgumentParser(description='Print generated tournament matches')
    parser.add_argument('teams_file', nargs='?', default=os.path.join(base_dir, 'data', 'teams.yaml'))
    parser.add_argument('--format', dest='format', default=TournamentFormat.SINGLE_ELIMINATION.value,
                        choices=[f.value for f in TournamentFormat])
    args = parser.parse_args(argv)

    teams = load_teams(args.teams_file)
    tournament = Tournament(id='preview', name='Preview', format=args.format)
    try:
        matches, teams = generate_matches(tournament, teams)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for line in format_matches(matches, teams):
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
