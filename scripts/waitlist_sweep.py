#!/usr/bin/env python3
"""
Payment Deadline Sweep

Cancels registrations whose payment deadline has passed, promotes waitlisted
players into the freed spots and queues their notifications. Meant to run on
a schedule (every 15 minutes); overlapping runs are skipped.

Usage:
    python scripts/waitlist_sweep.py
    python scripts/waitlist_sweep.py --data-dir /home/data

Exit codes:
    0: Success
    1: Invalid configuration
    3: Another sweep is still running
"""
import argparse
import logging
import os
import sys

from filelock import FileLock, Timeout

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..', 'src'))

from bracket_core.config import configure_logging, load_settings  # noqa: E402
from bracket_core.service import TournamentService  # noqa: E402
from storage import OutboxNotifier, StoreAuthorizer, YamlStore  # noqa: E402

logger = logging.getLogger('waitlist_sweep')


def run_sweep(service: TournamentService, lock_path: str):
    """
    Run one sweep unless another process holds lock_path.

    Returns:
        Number of expired registrations, or None if the sweep was skipped
    """
    os.makedirs(os.path.dirname(lock_path) or '.', exist_ok=True)
    try:
        with FileLock(lock_path, timeout=0):
            return service.process_expired_payment_deadlines()
    except Timeout:
        logger.warning(f"Another sweep holds {lock_path}; skipping this run")
        return None


def main(argv=None):
    parser = argparse.ArgumentParser(description='Expire unpaid registrations and refill from the waitlist')
    parser.add_argument('--data-dir', help='Data directory (defaults to TOURNAMENT_DATA_DIR or ./data)')
    parser.add_argument('--settings', help='Settings YAML file')
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.settings)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.data_dir:
        settings['data_dir'] = args.data_dir
    configure_logging(settings)

    data_dir = settings['data_dir']
    store = YamlStore(data_dir, lock_timeout=settings['lock_timeout_seconds'])
    service = TournamentService.from_settings(
        settings,
        store,
        StoreAuthorizer(store, settings.get('organization_admins')),
        OutboxNotifier(data_dir, settings['lock_timeout_seconds']),
    )

    expired = run_sweep(service, os.path.join(data_dir, '.waitlist_sweep.lock'))
    if expired is None:
        return 3
    print(f"Expired {expired} registration(s)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
