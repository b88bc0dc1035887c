"""Project completed, finance-released defenses into the student record tables.

    python scripts/sync_defense_records.py                  # every pending defense
    python scripts/sync_defense_records.py --defense-id 42  # one defense
"""
import argparse
import json
import logging
from pathlib import Path
import sys


# Ensure imports work when running this file directly.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from gradschool.db import Base, SessionLocal, engine
from gradschool.services.student_record_sync_service import (
    SyncTransactionFailure,
    sync_defense_to_student_record,
    sync_pending_defense_records,
)


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('sync_defense_records')


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--defense-id', type=int, default=None, help='Sync a single defense request')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.defense_id is not None:
            try:
                result = sync_defense_to_student_record(db, args.defense_id)
            except ValueError as exc:
                logger.error('Defense request %s: %s', args.defense_id, exc)
                return 2
            except SyncTransactionFailure as exc:
                logger.error('%s', exc)
                return 1
        else:
            result = sync_pending_defense_records(db)
    finally:
        db.close()

    print(json.dumps(result, indent=2, default=str))
    if args.defense_id is None and result.get('failed'):
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
