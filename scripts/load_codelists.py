#!/usr/bin/env python3
"""
Load Codelists

Seeds the probability codelist with the standard recurrence intervals and,
optionally, loads municipalities, hazard events, factors and probability
bands from a JSON file:

    {"municipalities": [...], "events": [...], "factors": [...], "probabilities": [...]}
"""

import json
import sys
import logging
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import init_db, get_session_context
from database.models import Municipality, HazardEvent, Factor, ProbabilityBand

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

DEFAULT_PROBABILITIES = [
    (1, "Každé 2 - 3 roky", "critical"),
    (2, "Každé 4 - 5 rokov", "critical"),
    (3, "Každých 6 - 10 rokov", "high"),
    (4, "Každých 11 - 20 rokov", "high"),
    (5, "Každých 21 - 30 rokov", "medium"),
    (6, "Každých 31 - 50 rokov", "medium"),
    (7, "Každých 50 - 100 rokov", "low"),
    (8, "Každých 100 - 200 rokov", "low"),
    (9, "Každých 200 a viac rokov", "low"),
]

# JSON key → (model, accepted columns)
MODELS = {
    "municipalities": (Municipality, ("code", "name", "district", "district_code", "region", "region_code",
                                      "evid_code", "population", "latitude", "longitude")),
    "events": (HazardEvent, ("code", "name_sk", "name_en", "category", "is_category", "plan_type",
                             "ministry", "parent_code", "description")),
    "factors": (Factor, ("id", "order", "name")),
    "probabilities": (ProbabilityBand, ("id", "order", "name", "risk_level")),
}


def seed_probabilities(session, replace: bool = False) -> int:
    """Insert the default probability bands unless the table already has rows."""
    existing = session.query(ProbabilityBand).count()
    if existing and not replace:
        logger.info(f"Probability codelist already has {existing} rows, skipping seed")
        return 0
    if replace:
        session.query(ProbabilityBand).delete()
        logger.info("Cleared existing probability bands")

    for order, name, risk_level in DEFAULT_PROBABILITIES:
        session.add(ProbabilityBand(order=order, name=name, risk_level=risk_level))
    logger.info(f"Seeded {len(DEFAULT_PROBABILITIES)} probability bands")
    return len(DEFAULT_PROBABILITIES)


def load_codelists(filepath: str, dry_run: bool = False) -> int:
    """
    Upsert codelist rows from a JSON file.

    Args:
        filepath: Path to the codelist JSON
        dry_run: If True, validate but don't commit

    Returns:
        Number of rows written
    """
    logger.info(f"Loading codelists from {filepath}")

    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)

    loaded_count = 0
    with get_session_context() as session:
        for key, (model, columns) in MODELS.items():
            rows = data.get(key, [])
            for item in rows:
                values = {c: item[c] for c in columns if c in item}
                session.merge(model(**values))
                loaded_count += 1
            if rows:
                logger.info(f"Loaded {len(rows)} {key}")

        if dry_run:
            logger.info("Dry run - rolling back")
            session.rollback()
        else:
            session.commit()

    logger.info(f"Load complete: {loaded_count} codelist rows")
    return loaded_count


def main():
    import argparse
    parser = argparse.ArgumentParser(description='Load codelists into database')
    parser.add_argument('filepath', nargs='?', help='Path to codelist JSON')
    parser.add_argument('--replace-probabilities', action='store_true',
                        help='Replace the probability codelist with the defaults')
    parser.add_argument('--dry-run', action='store_true', help='Validate without committing')
    args = parser.parse_args()

    init_db()

    if args.filepath:
        if not Path(args.filepath).exists():
            logger.error(f"File not found: {args.filepath}")
            sys.exit(1)
        load_codelists(args.filepath, dry_run=args.dry_run)

    with get_session_context() as session:
        seed_probabilities(session, replace=args.replace_probabilities)
        if args.dry_run:
            session.rollback()


if __name__ == '__main__':
    main()
