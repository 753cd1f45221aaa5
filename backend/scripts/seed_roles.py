"""CLI script to create tables and insert the default roles.
Usage: python scripts/seed_roles.py [--list]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `examhub` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session, select
from examhub.database import engine, create_db_and_tables, seed_roles
from examhub import models


def main(show: bool = False):
    """Create missing tables, then insert default roles that are absent.

    Safe to run repeatedly: existing role names are skipped. With `show`
    the resulting role table is printed.
    """
    create_db_and_tables()
    with Session(engine) as session:
        created = seed_roles(session)
        print(f'Created {created} role(s)')
        if show:
            for role in session.exec(select(models.Role).order_by(models.Role.id)).all():
                print(f'{role.id:>3}  {role.name}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--list', action='store_true', help='Print the roles after seeding')
    args = parser.parse_args()
    main(show=args.list)
