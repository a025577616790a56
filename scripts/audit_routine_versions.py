"""Report and repair routine version chains.

Prints, per faculty, how many versions carry the latest flag and whether the
``previous_version_id`` chain is unbroken. With ``--fix`` the newest flagged
version is kept and the flag is cleared on the others.

Run:
  PYTHONPATH=backend python scripts/audit_routine_versions.py [--fix]
"""

from __future__ import annotations

import argparse
from collections import defaultdict

from sqlalchemy import select

from lms.db.session import SessionLocal
from lms.models.routine import Routine, RoutineState
from lms.services.routines import repair_latest_flags


def _audit(session) -> int:
    chains: dict[str, list[Routine]] = defaultdict(list)
    for routine in session.execute(
        select(Routine).where(Routine.state != RoutineState.draft).order_by(Routine.faculty_id, Routine.version)
    ).scalars():
        chains[routine.faculty_id].append(routine)

    problems = 0
    for faculty_id, versions in chains.items():
        latest = [item for item in versions if item.is_latest]
        ids = {item.id for item in versions}
        broken = [
            item.version
            for item in versions
            if item.previous_version_id is not None and item.previous_version_id not in ids
        ]
        status = "ok"
        if len(latest) != 1 or broken:
            status = "NEEDS ATTENTION"
            problems += 1
        print(
            f"{faculty_id}: {len(versions)} version(s), latest flags={len(latest)}, "
            f"broken links={broken or 'none'} -> {status}"
        )
    return problems


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--fix", action="store_true", help="clear duplicate latest flags")
    args = parser.parse_args()

    with SessionLocal() as session:
        problems = _audit(session)
        if args.fix:
            repaired = repair_latest_flags(session)
            session.commit()
            print(f"\nCleared the latest flag on {repaired} routine version(s).")
        elif problems:
            print(f"\n{problems} faculty chain(s) need attention. Re-run with --fix to repair latest flags.")


if __name__ == "__main__":
    main()
