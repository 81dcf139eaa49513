from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence
import uuid

from gene_guidance.core.models import Sex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def safe_uuid() -> str:
    return str(uuid.uuid4())


def sex_matches(row_sex: Sex, patient_sex: Sex) -> bool:
    return row_sex == Sex.ANY or row_sex == patient_sex


def unique_ids(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def partition_by_age(rows: Sequence, age: int) -> tuple[list, list]:
    """Split rows into (done, future) by age_min; age_max is not consulted.

    Rows without a minimum age are always done and sort first. Sorting is stable,
    so rows sharing an age_min keep their input order.
    """
    done = sorted(
        (row for row in rows if row.age_min is None or row.age_min <= age),
        key=lambda row: -1 if row.age_min is None else row.age_min,
    )
    future = sorted(
        (row for row in rows if row.age_min is not None and row.age_min > age),
        key=lambda row: row.age_min,
    )
    return done, future
