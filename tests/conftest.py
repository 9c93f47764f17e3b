"""Shared fixtures for observation insights tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from observation_insights.models import ObservationRecord


BASE_DATE = datetime(2024, 9, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record():
    """Factory building ObservationRecords with sensible defaults."""
    ids = count(1)

    def _make(grade=None, day=0, **overrides):
        number = next(ids)
        data = {
            "id": f"obs-{number}",
            "teacher_id": "t1",
            "teacher_name": "Alice Walker",
            "observer_id": "o1",
            "observer_name": "Mr Bishop",
            "observation_date": BASE_DATE + timedelta(days=day),
            "subject": "Maths",
            "key_stage": "KS3",
            "department": "Mathematics",
            "observation_type": "Formal",
            "overall_grade": grade,
        }
        data.update(overrides)
        return ObservationRecord(**data)

    return _make


@pytest.fixture
def scenario_records(make_record):
    """Outstanding, Good, Inadequate and one ungraded observation."""
    return [
        make_record("Outstanding", day=0),
        make_record("Good", day=1),
        make_record("Inadequate", day=2),
        make_record(None, day=3),
    ]


@pytest.fixture
def school_records(make_record):
    """A small school: two teachers, two subjects, two key stages."""
    return [
        make_record("Outstanding", day=0, teacher_id="t1", teacher_name="Alice Walker", subject="Maths",
                    key_stage="KS3", strengths="Excellent questioning and pace",
                    areas_for_development="Stretch and challenge for the most able"),
        make_record("Outstanding", day=7, teacher_id="t1", teacher_name="Alice Walker", subject="Maths",
                    key_stage="KS3", strengths="Strong questioning",
                    areas_for_development="More challenge"),
        make_record("Good", day=14, teacher_id="t1", teacher_name="Alice Walker", subject="Maths",
                    key_stage="KS4", strengths="Clear planning"),
        make_record("Inadequate", day=3, teacher_id="t2", teacher_name="Ben Carter", subject="English",
                    department="English", key_stage="KS4", observer_id="o2", observer_name="Ms Patel",
                    areas_for_development="Differentiation and assessment for learning"),
        make_record("Requires Improvement", day=10, teacher_id="t2", teacher_name="Ben Carter",
                    subject="English", department="English", key_stage="KS4", observer_id="o2",
                    observer_name="Ms Patel", areas_for_development="Differentiation needs work; behaviour"),
    ]
