"""
Pytest Configuration and Fixtures.

Shared quiz records for the engine and API tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def submission_record():
    """Current attempt: 80/100 correct, 3 of 4 initial mistakes fixed."""
    return {
        "correct_answers": 80,
        "total_questions": 100,
        "speed": 100,
        "mistakes_corrected": 3,
        "initial_mistake_count": 4,
        "answers": {"q1": "A", "q2": "C", "q3": "B", "q4": "D"},
    }


@pytest.fixture
def ranked_history():
    """Scores rise 50 -> 70 -> 90 while ranks fall 4000 -> 2500 -> 1000."""
    return [
        {
            "submitted_at": "2025-01-05T10:00:00",
            "score": 50,
            "rank": 4000,
            "correct_answers": 5,
            "total_questions": 10,
            "speed": 60,
            "quiz": {"topic": "Genetics"},
        },
        {
            "submitted_at": "2025-01-12T10:00:00",
            "score": 70,
            "rank": 2500,
            "correct_answers": 7,
            "total_questions": 10,
            "speed": 80,
            "quiz": {"topic": "Ecology"},
        },
        {
            "submitted_at": "2025-01-19T10:00:00",
            "score": 90,
            "rank": 1000,
            "correct_answers": 9,
            "total_questions": 10,
            "speed": 90,
            "quiz": {"topic": "Genetics"},
        },
    ]


@pytest.fixture
def quiz_record():
    return {
        "quiz": {
            "topic": "Biology",
            "questions": [
                {"id": "q1", "topic": "Genetics", "correct_option": "A"},
                {"id": "q2", "topic": "Genetics", "correct_option": "B"},
                {"id": "q3", "topic": "Ecology", "correct_option": "B"},
                {"id": "q4", "topic": "Ecology", "correct_option": "D"},
            ],
        }
    }


def make_attempt(day, accuracy_correct, topic=None, total=10, score=None, rank=None, speed=50, **extra):
    """Build one raw history record for 2025-01-<day>."""
    record = {
        "submitted_at": f"2025-01-{day:02d}T09:00:00",
        "correct_answers": accuracy_correct,
        "total_questions": total,
        "speed": speed,
    }
    if topic is not None:
        record["quiz"] = {"topic": topic}
    if score is not None:
        record["score"] = score
    if rank is not None:
        record["rank"] = rank
    record.update(extra)
    return record


@pytest.fixture
def attempt_factory():
    return make_attempt
