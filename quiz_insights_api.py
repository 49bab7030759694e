"""
NEET Quiz Insights & Rank Prediction Engine
===========================================
Turns three quiz activity records (quiz definition, current submission and
the historical attempt series) into topic-level metrics, weak-area
classification, a predicted rank with a 95% confidence interval and
improvement recommendations.

Every function here is pure: inputs are passed explicitly, nothing is cached
and nothing is mutated, so concurrent requests need no locking.

Canonical formula set:
    - Accuracy is on the 0-100 scale everywhere, mistake rate on 0-1.
    - Standard deviation is the sample one (ddof=1) wherever consistency
      appears.
    - Weighted score = 0.4*accuracy + 0.2*speed + 0.2*consistency
      + 0.2*improvement, with accuracy and speed scaled into [0, 1] first.

Author: Quiz Insights Development Team
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

# -------------------------
# CONFIGURATION
# -------------------------

DEFAULT_MAX_RANK = 50000
DEFAULT_CONFIDENCE_Z = 1.96  # 95% confidence level
DEFAULT_SPEED_SCALE = 100.0
DEFAULT_MOVING_AVERAGE_WINDOW = 3
DEFAULT_PREDICTION_ACCURACY = 0.7
TOPIC_IMPROVEMENT_LOOKBACK = 3

# Weak area thresholds (accuracy on 0-100, mistake rate on 0-1)
WEAK_ACCURACY_THRESHOLD = 70.0
WEAK_MISTAKE_RATE_THRESHOLD = 0.3
HIGH_PRIORITY_ACCURACY = 50.0

# Topic status thresholds
MASTERED_THRESHOLD = 80.0
IMPROVING_THRESHOLD = 60.0

RANK_WEIGHTS = {
    "accuracy": 0.4,
    "speed": 0.2,
    "consistency": 0.2,
    "improvement": 0.2,
}

# Ordered from tightest to loosest cutoff
COLLEGE_TIERS = [
    {"max_rank": 1000, "name": "Tier 1 Medical Colleges"},
    {"max_rank": 5000, "name": "Tier 2 Medical Colleges"},
    {"max_rank": 10000, "name": "Tier 3 Medical Colleges"},
]
COLLEGE_CUTOFF_SPAN = 1000
COLLEGE_BUFFER_RATIO = 0.1

NEXT_STEPS = [
    "Practice weak topics more frequently",
    "Focus on accuracy over speed initially",
    "Review mistakes after each quiz attempt",
]


@dataclass(frozen=True)
class EngineConfig:
    """Calibration parameters threaded through every computation"""

    max_rank: int = DEFAULT_MAX_RANK
    confidence_z: float = DEFAULT_CONFIDENCE_Z
    speed_scale: float = DEFAULT_SPEED_SCALE
    moving_average_window: int = DEFAULT_MOVING_AVERAGE_WINDOW
    weak_accuracy_threshold: float = WEAK_ACCURACY_THRESHOLD
    weak_mistake_rate_threshold: float = WEAK_MISTAKE_RATE_THRESHOLD
    default_prediction_accuracy: float = DEFAULT_PREDICTION_ACCURACY
    college_tiers: Tuple[Tuple[int, str], ...] = tuple(
        (tier["max_rank"], tier["name"]) for tier in COLLEGE_TIERS
    )


# -------------------------
# ERRORS
# -------------------------

class QuizDataError(ValueError):
    """Input record rejected before any metric is computed"""

    def __init__(self, field_name: str, message: str):
        super().__init__(message)
        self.field = field_name
        self.message = message

    def with_context(self, prefix: str) -> "QuizDataError":
        return type(self)(self.field, f"{prefix}: {self.message}")

    def to_dict(self) -> Dict:
        return {
            "error": type(self).__name__,
            "field": self.field,
            "message": self.message,
        }


class MissingFieldError(QuizDataError):
    """A required attribute is absent from an input record"""


class InvalidRangeError(QuizDataError):
    """A value violates a data invariant (e.g. correct > total)"""


# -------------------------
# DATA MODEL
# -------------------------

@dataclass(frozen=True)
class Question:
    id: str
    topic: str
    correct_option: str


@dataclass(frozen=True)
class Quiz:
    questions: Tuple[Question, ...] = ()
    topic: Optional[str] = None


@dataclass(frozen=True)
class Submission:
    accuracy: float
    speed: float
    score: float
    correct_answers: int
    total_questions: int
    mistakes_corrected: int = 0
    initial_mistake_count: int = 0
    answers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class HistoricalAttempt:
    score: float
    accuracy: float
    speed: float
    submitted_at: datetime
    correct_answers: int
    incorrect_answers: int
    total_questions: int
    rank: Optional[int] = None
    topic: Optional[str] = None
    questions: Tuple[Question, ...] = ()
    answers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


# -------------------------
# INGESTION & VALIDATION
# -------------------------

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _lookup(record: Mapping, name: str, default: Any = None) -> Any:
    """Read a key in snake_case or camelCase form"""
    for key in (name, _camel(name)):
        if key in record and record[key] is not None:
            return record[key]
    return default


def _ensure_mapping(record: Any, name: str) -> None:
    if not isinstance(record, Mapping):
        raise InvalidRangeError(name, f"{name} must be a JSON object")


def _require(record: Mapping, name: str) -> Any:
    value = _lookup(record, name)
    if value is None:
        raise MissingFieldError(name, f"Missing required field: {name}")
    return value


def _to_float(value: Any, name: str) -> float:
    """Coerce numbers and numeric strings like '90 %' to float"""
    if isinstance(value, bool):
        raise InvalidRangeError(name, f"{name} must be numeric, got {value!r}")
    if isinstance(value, str):
        value = value.replace("%", "").strip()
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidRangeError(name, f"{name} must be numeric, got {value!r}") from None
    if not np.isfinite(number):
        raise InvalidRangeError(name, f"{name} must be a finite number")
    return number


def _to_count(value: Any, name: str) -> int:
    number = _to_float(value, name)
    if number < 0:
        raise InvalidRangeError(name, f"{name} cannot be negative")
    if number != int(number):
        raise InvalidRangeError(name, f"{name} must be a whole number")
    return int(number)


def _parse_timestamp(value: Any, name: str = "submitted_at") -> datetime:
    """Parse to a naive UTC datetime so mixed offsets stay comparable"""
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        raise InvalidRangeError(name, f"{name} is not a valid timestamp: {value!r}") from None
    if ts is pd.NaT:
        raise InvalidRangeError(name, f"{name} is not a valid timestamp: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def _check_counts(correct: int, total: int) -> None:
    if total <= 0:
        raise InvalidRangeError("total_questions", "Total questions must be a positive number")
    if correct > total:
        raise InvalidRangeError("correct_answers", "Correct answers cannot exceed total questions")


def _check_speed(speed: float) -> None:
    if speed <= 0:
        raise InvalidRangeError("speed", "Speed must be a positive number")


def _check_accuracy(accuracy: float) -> None:
    if not 0 <= accuracy <= 100:
        raise InvalidRangeError("accuracy", "Accuracy must be between 0 and 100")


def _correct_option(record: Mapping) -> Any:
    option = _lookup(record, "correct_option")
    if option is not None:
        return option
    # Raw quiz dumps flag the right option inside the options list
    options = record.get("options") or []
    if not isinstance(options, (list, tuple)):
        raise InvalidRangeError("options", "options must be an array")
    for candidate in options:
        if isinstance(candidate, Mapping) and candidate.get("is_correct"):
            return candidate.get("id")
    return None


def load_question(record: Mapping, default_topic: Optional[str] = None) -> Question:
    _ensure_mapping(record, "question")
    question_id = _require(record, "id")
    topic = _lookup(record, "topic", default_topic)
    if topic is None:
        raise MissingFieldError("topic", f"Missing required field: topic (question {question_id})")
    option = _correct_option(record)
    if option is None:
        raise MissingFieldError(
            "correct_option", f"Missing required field: correct_option (question {question_id})"
        )
    return Question(id=str(question_id), topic=str(topic), correct_option=str(option))


def _load_questions(record: Mapping, default_topic: Optional[str] = None) -> Tuple[Question, ...]:
    raw = record.get("questions") or []
    if not isinstance(raw, (list, tuple)):
        raise InvalidRangeError("questions", "questions must be an array")
    questions = []
    for index, item in enumerate(raw):
        try:
            questions.append(load_question(item, default_topic))
        except QuizDataError as exc:
            raise exc.with_context(f"Invalid question at index {index}") from None
    return tuple(questions)


def _load_answers(record: Mapping) -> Mapping[str, str]:
    raw = _lookup(record, "answers") or _lookup(record, "response_map") or {}
    if not isinstance(raw, Mapping):
        raise InvalidRangeError("answers", "answers must map question ids to chosen options")
    return MappingProxyType({str(key): str(value) for key, value in raw.items()})


def load_quiz(record: Mapping) -> Quiz:
    """Quiz definition, either bare or wrapped as {'quiz': {...}}"""
    _ensure_mapping(record, "quiz")
    body = record.get("quiz", record) if isinstance(record.get("quiz"), Mapping) else record
    topic = body.get("topic")
    return Quiz(questions=_load_questions(body, topic), topic=topic)


def _accuracy_and_score(record: Mapping, correct: int, total: int) -> Tuple[float, float]:
    raw_accuracy = _lookup(record, "accuracy")
    accuracy = (
        _to_float(raw_accuracy, "accuracy") if raw_accuracy is not None else correct * 100.0 / total
    )
    _check_accuracy(accuracy)

    raw_score = _lookup(record, "score")
    if raw_score is None:
        raw_score = _lookup(record, "final_score")
    score = _to_float(raw_score, "score") if raw_score is not None else accuracy
    return accuracy, score


def load_submission(record: Mapping) -> Submission:
    """
    Validate and freeze the current attempt.

    Raises:
        MissingFieldError: correct_answers, total_questions or speed absent
        InvalidRangeError: counts, speed or accuracy out of range
    """
    _ensure_mapping(record, "submission")
    correct = _to_count(_require(record, "correct_answers"), "correct_answers")
    total = _to_count(_require(record, "total_questions"), "total_questions")
    _check_counts(correct, total)

    speed = _to_float(_require(record, "speed"), "speed")
    _check_speed(speed)

    accuracy, score = _accuracy_and_score(record, correct, total)

    corrected = _to_count(_lookup(record, "mistakes_corrected", 0), "mistakes_corrected")
    initial = _to_count(_lookup(record, "initial_mistake_count", 0), "initial_mistake_count")
    if corrected > initial:
        raise InvalidRangeError(
            "mistakes_corrected", "Mistakes corrected cannot exceed the initial mistake count"
        )

    return Submission(
        accuracy=accuracy,
        speed=speed,
        score=score,
        correct_answers=correct,
        total_questions=total,
        mistakes_corrected=corrected,
        initial_mistake_count=initial,
        answers=_load_answers(record),
    )


def load_attempt(record: Mapping) -> HistoricalAttempt:
    _ensure_mapping(record, "attempt")
    submitted_at = _parse_timestamp(_require(record, "submitted_at"))

    correct = _to_count(_require(record, "correct_answers"), "correct_answers")
    total = _to_count(_require(record, "total_questions"), "total_questions")
    _check_counts(correct, total)

    speed = _to_float(_require(record, "speed"), "speed")
    _check_speed(speed)

    accuracy, score = _accuracy_and_score(record, correct, total)

    raw_incorrect = _lookup(record, "incorrect_answers")
    incorrect = (
        _to_count(raw_incorrect, "incorrect_answers") if raw_incorrect is not None else total - correct
    )
    if incorrect > total:
        raise InvalidRangeError("incorrect_answers", "Incorrect answers cannot exceed total questions")

    rank = None
    raw_rank = _lookup(record, "rank")
    if raw_rank is not None:
        rank = _to_count(raw_rank, "rank")
        if rank < 1:
            raise InvalidRangeError("rank", "Rank must be at least 1")

    quiz = record.get("quiz") if isinstance(record.get("quiz"), Mapping) else {}
    topic = _lookup(record, "topic")
    if topic is None:
        topic = quiz.get("topic")
    questions = _load_questions(record if record.get("questions") else quiz, topic)

    return HistoricalAttempt(
        score=score,
        accuracy=accuracy,
        speed=speed,
        submitted_at=submitted_at,
        correct_answers=correct,
        incorrect_answers=incorrect,
        total_questions=total,
        rank=rank,
        topic=str(topic) if topic is not None else None,
        questions=questions,
        answers=_load_answers(record),
    )


def load_history(records: Sequence[Mapping]) -> Tuple[HistoricalAttempt, ...]:
    """Validate every attempt and order the series oldest -> newest"""
    if not isinstance(records, (list, tuple)):
        raise InvalidRangeError("history", "Historical data must be an array")

    attempts = []
    for index, record in enumerate(records):
        try:
            attempts.append(load_attempt(record))
        except QuizDataError as exc:
            raise exc.with_context(f"Invalid submission at index {index}") from None
    return tuple(sorted(attempts, key=lambda attempt: attempt.submitted_at))


# -------------------------
# STATISTICS HELPERS
# -------------------------

def round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def calculate_mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) else 0.0


def calculate_std(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1), 0 below two points"""
    if len(values) < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def calculate_percentile(value: float, dataset: Sequence[float]) -> float:
    """Share of the dataset strictly below value, on 0-100"""
    if not len(dataset):
        return 0.0
    ordered = np.sort(np.asarray(dataset, dtype=float))
    return float(np.searchsorted(ordered, value, side="left") / len(ordered) * 100)


def normalize_scores(scores: Sequence[float]) -> List[float]:
    """Min-max scale to 0-100; a flat series maps to all zeros"""
    if not len(scores):
        return []
    values = np.asarray(scores, dtype=float)
    spread = values.max() - values.min()
    if spread == 0:
        return [0.0] * len(values)
    return ((values - values.min()) / spread * 100).tolist()


def calculate_moving_average(values: Sequence[float], window: int = DEFAULT_MOVING_AVERAGE_WINDOW) -> List[float]:
    """Trailing mean, clipped to the available prefix (no look-ahead)"""
    if not len(values):
        return []
    series = pd.Series(values, dtype=float)
    return series.rolling(window=max(1, window), min_periods=1).mean().tolist()


def calculate_consistency(scores: Sequence[float]) -> float:
    """1 - std/mean over a score series"""
    if len(scores) < 2:
        return 1.0
    std = calculate_std(scores)
    if std == 0:
        return 1.0
    mean = calculate_mean(scores)
    if mean == 0:
        logger.debug("Consistency guard: zero mean with non-zero spread")
        return 0.0
    return 1.0 - std / mean


def calculate_improvement_rate(scores: Sequence[float]) -> float:
    """(latest - first) / first"""
    if len(scores) < 2:
        return 0.0
    first, latest = scores[0], scores[-1]
    if first == 0:
        logger.debug("Improvement guard: first score is zero")
        return 0.0
    return (latest - first) / first


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson r, 1 when undefined (too few points or a flat series)"""
    if len(xs) < 2 or len(xs) != len(ys):
        return 1.0
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    dx, dy = x - x.mean(), y - y.mean()
    denominator = np.sqrt(np.sum(dx ** 2) * np.sum(dy ** 2))
    if denominator == 0:
        return 1.0
    return float(np.sum(dx * dy) / denominator)


# -------------------------
# TOPIC AGGREGATOR
# -------------------------

def aggregate_topics(attempts: Sequence[HistoricalAttempt]) -> Dict[str, Dict]:
    """
    Single pass over the attempts, summing per topic, then averaging.

    Mistake rate is the mean of per-attempt incorrect/total ratios rather
    than a pooled ratio, so attempts of different length weigh the same.
    Attempts without a topic label are skipped.
    """
    stats: Dict[str, Dict] = {}
    for attempt in attempts:
        if attempt.topic is None:
            continue
        topic_stats = stats.setdefault(attempt.topic, {
            "attempts": 0,
            "total_accuracy_sum": 0.0,
            "average_speed_sum": 0.0,
            "mistake_rate_sum": 0.0,
        })
        topic_stats["attempts"] += 1
        topic_stats["total_accuracy_sum"] += attempt.accuracy
        topic_stats["average_speed_sum"] += attempt.speed
        if attempt.total_questions > 0:
            topic_stats["mistake_rate_sum"] += attempt.incorrect_answers / attempt.total_questions

    result = {}
    for topic, topic_stats in stats.items():
        count = topic_stats["attempts"]
        if count == 0:
            continue
        result[topic] = {
            "attempts": count,
            "averageAccuracy": topic_stats["total_accuracy_sum"] / count,
            "averageSpeed": topic_stats["average_speed_sum"] / count,
            "averageMistakeRate": topic_stats["mistake_rate_sum"] / count,
        }
    return result


# -------------------------
# PERFORMANCE ANALYZER
# -------------------------

def classify_topic_status(accuracy: float) -> str:
    if accuracy >= MASTERED_THRESHOLD:
        return "Mastered"
    if accuracy >= IMPROVING_THRESHOLD:
        return "Improving"
    return "Needs Focus"


def current_performance(submission: Submission) -> Dict:
    if submission.initial_mistake_count == 0:
        logger.debug("Mistake improvement guard: no initial mistakes recorded")
        mistakes_improvement = 0.0
    else:
        mistakes_improvement = submission.mistakes_corrected / submission.initial_mistake_count

    return {
        "accuracy": submission.accuracy,
        "speed": submission.speed,
        "score": submission.score,
        "mistakesImprovement": mistakes_improvement,
    }


def _is_correct(question: Question, answers: Mapping[str, str]) -> bool:
    return answers.get(question.id) == question.correct_option


def _attempt_topic_accuracy(attempt: HistoricalAttempt, topic: str) -> Optional[float]:
    """Accuracy of one attempt on one topic, None if the attempt skips it"""
    topic_questions = [q for q in attempt.questions if q.topic == topic]
    if topic_questions and attempt.answers:
        correct = sum(1 for q in topic_questions if _is_correct(q, attempt.answers))
        return correct * 100.0 / len(topic_questions)
    if attempt.topic == topic:
        return attempt.accuracy
    return None


def topic_improvement(
    history: Sequence[HistoricalAttempt],
    topic: str,
    lookback: int = TOPIC_IMPROVEMENT_LOOKBACK,
) -> float:
    """Latest minus earliest topic accuracy over the last few attempts touching it"""
    scores = [
        accuracy
        for accuracy in (_attempt_topic_accuracy(attempt, topic) for attempt in history)
        if accuracy is not None
    ][-lookback:]
    if len(scores) < 2:
        return 0.0
    return scores[-1] - scores[0]


def topic_performance(history: Sequence[HistoricalAttempt]) -> Dict[str, Dict]:
    result = {}
    for topic, stats in aggregate_topics(history).items():
        result[topic] = {
            "attempts": stats["attempts"],
            "averageAccuracy": stats["averageAccuracy"],
            "averageSpeed": stats["averageSpeed"],
            "mistakeRate": stats["averageMistakeRate"],
            "status": classify_topic_status(stats["averageAccuracy"]),
            "improvement": topic_improvement(history, topic),
        }
    return result


def weak_areas(
    topics: Mapping[str, Mapping],
    accuracy_threshold: float = WEAK_ACCURACY_THRESHOLD,
    mistake_rate_threshold: float = WEAK_MISTAKE_RATE_THRESHOLD,
) -> List[Dict]:
    """Topics below the accuracy bar or above the mistake bar, worst first"""
    flagged = [
        {
            "topic": topic,
            "averageAccuracy": stats["averageAccuracy"],
            "mistakeRate": stats["mistakeRate"],
            "priority": "High" if stats["averageAccuracy"] < HIGH_PRIORITY_ACCURACY else "Medium",
        }
        for topic, stats in topics.items()
        if stats["averageAccuracy"] < accuracy_threshold or stats["mistakeRate"] > mistake_rate_threshold
    ]
    return sorted(flagged, key=lambda area: area["averageAccuracy"])


def performance_trends(
    history: Sequence[HistoricalAttempt],
    window: int = DEFAULT_MOVING_AVERAGE_WINDOW,
) -> Dict:
    """Accuracy and speed over time, plus a trailing mean of accuracy and
    each score min-max scaled against the rest of the series"""
    ordered = sorted(history, key=lambda attempt: attempt.submitted_at)
    accuracies = [attempt.accuracy for attempt in ordered]
    moving = calculate_moving_average(accuracies, window)
    relative_scores = normalize_scores([attempt.score for attempt in ordered])

    accuracy_points = []
    speed_points = []
    topic_wise: Dict[str, List[Dict]] = {}
    for attempt, average, relative in zip(ordered, moving, relative_scores):
        date = attempt.submitted_at.isoformat()
        accuracy_points.append({
            "date": date,
            "value": attempt.accuracy,
            "movingAverage": average,
            "relativeScore": relative,
        })
        speed_points.append({"date": date, "value": attempt.speed})
        if attempt.topic is not None:
            topic_wise.setdefault(attempt.topic, []).append({
                "date": date,
                "accuracy": attempt.accuracy,
                "speed": attempt.speed,
            })

    return {
        "accuracy": accuracy_points,
        "speed": speed_points,
        "topicWise": topic_wise,
    }


def consistency_score(history: Sequence[HistoricalAttempt]) -> float:
    return calculate_consistency([attempt.score for attempt in history])


def improvement_rate(history: Sequence[HistoricalAttempt]) -> float:
    return calculate_improvement_rate([attempt.score for attempt in history])


def overall_performance(history: Sequence[HistoricalAttempt]) -> Dict:
    return {
        "averageScore": calculate_mean([attempt.score for attempt in history]),
        "averageAccuracy": calculate_mean([attempt.accuracy for attempt in history]),
        "improvementRate": improvement_rate(history),
        "consistencyScore": consistency_score(history),
    }


def quiz_topic_breakdown(quiz: Quiz, submission: Submission) -> Dict:
    """Per-topic result of the current submission against the quiz key"""
    counts: Dict[str, Dict[str, int]] = {}
    for question in quiz.questions:
        topic_counts = counts.setdefault(question.topic, {"total": 0, "correct": 0})
        topic_counts["total"] += 1
        if _is_correct(question, submission.answers):
            topic_counts["correct"] += 1

    topics = {}
    for topic, topic_counts in counts.items():
        accuracy = topic_counts["correct"] * 100.0 / topic_counts["total"]
        topics[topic] = {
            "accuracy": accuracy,
            "totalQuestions": topic_counts["total"],
            "correctAnswers": topic_counts["correct"],
            "status": classify_topic_status(accuracy),
        }

    return {
        "topics": topics,
        "strongTopics": [t for t, stats in topics.items() if stats["accuracy"] > MASTERED_THRESHOLD],
        "weakTopics": [t for t, stats in topics.items() if stats["accuracy"] < IMPROVING_THRESHOLD],
    }


def analyze(
    submission: Submission,
    history: Sequence[HistoricalAttempt],
    quiz: Optional[Quiz] = None,
    config: EngineConfig = EngineConfig(),
) -> Dict:
    topics = topic_performance(history)
    analysis = {
        "currentPerformance": current_performance(submission),
        "topicPerformance": topics,
        "weakAreas": weak_areas(
            topics, config.weak_accuracy_threshold, config.weak_mistake_rate_threshold
        ),
        "trends": performance_trends(history, config.moving_average_window),
        "overallPerformance": overall_performance(history),
    }
    if quiz is not None:
        analysis["currentQuiz"] = quiz_topic_breakdown(quiz, submission)
    return analysis


# -------------------------
# RANK PREDICTOR
# -------------------------

def normalize_score(
    accuracy: float,
    speed: float,
    consistency: float,
    improvement: float,
    speed_scale: float = DEFAULT_SPEED_SCALE,
) -> float:
    """
    Weighted composite of the four performance signals.

    Accuracy (0-100) and speed (0-speed_scale) are brought into [0, 1]
    before weighting; consistency and improvement are already fractional.
    """
    accuracy_component = float(np.clip(accuracy / 100.0, 0.0, 1.0))
    speed_component = float(np.clip(speed / speed_scale, 0.0, 1.0)) if speed_scale > 0 else 0.0
    return (
        accuracy_component * RANK_WEIGHTS["accuracy"]
        + speed_component * RANK_WEIGHTS["speed"]
        + consistency * RANK_WEIGHTS["consistency"]
        + improvement * RANK_WEIGHTS["improvement"]
    )


def historical_correlation(history: Sequence[HistoricalAttempt]) -> float:
    """Raw Pearson r between score and rank over attempts with a known rank"""
    ranked = [attempt for attempt in history if attempt.rank is not None]
    return pearson_correlation(
        [attempt.score for attempt in ranked],
        [attempt.rank for attempt in ranked],
    )


def correlation_factor(correlation: float) -> float:
    """Non-positive correlation carries no usable adjustment"""
    if correlation <= 0 or not np.isfinite(correlation):
        return 1.0
    return correlation


def base_rank(normalized_score: float, max_rank: int = DEFAULT_MAX_RANK) -> int:
    clipped = float(np.clip(normalized_score, 0.0, 1.0))
    return round_half_up(max_rank * (1 - clipped))


def rank_for_score(normalized_score: float, factor: float, max_rank: int = DEFAULT_MAX_RANK) -> int:
    return max(1, round_half_up(base_rank(normalized_score, max_rank) * factor))


def in_sample_predictions(
    history: Sequence[HistoricalAttempt],
    config: EngineConfig = EngineConfig(),
) -> List[Tuple[int, int]]:
    """(actual, predicted) rank pairs, each attempt scored by the model fit on all of them"""
    consistency = consistency_score(history)
    improvement = improvement_rate(history)
    factor = correlation_factor(historical_correlation(history))

    pairs = []
    for attempt in history:
        if attempt.rank is None:
            continue
        score = normalize_score(
            attempt.accuracy, attempt.speed, consistency, improvement, config.speed_scale
        )
        pairs.append((attempt.rank, rank_for_score(score, factor, config.max_rank)))
    return pairs


def standard_error(history: Sequence[HistoricalAttempt], config: EngineConfig = EngineConfig()) -> float:
    """Sample standard deviation of the absolute in-sample rank errors"""
    pairs = in_sample_predictions(history, config)
    if len(pairs) < 2:
        return 0.0
    return calculate_std([abs(actual - predicted) for actual, predicted in pairs])


def confidence_interval(
    predicted_rank: int,
    error: float,
    z: float = DEFAULT_CONFIDENCE_Z,
) -> Dict[str, int]:
    margin = z * error
    return {
        "lower": max(1, round_half_up(predicted_rank - margin)),
        "upper": round_half_up(predicted_rank + margin),
    }


def college_probability(predicted_rank: int, cutoff: int) -> Optional[float]:
    """0.9 comfortably inside the cutoff, 0.7 in the last 10%, None beyond it"""
    buffer = cutoff * COLLEGE_BUFFER_RATIO
    if predicted_rank <= cutoff - buffer:
        return 0.9
    if predicted_rank <= cutoff:
        return 0.7
    return None


def college_tiers(
    predicted_rank: int,
    tiers: Sequence[Tuple[int, str]] = EngineConfig.college_tiers,
) -> List[Dict]:
    possibilities = []
    for cutoff, name in sorted(tiers, key=lambda tier: tier[0]):
        probability = college_probability(predicted_rank, cutoff)
        if probability is None:
            continue
        possibilities.append({
            "tierName": name,
            "probability": probability,
            "cutoffRange": {"min": max(1, cutoff - COLLEGE_CUTOFF_SPAN), "max": cutoff},
        })
    return possibilities


def prediction_accuracy(history: Sequence[HistoricalAttempt], config: EngineConfig = EngineConfig()) -> float:
    """In-sample 1 - mean relative rank error (not cross-validated)"""
    pairs = in_sample_predictions(history, config)
    if len(pairs) < 2:
        return config.default_prediction_accuracy
    return 1.0 - calculate_mean([abs(actual - predicted) / actual for actual, predicted in pairs])


def predict_rank(
    submission: Submission,
    history: Sequence[HistoricalAttempt],
    config: EngineConfig = EngineConfig(),
) -> Dict:
    """
    Predict the competitive rank for the current submission

    Returns:
        Dict with predictedRank, confidenceInterval, potentialColleges
        and the intermediate metrics behind them
    """
    consistency = consistency_score(history)
    improvement = improvement_rate(history)
    correlation = historical_correlation(history)

    weighted_score = normalize_score(
        submission.accuracy, submission.speed, consistency, improvement, config.speed_scale
    )
    predicted = rank_for_score(weighted_score, correlation_factor(correlation), config.max_rank)
    error = standard_error(history, config)
    past_scores = [attempt.score for attempt in history]

    return {
        "predictedRank": predicted,
        "confidenceInterval": confidence_interval(predicted, error, config.confidence_z),
        "potentialColleges": college_tiers(predicted, config.college_tiers),
        "metrics": {
            "weightedScore": weighted_score,
            "consistency": consistency,
            "averageScore": calculate_mean(past_scores),
            "scorePercentile": calculate_percentile(submission.score, past_scores),
            "improvementRate": improvement,
            "correlation": correlation,
            "standardError": error,
            "predictionAccuracy": prediction_accuracy(history, config),
        },
    }


# -------------------------
# RECOMMENDATIONS
# -------------------------

def related_concepts(topic: str) -> List[str]:
    return [f"Core concepts in {topic}", f"Fundamental principles of {topic}"]


def build_recommendations(analysis: Mapping) -> Dict:
    areas = analysis["weakAreas"]
    weak_quiz_topics = analysis.get("currentQuiz", {}).get("weakTopics", [])
    return {
        "weakAreas": areas,
        "improvementAreas": [
            {
                "topic": area["topic"],
                "recommendation": (
                    f"Focus on improving {area['topic']} with current accuracy of "
                    f"{area['averageAccuracy']:.1f}%"
                ),
                "priority": area["priority"],
            }
            for area in areas
        ],
        "conceptualGaps": [
            {"topic": topic, "conceptualAreas": related_concepts(topic)} for topic in weak_quiz_topics
        ],
        "nextSteps": list(NEXT_STEPS),
    }


# -------------------------
# MAIN API
# -------------------------

def analyze_performance(
    submission_record: Mapping,
    history_records: Sequence[Mapping],
    quiz_record: Optional[Mapping] = None,
    config: EngineConfig = EngineConfig(),
) -> Dict:
    """
    Analysis result for raw records.

    All records are validated before anything is computed; a QuizDataError
    aborts the whole request.
    """
    submission = load_submission(submission_record)
    history = load_history(history_records)
    quiz = load_quiz(quiz_record) if quiz_record is not None else None
    return analyze(submission, history, quiz, config)


def predict_rank_from_records(
    submission_record: Mapping,
    history_records: Sequence[Mapping],
    config: EngineConfig = EngineConfig(),
) -> Dict:
    submission = load_submission(submission_record)
    history = load_history(history_records)
    return predict_rank(submission, history, config)


def generate_insights(
    submission_record: Mapping,
    history_records: Sequence[Mapping],
    quiz_record: Optional[Mapping] = None,
    config: EngineConfig = EngineConfig(),
) -> Dict:
    """
    Combined view: analysis, rank prediction and recommendations

    Args:
        submission_record: current attempt
            {
                "correct_answers": 80,
                "total_questions": 100,
                "speed": 90,
                "mistakes_corrected": 3,
                "initial_mistake_count": 4,
                "answers": {"q1": "A"}
            }
        history_records: past attempts, any order
            [
                {
                    "submitted_at": "2025-01-10T10:00:00+05:30",
                    "score": 70,
                    "rank": 2500,
                    "correct_answers": 7,
                    "total_questions": 10,
                    "speed": 85,
                    "quiz": {"topic": "Human Physiology"}
                }
            ]
        quiz_record: quiz definition with questions (optional)
        config: calibration parameters

    Returns:
        Dict with performance, rankPrediction and recommendations
    """
    submission = load_submission(submission_record)
    history = load_history(history_records)
    quiz = load_quiz(quiz_record) if quiz_record is not None else None

    analysis = analyze(submission, history, quiz, config)
    return {
        "performance": analysis,
        "rankPrediction": predict_rank(submission, history, config),
        "recommendations": build_recommendations(analysis),
    }


# -------------------------
# EXAMPLE USAGE
# -------------------------

if __name__ == "__main__":

    print("=" * 80)
    print("NEET QUIZ INSIGHTS ENGINE - EXAMPLE")
    print("=" * 80)

    example_submission = {
        "correct_answers": 8,
        "total_questions": 10,
        "speed": 90,
        "mistakes_corrected": 3,
        "initial_mistake_count": 4,
        "answers": {"q1": "A", "q2": "C", "q3": "B"},
    }

    example_history = [
        {"submitted_at": "2025-01-05T10:00:00", "score": 50, "rank": 4000, "correct_answers": 5,
         "total_questions": 10, "speed": 70, "quiz": {"topic": "Human Physiology"}},
        {"submitted_at": "2025-01-12T10:00:00", "score": 70, "rank": 2500, "correct_answers": 7,
         "total_questions": 10, "speed": 80, "quiz": {"topic": "Genetics"}},
        {"submitted_at": "2025-01-19T10:00:00", "score": 90, "rank": 1000, "correct_answers": 9,
         "total_questions": 10, "speed": 95, "quiz": {"topic": "Human Physiology"}},
    ]

    example_quiz = {
        "quiz": {
            "topic": "Biology",
            "questions": [
                {"id": "q1", "topic": "Genetics", "correct_option": "A"},
                {"id": "q2", "topic": "Genetics", "correct_option": "B"},
                {"id": "q3", "topic": "Ecology", "correct_option": "B"},
            ],
        }
    }

    result = generate_insights(example_submission, example_history, example_quiz)
    print(json.dumps(result, indent=2))
