"""Tests for rank prediction and its uncertainty band."""
import pytest

from quiz_insights_api import (
    EngineConfig,
    base_rank,
    calculate_std,
    college_tiers,
    confidence_interval,
    correlation_factor,
    historical_correlation,
    in_sample_predictions,
    load_history,
    load_submission,
    normalize_score,
    predict_rank,
    predict_rank_from_records,
    prediction_accuracy,
    rank_for_score,
    standard_error,
)


class TestNormalizeScore:
    def test_weights(self):
        # 0.4*0.8 + 0.2*1.0 + 0.2*0.5 + 0.2*0.25
        assert normalize_score(80, 100, 0.5, 0.25) == pytest.approx(0.67)

    def test_speed_is_scaled_and_clipped(self):
        assert normalize_score(0, 50, 0, 0, speed_scale=200) == pytest.approx(0.05)
        assert normalize_score(0, 500, 0, 0) == pytest.approx(0.2)


class TestHistoricalCorrelation:
    def test_inverse_relationship_has_unit_magnitude(self, ranked_history):
        correlation = historical_correlation(load_history(ranked_history))
        assert correlation == pytest.approx(-1.0)
        assert abs(correlation) == pytest.approx(1.0)

    def test_single_point_is_neutral(self, ranked_history):
        assert historical_correlation(load_history(ranked_history[:1])) == 1

    def test_flat_ranks_are_neutral(self, ranked_history):
        for record in ranked_history:
            record["rank"] = 3000
        assert historical_correlation(load_history(ranked_history)) == 1

    def test_unranked_attempts_ignored(self, ranked_history, attempt_factory):
        ranked_history.append(attempt_factory(25, 2, score=20))
        assert historical_correlation(load_history(ranked_history)) == pytest.approx(-1.0)

    @pytest.mark.parametrize("raw,factor", [(-1.0, 1.0), (0.0, 1.0), (0.5, 0.5), (1.0, 1.0)])
    def test_factor(self, raw, factor):
        assert correlation_factor(raw) == factor


class TestRankFormula:
    def test_base_rank(self):
        assert base_rank(0.5, 50000) == 25000
        assert base_rank(0.5, 2000) == 1000

    def test_base_rank_clips_score(self):
        assert base_rank(1.4) == 0
        assert base_rank(-0.2) == 50000

    def test_rank_floor(self):
        assert rank_for_score(1.0, 1.0) == 1

    def test_factor_scales_rank(self):
        assert rank_for_score(0.5, 0.5, 50000) == 12500


class TestConfidenceInterval:
    def test_symmetric_band(self):
        assert confidence_interval(1000, 100, 1.96) == {"lower": 804, "upper": 1196}

    def test_lower_bound_floors_at_one(self):
        assert confidence_interval(50, 100)["lower"] == 1

    def test_zero_error_collapses(self):
        assert confidence_interval(321, 0.0) == {"lower": 321, "upper": 321}


class TestStandardError:
    def test_sample_std_of_absolute_errors(self, ranked_history):
        history = load_history(ranked_history)
        pairs = in_sample_predictions(history)
        assert len(pairs) == 3
        expected = calculate_std([abs(actual - predicted) for actual, predicted in pairs])
        assert standard_error(history) == pytest.approx(expected)
        assert standard_error(history) > 0

    def test_single_record(self, ranked_history):
        assert standard_error(load_history(ranked_history[:1])) == 0


class TestCollegeTiers:
    def test_all_tiers_inside_buffer(self):
        tiers = college_tiers(500)
        assert [tier["tierName"] for tier in tiers] == [
            "Tier 1 Medical Colleges",
            "Tier 2 Medical Colleges",
            "Tier 3 Medical Colleges",
        ]
        assert [tier["probability"] for tier in tiers] == [0.9, 0.9, 0.9]
        assert tiers[0]["cutoffRange"] == {"min": 1, "max": 1000}
        assert tiers[1]["cutoffRange"] == {"min": 4000, "max": 5000}

    def test_near_cutoff(self):
        tiers = college_tiers(950)
        assert [tier["probability"] for tier in tiers] == [0.7, 0.9, 0.9]

    def test_exactly_at_cutoff(self):
        tiers = college_tiers(5000)
        assert [(tier["tierName"], tier["probability"]) for tier in tiers] == [
            ("Tier 2 Medical Colleges", 0.7),
            ("Tier 3 Medical Colleges", 0.9),
        ]

    def test_beyond_every_cutoff(self):
        assert college_tiers(10001) == []

    def test_custom_tiers_sorted_tightest_first(self):
        tiers = college_tiers(100, [(5000, "Loose"), (200, "Tight")])
        assert [tier["tierName"] for tier in tiers] == ["Tight", "Loose"]


class TestPredictionAccuracy:
    def test_default_for_single_record(self, ranked_history):
        assert prediction_accuracy(load_history(ranked_history[:1])) == 0.7

    def test_configurable_default(self):
        assert prediction_accuracy((), EngineConfig(default_prediction_accuracy=0.5)) == 0.5

    def test_relative_error(self, ranked_history):
        history = load_history(ranked_history)
        pairs = in_sample_predictions(history)
        expected = 1 - sum(abs(a - p) / a for a, p in pairs) / len(pairs)
        assert prediction_accuracy(history) == pytest.approx(expected)


class TestPredictRank:
    def test_full_prediction(self, submission_record, ranked_history):
        result = predict_rank_from_records(submission_record, ranked_history)

        # 0.4*0.8 + 0.2*1.0 + 0.2*(1 - 20/70) + 0.2*0.8, correlation factor 1
        assert result["metrics"]["weightedScore"] == pytest.approx(0.822857, abs=1e-6)
        assert result["predictedRank"] == 8857
        assert result["metrics"]["correlation"] == pytest.approx(-1.0)
        assert result["metrics"]["averageScore"] == pytest.approx(70.0)
        # 80 beats 50 and 70 of the past scores
        assert result["metrics"]["scorePercentile"] == pytest.approx(200 / 3)
        assert [tier["tierName"] for tier in result["potentialColleges"]] == ["Tier 3 Medical Colleges"]

        interval = result["confidenceInterval"]
        assert 1 <= interval["lower"] <= result["predictedRank"] <= interval["upper"]

    def test_single_attempt_degenerates(self, submission_record, ranked_history):
        result = predict_rank_from_records(submission_record, ranked_history[:1])
        rank = result["predictedRank"]
        assert result["confidenceInterval"] == {"lower": rank, "upper": rank}
        assert result["metrics"]["improvementRate"] == 0
        assert result["metrics"]["predictionAccuracy"] == 0.7

    def test_empty_history_uses_neutral_defaults(self, submission_record):
        result = predict_rank(load_submission(submission_record), ())
        assert result["metrics"]["consistency"] == 1.0
        assert result["metrics"]["averageScore"] == 0.0
        assert result["metrics"]["standardError"] == 0.0
        assert result["metrics"]["scorePercentile"] == 0.0

    def test_max_rank_is_configurable(self, submission_record, ranked_history):
        small = predict_rank_from_records(submission_record, ranked_history, EngineConfig(max_rank=2000))
        assert small["predictedRank"] == 354

    @pytest.mark.parametrize("correct,speed", [(0, 1), (30, 40), (55, 120), (99, 100), (100, 100)])
    def test_interval_always_brackets_rank(self, attempt_factory, correct, speed):
        history = load_history([
            attempt_factory(1, 3, score=30, rank=45000, speed=20),
            attempt_factory(2, 9, score=95, rank=40, speed=95),
            attempt_factory(3, 6, score=60, rank=9000, speed=60),
            attempt_factory(4, 7, score=65, rank=7000, speed=70),
        ])
        submission = load_submission({"correct_answers": correct, "total_questions": 100, "speed": speed})
        result = predict_rank(submission, history)
        interval = result["confidenceInterval"]
        assert interval["lower"] >= 1
        assert interval["lower"] <= result["predictedRank"] <= interval["upper"]
