import json

import pytest

from engine.errors import OrchestratorError
from engine.evaluation import parse_evaluation, clamp_score


def payload(**overrides):
    data = {
        "overallScore": 6,
        "summary": " Solid framing, weak on risk. ",
        "improvementVectors": ["Name the rollback plan", " "],
        "scores": [
            {"competency": "Problem Framing", "score": 8, "feedback": "Clear."},
            {"competency": "Risk Assessment", "score": 4.5, "feedback": "Thin."},
        ],
    }
    data.update(overrides)
    return data


def test_parses_valid_evaluation():
    result = parse_evaluation(json.dumps(payload()))

    assert result.overall_score == 6
    assert result.summary == "Solid framing, weak on risk."
    assert result.improvement_vectors == ["Name the rollback plan"]
    assert [s.competency for s in result.scores] == ["Problem Framing", "Risk Assessment"]
    assert result.scores[1].score == 4.5


def test_extracts_json_wrapped_in_prose():
    raw = "Here is the evaluation:\n```json\n" + json.dumps(payload()) + "\n```"
    assert parse_evaluation(raw).overall_score == 6


def test_out_of_range_scores_are_clamped():
    data = payload(overallScore=0, scores=[{"competency": "Technical Fluency", "score": 14, "feedback": "x"}])
    result = parse_evaluation(json.dumps(data))
    assert result.overall_score == 1
    assert result.scores[0].score == 10


def test_serializes_with_wire_names():
    result = parse_evaluation(json.dumps(payload()))
    dumped = result.model_dump(by_alias=True)
    assert set(dumped) == {"overallScore", "scores", "summary", "improvementVectors"}


@pytest.mark.parametrize("missing", ["overallScore", "summary", "improvementVectors", "scores"])
def test_missing_required_key_is_rejected(missing):
    data = payload()
    del data[missing]
    with pytest.raises(OrchestratorError):
        parse_evaluation(json.dumps(data))


@pytest.mark.parametrize("raw", [
    "",
    "no json here",
    "{not valid json}",
    "[1, 2, 3]",
    json.dumps(payload(overallScore="excellent")),
    json.dumps(payload(scores=[{"competency": "Framing", "score": 5}])),
    json.dumps(payload(scores="all good")),
])
def test_malformed_output_is_rejected(raw):
    with pytest.raises(OrchestratorError):
        parse_evaluation(raw)


def test_clamp_score_rejects_booleans():
    with pytest.raises(ValueError):
        clamp_score(True)
    assert clamp_score("7") == 7
