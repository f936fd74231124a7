# engine/evaluation.py

import json
import re
from typing import Any, Dict, List

from .errors import OrchestratorError
from .models import CompetencyScore, EvaluationResult

SCORE_MIN = 1
SCORE_MAX = 10

REQUIRED_KEYS = ["overallScore", "summary", "improvementVectors", "scores"]
REQUIRED_SCORE_KEYS = ["competency", "score", "feedback"]


def clamp_score(value: Any) -> float:
    """Coerces a model-provided score into the 1-10 range. Non-numeric values are rejected."""
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"expected a number, got {value!r}")
    if number != number: # NaN
        raise ValueError("score is NaN")
    return max(SCORE_MIN, min(SCORE_MAX, number))


def _extract_json_object(raw_response: str) -> Dict[str, Any]:
    if raw_response is None or not raw_response.strip():
        raise OrchestratorError("Empty evaluation response")
    try:
        return json.loads(raw_response)
    except json.JSONDecodeError:
        pass
    # Model wrapped the object in prose or a code fence
    json_match = re.search(r"\{.*\}", raw_response, re.DOTALL)
    if not json_match:
        raise OrchestratorError("No JSON object found in evaluation response")
    try:
        return json.loads(json_match.group(0))
    except json.JSONDecodeError as e:
        raise OrchestratorError(f"Extracted evaluation JSON is invalid: {e}") from e


def parse_evaluation(raw_response: str) -> EvaluationResult:
    """
    Parses and validates the evaluation JSON returned by the model.
    Scores outside 1-10 are clamped; missing keys or wrong types raise OrchestratorError.
    """
    data = _extract_json_object(raw_response)
    if not isinstance(data, dict):
        raise OrchestratorError("Evaluation response was not a JSON object")

    errors: List[str] = []
    for key in REQUIRED_KEYS:
        if key not in data:
            errors.append(f"Missing required key: '{key}'")
    if errors:
        raise OrchestratorError(f"Evaluation validation failed: {'; '.join(errors)}")

    try:
        overall = clamp_score(data["overallScore"])
    except ValueError as e:
        raise OrchestratorError(f"Invalid overallScore: {e}") from e

    summary = data["summary"]
    if not isinstance(summary, str):
        raise OrchestratorError("Invalid summary: expected a string")

    vectors = data["improvementVectors"]
    if isinstance(vectors, str):
        vectors = [vectors]
    if not isinstance(vectors, list):
        raise OrchestratorError("Invalid improvementVectors: expected a list")

    raw_scores = data["scores"]
    if not isinstance(raw_scores, list):
        raise OrchestratorError("Invalid scores: expected a list")

    scores = []
    for i, item in enumerate(raw_scores):
        if not isinstance(item, dict):
            raise OrchestratorError(f"Invalid scores[{i}]: expected an object")
        missing = [k for k in REQUIRED_SCORE_KEYS if k not in item]
        if missing:
            raise OrchestratorError(f"Invalid scores[{i}]: missing {', '.join(missing)}")
        try:
            score = clamp_score(item["score"])
        except ValueError as e:
            raise OrchestratorError(f"Invalid scores[{i}].score: {e}") from e
        scores.append(CompetencyScore(
            competency=str(item["competency"]).strip(),
            score=score,
            feedback=str(item["feedback"]).strip(),
        ))

    return EvaluationResult(
        overall_score=overall,
        scores=scores,
        summary=summary.strip(),
        improvement_vectors=[str(v).strip() for v in vectors if str(v).strip()],
    )
