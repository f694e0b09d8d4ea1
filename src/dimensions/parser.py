# src/dimensions/parser.py - v1
"""Parse and validate raw five-dimension analyses from the model.

Parsing and validation fail differently: text with no usable JSON (or
without `dimensions` / `overallConfidence`) is an INVALID_RESPONSE,
while a well-formed payload that breaks the scoring rules is
AI_ANALYSIS_FAILED. Neither produces a partial analysis.
"""

from __future__ import annotations

from datetime import datetime
from numbers import Real
from typing import Any

from shelfscan.core.errors import AnalysisValidationError
from shelfscan.core.parsing import ParsedErr, ParsedOk, ParseResult, extract_json_object
from shelfscan.dimensions.models import DIMENSION_NAMES, DimensionAnalysis, DimensionScore


def parse_dimension_response(raw: str) -> ParseResult[dict[str, Any]]:
    parsed = extract_json_object(raw)
    if isinstance(parsed, ParsedErr):
        return parsed
    payload = parsed.value
    if not isinstance(payload.get("dimensions"), dict):
        return ParsedErr("response has no 'dimensions' object")
    if payload.get("overallConfidence") is None:
        return ParsedErr("response has no 'overallConfidence'")
    return ParsedOk(payload)


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    return float(value)


def _validate_score(name: str, raw: Any) -> DimensionScore:
    if not isinstance(raw, dict):
        raise AnalysisValidationError(f"Missing dimension: {name}")

    score = _number(raw.get("score"))
    if score is None or not 0 <= score <= 100:
        raise AnalysisValidationError(f"Invalid score for {name}: {raw.get('score')!r} (must be 0-100)")

    explanation = raw.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        raise AnalysisValidationError(f"Missing or invalid explanation for {name}")

    factors = raw.get("keyFactors")
    if (
        not isinstance(factors, list)
        or not factors
        or not all(isinstance(f, str) and f.strip() for f in factors)
    ):
        raise AnalysisValidationError(f"Missing or invalid keyFactors for {name}")

    return DimensionScore(score=round(score), explanation=explanation.strip(), key_factors=factors)


def validate_dimension_payload(
    payload: dict[str, Any],
    product_id: str,
    analyzed_at: datetime,
) -> DimensionAnalysis:
    """Build a DimensionAnalysis from a parsed payload.

    Raises:
        AnalysisValidationError: Any rule is violated.
    """
    dimensions = payload.get("dimensions") or {}
    scores = {name: _validate_score(name, dimensions.get(name)) for name in DIMENSION_NAMES}

    confidence = _number(payload.get("overallConfidence"))
    if confidence is None or not 0 <= confidence <= 1:
        raise AnalysisValidationError(
            f"Invalid overallConfidence: {payload.get('overallConfidence')!r} (must be 0.0-1.0)"
        )

    return DimensionAnalysis(
        product_id=product_id,
        dimensions=scores,
        overall_confidence=confidence,
        analyzed_at=analyzed_at,
    )
