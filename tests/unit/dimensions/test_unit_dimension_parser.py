# tests/unit/dimensions/test_unit_dimension_parser.py - v1
"""Tests for dimensions/parser.py: parse vs validation failures."""

from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest

from shelfscan.core.errors import AnalysisValidationError
from shelfscan.core.parsing import ParsedErr, ParsedOk
from shelfscan.dimensions.parser import parse_dimension_response, validate_dimension_payload

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class TestParse:
    def test_fenced_payload(self, dimension_response, dimension_payload):
        assert parse_dimension_response(dimension_response) == ParsedOk(dimension_payload)

    def test_no_json(self):
        assert isinstance(parse_dimension_response("Sorry, I cannot help."), ParsedErr)

    def test_missing_dimensions(self):
        result = parse_dimension_response('{"overallConfidence": 0.5}')
        assert result == ParsedErr("response has no 'dimensions' object")

    def test_missing_confidence(self):
        result = parse_dimension_response('{"dimensions": {}}')
        assert result == ParsedErr("response has no 'overallConfidence'")


class TestValidate:
    def test_valid(self, dimension_payload):
        analysis = validate_dimension_payload(dimension_payload, "p1", NOW)
        assert analysis.product_id == "p1"
        assert analysis.dimensions["health"].score == 72
        assert analysis.dimensions["allergens"].key_factors == ["Gluten free", "label reviewed"]
        assert analysis.overall_confidence == 0.82
        assert analysis.cached is False

    def test_fractional_score_rounded(self, dimension_payload):
        payload = copy.deepcopy(dimension_payload)
        payload["dimensions"]["health"]["score"] = 71.6
        assert validate_dimension_payload(payload, "p1", NOW).dimensions["health"].score == 72

    @pytest.mark.parametrize("score", [-1, 101, "80", True, None])
    def test_bad_score(self, dimension_payload, score):
        payload = copy.deepcopy(dimension_payload)
        payload["dimensions"]["processing"]["score"] = score
        with pytest.raises(AnalysisValidationError, match="processing"):
            validate_dimension_payload(payload, "p1", NOW)

    def test_missing_dimension(self, dimension_payload):
        payload = copy.deepcopy(dimension_payload)
        del payload["dimensions"]["environmentalImpact"]
        with pytest.raises(AnalysisValidationError, match="environmentalImpact"):
            validate_dimension_payload(payload, "p1", NOW)

    def test_blank_explanation(self, dimension_payload):
        payload = copy.deepcopy(dimension_payload)
        payload["dimensions"]["health"]["explanation"] = "  "
        with pytest.raises(AnalysisValidationError, match="explanation"):
            validate_dimension_payload(payload, "p1", NOW)

    @pytest.mark.parametrize("factors", [[], "Low sugar", ["ok", ""], [1]])
    def test_bad_key_factors(self, dimension_payload, factors):
        payload = copy.deepcopy(dimension_payload)
        payload["dimensions"]["health"]["keyFactors"] = factors
        with pytest.raises(AnalysisValidationError, match="keyFactors"):
            validate_dimension_payload(payload, "p1", NOW)

    @pytest.mark.parametrize("confidence", [1.2, -0.1, "high"])
    def test_bad_confidence(self, dimension_payload, confidence):
        payload = copy.deepcopy(dimension_payload)
        payload["overallConfidence"] = confidence
        with pytest.raises(AnalysisValidationError, match="overallConfidence"):
            validate_dimension_payload(payload, "p1", NOW)

    def test_validation_error_is_retryable(self):
        err = AnalysisValidationError("x")
        assert err.retryable is True
        assert err.code == "AI_ANALYSIS_FAILED"
