"""
Structured Extraction Tests
"""
import json
from types import SimpleNamespace

import pytest

from grantscope.errors import AnalysisError
from grantscope.services import openai_service
from grantscope.services.openai_service import (
    analyze_990,
    apply_grant_statistics,
    client_ready,
    grant_statistics,
    safe_json_loads,
    sample_foundation,
)

SETTINGS = {
    "OPENAI_API_KEY": "sk-test",
    "OPENAI_MODEL": "gpt-4o",
    "OPENAI_MAX_TOKENS": 4000,
    "OPENAI_TEMPERATURE": 0.3,
    "OPENAI_TIMEOUT": 60,
}


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, error=None):
    completions = FakeCompletions(content, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class TestGrantStatistics:
    def test_odd_count(self):
        assert grant_statistics([10, 20, 30]) == (20, 20)

    def test_even_count_takes_upper_middle(self):
        average, median = grant_statistics([40, 10, 30, 20])
        assert average == 25
        assert median == 30

    def test_ignores_null_and_nan(self):
        assert grant_statistics([None, 10, float("nan"), 30]) == (20, 30)

    def test_empty(self):
        assert grant_statistics([]) == (0, 0)
        assert grant_statistics([None]) == (0, 0)

    def test_apply_defaults_missing_grantees(self):
        result = apply_grant_statistics({"name": "X"})
        assert result["grantees"] == []
        assert result["averageGrantAmount"] == 0
        assert result["medianGrantAmount"] == 0

    def test_apply_with_no_valid_amounts_keeps_grantees(self):
        result = apply_grant_statistics({"grantees": [{"name": "A", "amount": None}]})
        assert len(result["grantees"]) == 1
        assert result["averageGrantAmount"] == 0


class TestSafeJsonLoads:
    def test_plain_object(self):
        assert safe_json_loads('{"name": "X"}') == {"name": "X"}

    def test_code_fence(self):
        assert safe_json_loads('```json\n{"name": "X"}\n```') == {"name": "X"}

    def test_malformed_is_hard_failure(self):
        with pytest.raises(AnalysisError):
            safe_json_loads('Here you go: {"name": "X"')

    def test_non_object(self):
        with pytest.raises(AnalysisError):
            safe_json_loads("[1, 2]")

    def test_empty(self):
        with pytest.raises(AnalysisError):
            safe_json_loads("")


class TestAnalyze990:
    def test_success_adds_statistics(self, foundation_dict):
        payload = dict(foundation_dict)
        payload.pop("averageGrantAmount")
        payload.pop("medianGrantAmount")
        client, completions = fake_client(json.dumps(payload))

        result = analyze_990("form text", SETTINGS, client=client)

        assert result["name"] == "Lakeshore Community Foundation"
        assert result["averageGrantAmount"] == 20000
        assert result["medianGrantAmount"] == 20000
        call = completions.calls[0]
        assert call["model"] == "gpt-4o"
        assert call["response_format"] == {"type": "json_object"}
        assert call["max_tokens"] == 4000
        assert call["messages"][1] == {"role": "user", "content": "form text"}
        assert "Grants and Contributions Paid During the Year" in call["messages"][0]["content"]

    def test_malformed_reply_raises(self):
        client, _ = fake_client("not json at all")
        with pytest.raises(AnalysisError):
            analyze_990("form text", SETTINGS, client=client)

    def test_upstream_error_wrapped(self):
        from openai import OpenAIError
        client, _ = fake_client(error=OpenAIError("quota exceeded"))
        with pytest.raises(AnalysisError) as exc:
            analyze_990("form text", SETTINGS, client=client)
        assert "quota exceeded" in str(exc.value)

    def test_missing_key(self):
        with pytest.raises(AnalysisError) as exc:
            analyze_990("form text", {"OPENAI_API_KEY": ""})
        assert "not configured" in str(exc.value)

    def test_builds_client_from_settings(self, monkeypatch):
        client, completions = fake_client('{"name": "X", "grantees": []}')
        monkeypatch.setattr(openai_service, "get_client", lambda settings: client)
        result = analyze_990("text", SETTINGS)
        assert result["grantees"] == []
        assert len(completions.calls) == 1


class TestClientReady:
    def test_placeholder_key_is_not_ready(self):
        ok, msg = client_ready({"OPENAI_API_KEY": "your-api-key-here"})
        assert not ok
        assert msg

    def test_real_key(self):
        assert client_ready(SETTINGS) == (True, "")


class TestSampleFoundation:
    def test_tagged_and_has_statistics(self):
        sample = sample_foundation()
        assert sample["sample"] is True
        assert sample["averageGrantAmount"] == 61000
        assert sample["medianGrantAmount"] == 50000

    def test_returns_copy(self):
        sample_foundation()["grantees"].clear()
        assert len(sample_foundation()["grantees"]) == 5


class TestNormalizeFoundation:
    def test_reply_is_coerced_to_wire_shape(self):
        reply = {
            "name": "X",
            "sample": True,
            "grantees": [
                {"name": "A", "year": 2023, "amount": -500, "location": {"city": "Ames", "state": "IA"}},
                {"name": "B", "year": "FY23", "amount": None},
                {"name": "C", "year": 2022, "amount": "$3,000"},
            ],
        }
        client, _ = fake_client(json.dumps(reply))

        result = analyze_990("form text", SETTINGS, client=client)

        assert "sample" not in result
        assert [g["amount"] for g in result["grantees"]] == [0, 0, 3000]
        assert [g["year"] for g in result["grantees"]] == [2023, 2023, 2022]
        assert result["averageGrantAmount"] == 1500
        assert result["medianGrantAmount"] == 3000

    def test_overflowing_amounts_are_an_analysis_error(self):
        huge = int("9" * 400)
        reply = {"name": "X", "grantees": [{"name": "A", "year": 2023, "amount": huge}] * 2}
        client, _ = fake_client(json.dumps(reply))
        with pytest.raises(AnalysisError):
            analyze_990("form text", SETTINGS, client=client)
