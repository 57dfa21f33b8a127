#!/usr/bin/env python3
"""Tests for provider helpers."""

from design_loop.providers import (
    AIProvider,
    ProviderCapabilities,
    ProviderResponse,
    extract_json,
    iter_json_values,
)


class EchoProvider:
    capabilities = ProviderCapabilities(vision=True)

    def is_connected(self):
        return True

    async def send_message(self, messages, *, system_prompt=None, temperature=0.7, max_tokens=4096):
        return ProviderResponse(content=messages[-1].content)


class TestExtractJson:
    """Tests for extract_json()."""

    def test_plain_json(self):
        """Test a bare JSON reply parses."""
        assert extract_json('{"score": 0.5}') == {"score": 0.5}

    def test_fenced_block(self):
        """Test a fenced block wins over surrounding prose."""
        text = 'Sure!\n```json\n[{"tool": "create_frame"}]\n```\nLet me know.'
        assert extract_json(text) == [{"tool": "create_frame"}]

    def test_unlabelled_fence(self):
        """Test fences without a language tag are accepted."""
        assert extract_json("```\n{\"a\": 1}\n```") == {"a": 1}

    def test_embedded_array(self):
        """Test an array surrounded by prose is found."""
        assert extract_json('Here you go: [{"tool": "set_fill"}] done') == [{"tool": "set_fill"}]

    def test_embedded_object(self):
        """Test an object embedded in prose is found."""
        assert extract_json('Verdict: {"score": 0.7} (final)') == {"score": 0.7}

    def test_first_bracket_wins(self):
        """Test an object opening before its nested array is returned whole."""
        text = 'Review: {"score": 0.8, "strengths": ["clean"]} thanks'
        assert extract_json(text) == {"score": 0.8, "strengths": ["clean"]}

    def test_skips_non_json_brackets(self):
        """Test bracketed prose that is not JSON is passed over."""
        assert extract_json('[note] result {"a": [1, 2]}') == {"a": [1, 2]}

    def test_iter_json_values_in_order(self):
        """Test every decodable value is yielded in text order."""
        values = list(iter_json_values('a [1] b {"c": 2}'))
        assert values[0] == [1]
        assert {"c": 2} in values

    def test_nothing_parses(self):
        """Test None is returned when no JSON is present."""
        assert extract_json("I could not do that.") is None
        assert extract_json("") is None


class TestProviderProtocol:
    """Tests for the AIProvider protocol."""

    def test_structural_match(self):
        """Test any object with the right members is an AIProvider."""
        assert isinstance(EchoProvider(), AIProvider)
        assert not isinstance(object(), AIProvider)
