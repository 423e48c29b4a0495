"""Tests for leadgen.services.openai_client — lead analysis and personalised copy."""
import json
import pytest
from unittest.mock import patch, MagicMock

from leadgen.services.openai_client import (
    analyze_lead, generate_personalized_email, fallback_analysis, FALLBACK_EMAIL,
)


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def mock_openai():
    client = MagicMock()
    with patch('leadgen.services.openai_client.client', client):
        yield client


class TestAnalyzeLead:

    def test_parses_model_json(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.return_value = _completion(json.dumps({
            'score': 0.86,
            'recommendation': 'approve',
            'reasoning': 'Active and well documented',
            'confidence': 0.9,
            'key_factors': ['active', 'docs'],
        }))
        result = analyze_lead(make_lead())
        assert result['score'] == 0.86
        assert result['recommendation'] == 'approve'
        assert result['fallback'] is False

    def test_passes_config_to_model(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.return_value = _completion('{"score": 0.5}')
        analyze_lead(make_lead(), {'model': 'gpt-4o-mini', 'temperature': 0.1, 'max_tokens': 200})
        kwargs = mock_openai.chat.completions.create.call_args[1]
        assert kwargs['model'] == 'gpt-4o-mini'
        assert kwargs['max_tokens'] == 200
        assert 'octo' in kwargs['messages'][1]['content']

    def test_out_of_range_values_clamped(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.return_value = _completion(
            '{"score": 7, "recommendation": "APPROVE", "confidence": -1}'
        )
        result = analyze_lead(make_lead())
        assert result['score'] == 1.0
        assert result['recommendation'] == 'approve'
        assert result['confidence'] == 0.0

    def test_unknown_recommendation_becomes_review(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.return_value = _completion('{"score": 0.4, "recommendation": "maybe"}')
        assert analyze_lead(make_lead())['recommendation'] == 'review'

    def test_unparseable_response_falls_back(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.return_value = _completion('I think it is great!')
        result = analyze_lead(make_lead())
        assert result == fallback_analysis()

    def test_api_error_falls_back(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.side_effect = RuntimeError('rate limited')
        result = analyze_lead(make_lead())
        assert result['score'] == 0.5
        assert result['recommendation'] == 'review'
        assert result['confidence'] == 0.0
        assert result['fallback'] is True

    def test_no_client_falls_back(self, make_lead):
        with patch('leadgen.services.openai_client.client', None):
            result = analyze_lead(make_lead())
        assert result['fallback'] is True
        assert result['reasoning'] == 'OpenAI client not configured'


class TestPersonalizedEmail:

    def test_returns_model_text(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.return_value = _completion('Hi Octo, loved your flows.')
        assert generate_personalized_email(make_lead(), {'score': 0.9}) == 'Hi Octo, loved your flows.'

    def test_failure_returns_fixed_text(self, mock_openai, make_lead):
        mock_openai.chat.completions.create.side_effect = RuntimeError('down')
        assert generate_personalized_email(make_lead(), {}) == FALLBACK_EMAIL
