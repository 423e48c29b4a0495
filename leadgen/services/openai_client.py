"""
OpenAI helpers — lead analysis and personalised outreach copy.

Both calls degrade to fixed fallbacks instead of raising, so a scoring run
keeps going when the API is down or returns something unparseable.
"""
import json
import logging
from typing import Dict, Any, Optional

from leadgen.config import AI_RECOMMENDATIONS
from leadgen.extensions import openai_client as client
from leadgen.models.lead import Lead

logger = logging.getLogger('services.openai')

DEFAULT_ANALYSIS_CONFIG = {
    'model': 'gpt-4',
    'temperature': 0.3,
    'max_tokens': 1000,
}

FALLBACK_EMAIL = 'Unable to generate personalized email'

SYSTEM_PROMPT = (
    'You are a business development AI agent analyzing GitHub repositories '
    'for potential partnerships.'
)

ANALYSIS_PROMPT = """You are an AI agent specialized in analyzing n8n workflow repositories for potential business opportunities.

Analyze this repository and provide a recommendation:

Repository: {repo_name}
Owner: {github_username}
Description: {repo_description}
URL: {repo_url}
Last Activity: {last_activity}

Please analyze this repository based on the following criteria:
1. Relevance to n8n workflows (0-10)
2. Quality and completeness of the project (0-10)
3. Activity level and maintenance (0-10)
4. Potential for business collaboration (0-10)
5. Developer engagement and community presence (0-10)

Respond in JSON:
{{
  "score": <overall_score_0_to_1>,
  "recommendation": "<approve|reject|review>",
  "reasoning": "<detailed_explanation>",
  "confidence": <confidence_0_to_1>,
  "key_factors": ["<factor1>", "<factor2>", "<factor3>"]
}}

Favour repositories that are actively maintained n8n workflows with good
documentation and monetization or collaboration potential. Reject inactive,
off-topic, incomplete or spam projects."""


def fallback_analysis(reason: str = 'Unable to analyze due to technical error') -> Dict[str, Any]:
    """Neutral result used whenever the model call fails."""
    return {
        'score': 0.5,
        'recommendation': 'review',
        'reasoning': reason,
        'confidence': 0.0,
        'key_factors': ['Analysis failed'],
        'fallback': True,
    }


def _chat_completion(**kwargs):
    """Route chat completion through the OpenAI circuit breaker."""
    from leadgen.services.circuit_breaker import get_breaker
    cb = get_breaker('openai')
    return cb.call(client.chat.completions.create, **kwargs)


def _clamp(value, default: float) -> float:
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return default


def _normalize(raw: Dict[str, Any]) -> Dict[str, Any]:
    recommendation = str(raw.get('recommendation', '')).strip().lower()
    if recommendation not in AI_RECOMMENDATIONS:
        recommendation = 'review'
    factors = raw.get('key_factors') or raw.get('keyFactors') or []
    if not isinstance(factors, list):
        factors = [str(factors)]
    return {
        'score': _clamp(raw.get('score'), 0.5),
        'recommendation': recommendation,
        'reasoning': str(raw.get('reasoning') or ''),
        'confidence': _clamp(raw.get('confidence'), 0.0),
        'key_factors': [str(f) for f in factors],
        'fallback': False,
    }


def analyze_lead(lead: Lead, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Score one lead. Returns {score, recommendation, reasoning, confidence, key_factors}."""
    cfg = dict(DEFAULT_ANALYSIS_CONFIG)
    cfg.update(config or {})

    if client is None:
        return fallback_analysis('OpenAI client not configured')

    try:
        response = _chat_completion(
            model=cfg['model'],
            temperature=cfg['temperature'],
            max_tokens=cfg['max_tokens'],
            messages=[
                {'role': 'system', 'content': SYSTEM_PROMPT},
                {'role': 'user', 'content': ANALYSIS_PROMPT.format(
                    repo_name=lead.repo_name,
                    github_username=lead.github_username,
                    repo_description=lead.repo_description,
                    repo_url=lead.repo_url,
                    last_activity=lead.last_activity,
                )},
            ],
        )
        content = response.choices[0].message.content
        if not content:
            raise ValueError('empty response')
        result = _normalize(json.loads(content))
    except Exception as e:
        logger.error("Error analyzing lead %s: %s", lead.full_name, e)
        return fallback_analysis()

    logger.debug("Lead %s scored %.2f (%s)", lead.full_name, result['score'], result['recommendation'])
    return result


def generate_personalized_email(lead: Lead, analysis: Dict[str, Any]) -> str:
    """Short outreach body tailored to the repository; fixed fallback text on failure."""
    if client is None:
        return FALLBACK_EMAIL

    prompt = (
        "Generate a personalized outreach email for this n8n workflow creator.\n\n"
        f"Repository: {lead.repo_name}\n"
        f"Owner: {lead.github_username}\n"
        f"Description: {lead.repo_description}\n"
        f"AI Analysis Score: {analysis.get('score')}\n"
        f"Key Factors: {', '.join(analysis.get('key_factors', []))}\n\n"
        "Mention specific aspects of their work, explain the value of Xeinst, "
        "include a clear call to action, stay professional but friendly and "
        "under 200 words. Output only the email body."
    )
    try:
        response = _chat_completion(
            model='gpt-4',
            temperature=0.7,
            max_tokens=500,
            messages=[
                {'role': 'system', 'content': 'You are a business development specialist writing personalized outreach emails.'},
                {'role': 'user', 'content': prompt},
            ],
        )
        return response.choices[0].message.content or FALLBACK_EMAIL
    except Exception as e:
        logger.error("Error generating email for %s: %s", lead.full_name, e)
        return FALLBACK_EMAIL
