"""
Centralized AI Service for all OpenAI interactions.
Provides consistent model selection with fallback chain across all features.

Model Hierarchy:
1. Primary: OPENAI_MODEL from config (gpt-4o-mini by default)
2. Fallback: gpt-4o-mini
3. Legacy: gpt-3.5-turbo

All models use the Chat Completions API.

Usage:
    from services.ai_service import generate_email_draft

    draft = generate_email_draft(
        prompt="Yıl sonu fon performansını özetleyen kısa bir e-posta",
        tone="formal",
    )
    draft['subject'], draft['body']
"""

import json
import logging

import openai
from flask import current_app, has_app_context

from config import Config
from services.sanitize import sanitize_text

# Set up logging
logger = logging.getLogger(__name__)

FALLBACK_MODEL = "gpt-4o-mini"
LEGACY_MODEL = "gpt-3.5-turbo"

# Errors that should trigger fallback (model not available, rate limited, etc.)
FALLBACK_ERROR_CODES = [401, 403, 404, 429]

EMAIL_TONES = ('formal', 'friendly')

AI_MARKET_TOPICS = [
    {
        'id': 'bist',
        'label': 'BIST 100',
        'description': 'Borsa İstanbul endeksinin son 1 aylık performansı',
        'instruction': 'Borsa İstanbul (BIST 100) endeksinin son 1 aylık puan ve yüzde değişimini, varsa önemli haberi özetle',
    },
    {
        'id': 'usdtry',
        'label': 'USD/TRY',
        'description': 'Dolar/TL kurundaki son 1 aylık değişim',
        'instruction': 'USD/TRY kurunun son 1 aylık seviyesini ve yüzde değişimini açıkla',
    },
    {
        'id': 'eurusd',
        'label': 'EUR/USD',
        'description': 'Euro/Dolar paritesi',
        'instruction': 'EUR/USD paritesinin son 1 aylık seyrini ve temel etkenleri özetle',
    },
    {
        'id': 'gold',
        'label': 'Altın',
        'description': 'Ons veya gram altın fiyatı',
        'instruction': 'Altın fiyatlarının (ons ve/veya gram) son 1 ayda nasıl değiştiğini belirt',
    },
    {
        'id': 'bitcoin',
        'label': 'Bitcoin',
        'description': 'Bitcoin fiyatındaki son 1 aylık değişim',
        'instruction': 'Bitcoin fiyatının son 1 aylık performansını ve ana başlıkları özetle',
    },
    {
        'id': 'ethereum',
        'label': 'Ethereum',
        'description': 'Ethereum fiyatındaki son 1 aylık değişim',
        'instruction': 'Ethereum fiyatının son 1 aydaki hareketini ve öne çıkan haberi paylaş',
    },
]

DRAFT_SYSTEM_PROMPT = " ".join([
    "You are an assistant that prepares Turkish pension savings digest emails for financial advisors.",
    "Always produce concise yet informative content.",
    "Use the following placeholders exactly as written whenever personal data is referenced: "
    "{{CONSULTANT_NAME}}, {{CLIENT_NAME}}, {{CLIENT_EMAIL}}, {{CURRENT_SAVINGS}}, {{FIRST_SAVINGS}}, "
    "{{SAVINGS_GROWTH}}, {{CLIENT_START_DATE}}, {{CURRENT_DATE}}, {{CLIENT_LIST}}.",
    "Begin the body with the salutation 'Sayın {{CLIENT_NAME}},' and keep placeholders untouched.",
    "Every draft must include at minimum the customer's current savings, first savings, growth, and start date placeholders.",
    "Return valid JSON with keys `subject` and `body`.",
    "The body should be multi-paragraph plain text that can include bullet lists with hyphens.",
])


class MissingOpenAIApiKeyError(ValueError):
    """Raised when no OpenAI API key is configured."""

    def __init__(self):
        super().__init__("OPENAI_API_KEY env variable is missing.")


class AIDraftError(Exception):
    """Raised when the model reply cannot be turned into a subject and body."""
    pass


def _config_value(name, default=None):
    if has_app_context():
        return current_app.config.get(name, default)
    return getattr(Config, name, default)


def _should_fallback(error):
    """Check if error should trigger fallback to next model."""
    if hasattr(error, 'status_code'):
        return error.status_code in FALLBACK_ERROR_CODES
    return False


def _model_chain():
    primary = _config_value('OPENAI_MODEL') or FALLBACK_MODEL
    chain = [primary]
    for model in (FALLBACK_MODEL, LEGACY_MODEL):
        if model not in chain:
            chain.append(model)
    return chain


def _call_chat_completions_api(client, model, system_prompt, user_prompt, temperature=0.7,
                               json_mode=False, max_tokens=None):
    """Call the OpenAI Chat Completions API."""
    kwargs = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ],
        "temperature": temperature
    }

    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    if max_tokens:
        kwargs["max_tokens"] = max_tokens

    response = client.chat.completions.create(**kwargs)
    return response.choices[0].message.content


def generate_ai_response(
    system_prompt: str,
    user_prompt: str,
    temperature: float = 0.7,
    json_mode: bool = False,
    max_tokens: int = None,
    api_key: str = None
) -> str:
    """
    Generate an AI response using the model fallback chain.

    Args:
        system_prompt: The system instructions for the AI
        user_prompt: The user's input/question
        temperature: Creativity level (0.0-1.0)
        json_mode: If True, request JSON response format
        max_tokens: Optional cap on the reply length
        api_key: Optional API key override (uses OPENAI_API_KEY from config if not provided)

    Returns:
        The AI-generated response text

    Raises:
        MissingOpenAIApiKeyError: If API key is not configured
        openai.APIError: If all models fail
    """
    key = api_key or _config_value('OPENAI_API_KEY')
    if not key:
        logger.error("OpenAI API key is not configured!")
        raise MissingOpenAIApiKeyError()

    client = openai.OpenAI(api_key=key)

    masked_key = f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"
    logger.info(f"AI Service using API key: {masked_key}")

    models = _model_chain()
    for position, model in enumerate(models, start=1):
        is_last = position == len(models)
        try:
            logger.info(f"[{position}/{len(models)}] Attempting model: {model}")
            result = _call_chat_completions_api(
                client, model, system_prompt, user_prompt, temperature, json_mode, max_tokens
            )
            logger.info(f"SUCCESS: Generated response with {model}")
            return result

        except (openai.NotFoundError, openai.AuthenticationError, openai.PermissionDeniedError, openai.RateLimitError) as e:
            if is_last:
                logger.error(f"FATAL: All models failed. Last model {model} error: {str(e)}")
                raise
            logger.warning(f"FALLBACK TRIGGERED: {model} failed with {type(e).__name__}. Error: {str(e)}")

        except openai.APIError as e:
            if is_last or not _should_fallback(e):
                logger.error(f"FATAL: {model} failed with unrecoverable error: {str(e)}")
                raise
            logger.warning(f"FALLBACK TRIGGERED: {model} failed with status {e.status_code}. Error: {str(e)}")


def build_draft_prompt(prompt: str, topic_ids=None) -> str:
    """Append bullet instructions for each known market topic to the user's request."""
    lookup = {topic['id']: topic['instruction'] for topic in AI_MARKET_TOPICS}
    instructions = [lookup[topic_id] for topic_id in (topic_ids or []) if topic_id in lookup]

    lines = [prompt.strip()]
    if instructions:
        lines.append("")
        lines.append("Ek olarak aşağıdaki finans başlıkları için son 1 aylık (varsa yüzdesel) değişimleri maddeler halinde aktar:")
        lines.append("\n".join(f"- {instruction}" for instruction in instructions))
    return "\n".join(lines)


def generate_email_draft(prompt: str, tone: str = 'formal') -> dict:
    """
    Ask the model for a Turkish digest email draft.

    Returns:
        {'subject': str, 'body': str} with markup characters stripped

    Raises:
        MissingOpenAIApiKeyError: no key configured
        AIDraftError: the reply is not JSON with a subject and body
    """
    user_prompt = "\n".join([
        f"Yazım tonu: {'resmi' if tone == 'formal' else 'samimi'}, Türkçe.",
        "Aşağıdaki placeholders metinde mutlaka kullanılabilir ve içeriğe uygun şekilde yerleştirilmelidir.",
        "Özellikle {{CURRENT_SAVINGS}}, {{FIRST_SAVINGS}}, {{SAVINGS_GROWTH}}, {{CLIENT_START_DATE}} ifadelerini gövdede belirt.",
        "Kullanıcı yönergesi:",
        prompt,
        "",
        "Lütfen yalnızca JSON çıktısı üret.",
        '{"subject":"","body":""}',
    ])

    content = generate_ai_response(
        system_prompt=DRAFT_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        temperature=0.6,
        json_mode=True,
        max_tokens=600,
    )
    if not content:
        raise AIDraftError("OpenAI response did not include content.")

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise AIDraftError(f"OpenAI response could not be parsed: {e}. Raw content: {content}") from e

    if not isinstance(parsed, dict) or not parsed.get('subject') or not parsed.get('body'):
        raise AIDraftError(f"OpenAI response could not be parsed: Missing subject or body field. Raw content: {content}")

    return {
        'subject': sanitize_text(str(parsed['subject'])),
        'body': sanitize_text(str(parsed['body'])),
    }
