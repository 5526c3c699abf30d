"""
LLM client - OpenAI-compatible chat completions for persona replies,
thread summaries and sentiment
"""
import asyncio
import json
import time
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import settings
from src.core.circuit_breaker import CircuitBreaker, llm_circuit_breaker
from src.core.exceptions import AIServiceException
from src.core.metrics import ai_request_duration_seconds, ai_requests_total
from src.core.moderation import PERSONA_GUARDRAILS
from src.models.entities import Fan, Message, MessageSender, Persona, Sentiment
from src.models.internal import AIProviderHealth, PersonaReply, SuggestedAction, SuggestedActionType

DEFAULT_REPLY = "Hey there! 💕"
SUMMARY_MESSAGE_LIMIT = 20

SUMMARY_PROMPT = (
    "Summarize this conversation in 1-2 sentences, focusing on the fan's interests, "
    "preferences, and any important context for future conversations. "
    'Respond in JSON format: {"summary": "your summary"}'
)

SENTIMENT_PROMPT = (
    "Analyze the sentiment of this message. "
    'Respond in JSON format: {"sentiment": "positive/neutral/negative"}'
)


def _is_retryable_http_error(exception: BaseException) -> bool:
    """Check if an exception is a retryable HTTP error"""
    if isinstance(exception, httpx.HTTPStatusError):
        status_code = exception.response.status_code
        return status_code == 429 or (500 <= status_code < 600)

    return isinstance(exception, httpx.RequestError | TimeoutError)


T = TypeVar("T")


def _llm_retry_decorator(func: Callable[..., T]) -> Callable[..., T]:
    """Retry once on timeouts and transient provider errors"""
    return retry(  # type: ignore[return-value]
        stop=stop_after_attempt(settings.llm_max_attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((ConnectionError, TimeoutError, httpx.RequestError))
        | retry_if_exception(_is_retryable_http_error),
        reraise=True,
    )(func)


def _extract_json_from_response(response_text: str) -> dict[str, Any]:
    """Extract the first JSON object from response text, handling nested braces"""
    try:
        parsed = json.loads(response_text)
    except json.JSONDecodeError:
        brace_count = 0
        start_idx = -1
        for i, char in enumerate(response_text):
            if char == "{":
                if brace_count == 0:
                    start_idx = i
                brace_count += 1
            elif char == "}":
                brace_count -= 1
                if brace_count == 0 and start_idx != -1:
                    try:
                        return json.loads(response_text[start_idx:i + 1])
                    except json.JSONDecodeError:
                        continue
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_persona_reply(data: dict[str, Any]) -> PersonaReply:
    """Turn the model's JSON answer into a reply; unknown actions are dropped"""
    text = str(data.get("message") or "").strip() or DEFAULT_REPLY

    actions = []
    action = data.get("action")
    if action:
        try:
            action_type = SuggestedActionType(action)
        except ValueError:
            logger.warning(f"Dropping unsupported suggested action: {action}")
        else:
            action_data = data.get("actionData")
            actions.append(SuggestedAction(
                type=action_type,
                data=action_data if isinstance(action_data, dict) else {},
            ))

    return PersonaReply(text=text, suggested_actions=actions)


def build_system_prompt(persona: Persona, fan: Fan) -> str:
    """Persona voice, offers, disclosure and fan context for the responder"""
    offers = ", ".join(
        f"{item.label}: ${item.price_cents / 100:.2f}" for item in persona.offer_menu
    ) or "none"
    voice = ", ".join(persona.voice_keywords) or "warm, playful, attentive"
    do_say = ", ".join(persona.do_say) or "Use compliments, light teasing, show curiosity"
    dont_say = ", ".join(persona.dont_say) or "graphic sexual content, age references, promises of in-person meetings"
    disclosure = persona.disclosure or "You're chatting with an AI assistant"
    boundaries = ", ".join(fan.boundaries) or "none specified"
    actions = "/".join(action.value for action in SuggestedActionType)

    return f"""You are {persona.name}, an AI assistant for a content creator. {persona.bio or ''}

PERSONALITY TRAITS: {voice}

RESPONSE RULES:
- Always respond in JSON format: {{"message": "your response", "action": null or "{actions}", "actionData": {{}}}}
- {do_say}
- NEVER: {dont_say}
- When suggesting paid content, use action: "offer_menu" with relevant items
- Always maintain the disclosure: {disclosure}

AVAILABLE OFFERS: {offers}

FAN CONTEXT:
- Handle: {fan.handle}
- Spend tier: {fan.spend_tier.value}
- Boundaries: {boundaries}
- Preferences: {json.dumps(fan.preferences, default=str)}
{PERSONA_GUARDRAILS}"""


class LLMClient:
    """OpenAI-compatible chat completions client"""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        """Initialize LLM client"""
        if not settings.llm_api_key:
            logger.warning("LLM API key not configured - persona replies will fall back to the apology message")

        self.api_key = settings.llm_api_key
        self.model_name = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature
        self.timeout = settings.llm_timeout_seconds
        self.api_base = settings.llm_base_url.rstrip("/")
        self.circuit_breaker = circuit_breaker or llm_circuit_breaker
        self.http_client = http_client or httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self.api_key}"}
        )

        logger.info(f"LLM client initialized with model: {self.model_name}")

    async def generate_reply(
        self,
        persona: Persona,
        fan: Fan,
        recent_messages: list[Message],
        summary: str,
        user_message: str,
    ) -> PersonaReply:
        """
        Generate the persona's reply to a fan message

        Args:
            persona: Persona speaking
            fan: Fan being answered
            recent_messages: Conversation context, oldest first
            summary: Rolling thread summary, may be empty
            user_message: The fan's new message

        Returns:
            Reply text and suggested follow-up actions

        Raises:
            AIServiceException: Provider failed, timed out or is unconfigured
        """
        if not self.api_key:
            raise AIServiceException("LLM API key not configured")

        system_prompt = build_system_prompt(persona, fan)
        if summary:
            system_prompt += f"\n\nCONVERSATION SO FAR: {summary}"

        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(
            {
                "role": "assistant" if msg.sender == MessageSender.AI else "user",
                "content": msg.content,
            }
            for msg in recent_messages[-settings.recent_message_limit:]
        )
        messages.append({"role": "user", "content": user_message})

        try:
            response_text = await self._chat_completion(messages, "reply", self.max_tokens, self.temperature)
        except Exception as e:
            logger.error(f"LLM reply generation failed: {e}")
            raise AIServiceException(f"Failed to generate AI response: {e!s}") from e

        reply = parse_persona_reply(_extract_json_from_response(response_text))
        logger.info(
            f"Generated reply: {len(reply.text)} chars, "
            f"{len(reply.suggested_actions)} suggested actions"
        )
        return reply

    async def summarize_thread(self, messages: list[Message]) -> str:
        """Summarize a thread in 1-2 sentences; empty for short threads or on failure"""
        if len(messages) < settings.summary_min_messages or not self.api_key:
            return ""

        transcript = "\n".join(
            f"{msg.sender.value}: {msg.content}" for msg in messages[-SUMMARY_MESSAGE_LIMIT:]
        )

        try:
            response_text = await self._chat_completion(
                [
                    {"role": "system", "content": SUMMARY_PROMPT},
                    {"role": "user", "content": transcript},
                ],
                "summary",
                max_tokens=200,
            )
        except Exception as e:
            logger.error(f"Error generating thread summary: {e}")
            return ""

        summary = _extract_json_from_response(response_text).get("summary")
        return summary.strip() if isinstance(summary, str) else ""

    async def analyze_sentiment(self, text: str) -> Sentiment:
        """Label a message positive, neutral or negative; neutral on failure"""
        if not self.api_key:
            return Sentiment.NEUTRAL

        try:
            response_text = await self._chat_completion(
                [
                    {"role": "system", "content": SENTIMENT_PROMPT},
                    {"role": "user", "content": text},
                ],
                "sentiment",
                max_tokens=50,
            )
        except Exception as e:
            logger.error(f"Error analyzing sentiment: {e}")
            return Sentiment.NEUTRAL

        label = str(_extract_json_from_response(response_text).get("sentiment", "")).lower()
        try:
            return Sentiment(label)
        except ValueError:
            return Sentiment.NEUTRAL

    async def _chat_completion(
        self,
        messages: list[dict[str, str]],
        purpose: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Run one completion through the circuit breaker; retries happen inside it"""
        payload = {
            "model": self.model_name,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
            "response_format": {"type": "json_object"},
        }

        start = time.time()
        try:
            result = await self.circuit_breaker.call_async(self._chat_completion_with_retry, payload)
        except Exception:
            ai_requests_total.labels(service=purpose, status="error").inc()
            raise
        finally:
            ai_request_duration_seconds.labels(service=purpose).observe(time.time() - start)

        ai_requests_total.labels(service=purpose, status="success").inc()
        return result

    @_llm_retry_decorator
    async def _chat_completion_with_retry(self, payload: dict[str, Any]) -> str:
        """POST one chat completion, bounded by the configured timeout"""
        logger.debug(f"Requesting completion with {len(payload['messages'])} messages")

        response = await asyncio.wait_for(
            self.http_client.post(f"{self.api_base}/chat/completions", json=payload),
            timeout=self.timeout,
        )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"LLM API error: {e.response.status_code} - {e.response.text}")
            raise

        data = response.json()
        return (data["choices"][0]["message"]["content"] or "").strip()

    async def health_check(self) -> AIProviderHealth:
        """Check LLM provider health"""
        if not self.api_key:
            return AIProviderHealth(status="down", latency_ms=None, error="API key not configured")

        try:
            start = time.time()
            await self._chat_completion_with_retry({
                "model": self.model_name,
                "messages": [{"role": "user", "content": "Hi"}],
                "max_tokens": 5,
            })
            latency_ms = int((time.time() - start) * 1000)
        except Exception as e:
            logger.error(f"LLM health check failed: {e}")
            return AIProviderHealth(status="down", latency_ms=None, error=str(e))
        else:
            return AIProviderHealth(status="up", latency_ms=latency_ms, error=None)

    async def close(self) -> None:
        """Close the underlying HTTP client"""
        await self.http_client.aclose()


llm_client = LLMClient()
