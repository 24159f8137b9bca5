from __future__ import annotations

import json
import logging
import random
import threading
import urllib.error
import urllib.request
from typing import Any, Callable

from .models import MessageKind
from .settings import Settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30
MESSAGE_TEMPERATURE = 0.9
MESSAGE_MAX_TOKENS = 120

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
CHAT_ENDPOINTS = {
    "openai": "https://api.openai.com/v1/chat/completions",
    "local": "http://localhost:1234/v1/chat/completions",
}

MESSAGE_TONES = ("encouraging", "humorous", "philosophical", "energetic", "calm")

MOTIVATIONAL_MESSAGES = (
    "Small consistent efforts compound into remarkable achievements over time.",
    "Your focus today builds the foundation for tomorrow's success.",
    "Take a moment to appreciate how far you've come this week.",
    "Progress, not perfection, is what drives meaningful change.",
    "The best work happens when you balance intensity with rest.",
    "Every hour of focused work is an investment in your future self.",
    "Remember: sustainable pace beats burnout every single time.",
    "Your dedication today is writing the story of your career.",
    "Deep work requires deep rest. Honor both equally.",
    "The most productive people know when to stop and recharge.",
    "Your attention is your most valuable resource. Spend it wisely.",
    "Great ideas need space to breathe. Take breaks without guilt.",
    "Consistency over intensity. Show up every day and the results follow.",
    "You are building something meaningful, one focused session at a time.",
    "The quality of your rest determines the quality of your work.",
    "Trust the process. Each day adds another layer to your expertise.",
    "Working smart means knowing when to push and when to pause.",
    "Your future self will thank you for the boundaries you set today.",
    "Excellence is a habit, not an act. Keep showing up.",
    "The rhythm of work and rest creates the music of achievement.",
)

REGISTRATION_REMINDER_MESSAGES = (
    "Great work today! Don't forget to register your completed hours in your time tracking system.",
    "You've hit your daily goal! Remember to log these hours in your external system before signing off.",
    "Excellent job reaching your target! Time to register your work hours for the day.",
    "Daily target achieved! Make sure to record your completed hours in your tracking system.",
    "Well done on completing your work goal! Don't forget to update your time logs.",
    "Target hours reached! Remember to register today's work in your external tracking system.",
    "Success! You've completed your daily hours. Time to log them in your system.",
    "Fantastic work today! Please remember to register your hours externally.",
    "You've met your daily goal! Don't forget to document your hours in the tracking system.",
    "Great day of work! Make sure to register your completed hours before you finish.",
)


class MessageServiceError(RuntimeError):
    """The message provider was misconfigured, unreachable or answered badly."""


PostJson = Callable[[str, dict[str, Any], dict[str, str]], dict[str, Any]]


class MessageGenerator:
    """Dashboard messages from a configured AI provider or a static pool.

    :meth:`generate` never raises: provider errors and empty answers fall
    back to a random message from the pool for that kind.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        post_json: PostJson | None = None,
    ):
        self._settings = settings
        self._rng = rng or random.Random()
        self._post_json = post_json or _post_message_request

    def generate(self, kind: MessageKind) -> str:
        provider = ""
        model = ""
        api_key = ""
        endpoint = ""
        if self._settings is not None:
            try:
                provider = self._settings.ai_provider
                model = self._settings.ai_model
                api_key = self._settings.ai_api_key
                endpoint = self._settings.ai_endpoint
            except Exception:  # noqa: BLE001
                logger.exception("Failed to read AI settings")
                provider = ""

        if provider and model:
            try:
                text = self._request_message(provider, model, api_key, endpoint, kind).strip()
                if text:
                    return text
                logger.info("AI provider returned an empty message")
            except Exception as exc:  # noqa: BLE001
                logger.warning("AI message generation failed: %s", exc)
        return self.fallback_message(kind)

    def generate_async(self, kind: MessageKind, on_ready: Callable[[str], None]) -> threading.Thread:
        def _worker() -> None:
            on_ready(self.generate(kind))

        thread = threading.Thread(target=_worker, name="worktray-message", daemon=True)
        thread.start()
        return thread

    def fallback_message(self, kind: MessageKind) -> str:
        pool = REGISTRATION_REMINDER_MESSAGES if kind is MessageKind.REGISTRATION_REMINDER else MOTIVATIONAL_MESSAGES
        return self._rng.choice(pool)

    def build_prompt(self, kind: MessageKind) -> str:
        if kind is MessageKind.REGISTRATION_REMINDER:
            return (
                "Generate a short, encouraging reminder message (max 2 sentences) to register "
                "completed work hours in an external system. The tone should be friendly and "
                "congratulatory about completing the daily work goal, while gently reminding "
                "them to log their hours. Do not use hashtags or emojis."
            )
        tone = self._rng.choice(MESSAGE_TONES)
        return (
            "Generate a short motivational message (max 2 sentences) about productivity "
            f"and work-life balance. Use a {tone} tone. Do not use hashtags or emojis. "
            "Be genuine and specific, not generic."
        )

    def _request_message(
        self,
        provider: str,
        model: str,
        api_key: str,
        endpoint: str,
        kind: MessageKind,
    ) -> str:
        prompt = self.build_prompt(kind)
        if provider == "gemini":
            if not api_key:
                raise MessageServiceError("Gemini needs an API key.")
            url = endpoint or GEMINI_ENDPOINT.format(model=model)
            reply = self._post_json(
                f"{url}?key={api_key}",
                {
                    "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                    "generationConfig": {"temperature": MESSAGE_TEMPERATURE},
                },
                {},
            )
            return _clean_reply(_gemini_reply(reply))

        if provider not in CHAT_ENDPOINTS:
            raise MessageServiceError(f"Unsupported message provider: {provider}")
        if provider == "openai" and not api_key:
            raise MessageServiceError("OpenAI needs an API key.")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        reply = self._post_json(
            endpoint or CHAT_ENDPOINTS[provider],
            {
                "model": model,
                "temperature": MESSAGE_TEMPERATURE,
                "max_tokens": MESSAGE_MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers,
        )
        return _clean_reply(_chat_reply(reply))


def _post_message_request(url: str, payload: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
    request = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=REQUEST_TIMEOUT_SECONDS) as response:
            return json.load(response)
    except urllib.error.HTTPError as exc:
        raise MessageServiceError(f"Message request returned HTTP {exc.code}") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise MessageServiceError(f"Message service unreachable: {exc}") from exc
    except ValueError as exc:
        raise MessageServiceError("Message service answered with invalid JSON") from exc


def _gemini_reply(data: dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MessageServiceError("Gemini reply has no candidates") from exc
    return " ".join(part.get("text", "") for part in parts if isinstance(part, dict))


def _chat_reply(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MessageServiceError("Chat reply has no choices") from exc
    if isinstance(content, list):
        # Some servers return content parts instead of a plain string.
        return " ".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content if isinstance(content, str) else ""


def _clean_reply(text: str) -> str:
    """Collapse whitespace and drop wrapping quotes models like to add."""
    return " ".join(text.split()).strip("\"'“” ")
