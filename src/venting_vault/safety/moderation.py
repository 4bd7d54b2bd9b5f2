"""
Safety moderation stage.

Classifies a completed exchange (user text plus companion reply) for
self-harm or violence risk with a second, deterministic call to the
generation backend. Any backend or parse failure is treated as safe.
"""

import json
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.config import ModerationConfig
from ..core.exceptions import ParseError
from ..core.llm import ChatMessage, GenerationBackend
from ..core.logging import ProcessingTimer, get_logger

logger = get_logger(__name__)

GUARDIAN_PROMPT = """You are a dedicated Safety Guardian.
Your ONLY job is to detect immediate self-harm, suicide, or severe violence risks in the user's message.

Analyze the user's message.
Return ONLY a valid JSON object.

Format:
{
  "safe": boolean,
  "category": "SAFE" | "SELF_HARM" | "VIOLENCE" | "OTHER",
  "reason": "short explanation"
}

Definitions:
- SELF_HARM: "kill myself", "want to die", cutting, overdose, suicide planning.
- VIOLENCE: Explicit threats to kill or harm others.
- SAFE: Venting, sadness, frustration, "I want to kill this workout", "I'm dying of embarrassment"."""

CRISIS_DISTRESS_TEXT = (
    "I detect significant distress. You do not have to carry this alone. "
    "Please connect with a human lifeline."
)
CRISIS_VIOLENCE_TEXT = "I detect unsafe content. Please prioritize safety."


class ModerationCategory(str, Enum):
    SAFE = "SAFE"
    SELF_HARM = "SELF_HARM"
    VIOLENCE = "VIOLENCE"
    OTHER = "OTHER"


class ModerationVerdict(BaseModel):
    """Outcome of classifying one exchange."""

    safe: bool
    category: ModerationCategory = ModerationCategory.SAFE
    reason: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: object) -> object:
        if value is None:
            return ModerationCategory.SAFE
        if isinstance(value, str):
            upper = value.strip().upper()
            if upper in ModerationCategory.__members__:
                return upper
            return ModerationCategory.OTHER
        return value

    @classmethod
    def fail_open(cls, reason: str) -> "ModerationVerdict":
        return cls(safe=True, category=ModerationCategory.SAFE, reason=reason)


def strip_code_fences(raw: str) -> str:
    return raw.replace("```json", "").replace("```", "").strip()


def parse_verdict(raw: str) -> ModerationVerdict:
    """Parse the guardian's reply into a verdict.

    Raises:
        ParseError: If the reply is not a JSON object with a boolean ``safe``.
    """
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(
            "Moderation reply is not valid JSON",
            error_code="MODERATION_PARSE_ERROR",
            details={"length": len(cleaned)},
            component="moderation",
        ) from e

    if not isinstance(data, dict):
        raise ParseError(
            "Moderation reply is not a JSON object",
            error_code="MODERATION_PARSE_ERROR",
            component="moderation",
        )

    try:
        return ModerationVerdict.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(
            f"Moderation reply has invalid fields: {e.error_count()} errors",
            error_code="MODERATION_PARSE_ERROR",
            component="moderation",
        ) from e


def crisis_text_for(verdict: ModerationVerdict) -> str:
    """Crisis notice shown for an unsafe verdict."""
    if verdict.category == ModerationCategory.VIOLENCE:
        return CRISIS_VIOLENCE_TEXT
    return CRISIS_DISTRESS_TEXT


class SafetyModerationStage:
    """Second-stage classifier run after every companion reply."""

    def __init__(
        self,
        backend: GenerationBackend,
        config: Optional[ModerationConfig] = None,
    ):
        self.backend = backend
        self.config = config or ModerationConfig()
        self._in_flight = 0

    @property
    def reviewing(self) -> bool:
        """True while at least one classification is awaiting the backend."""
        return self._in_flight > 0

    async def classify(self, combined_text: str) -> ModerationVerdict:
        """Classify an exchange. Never raises for backend or parse failures."""
        if not self.config.enabled:
            return ModerationVerdict.fail_open("moderation disabled")

        messages = [ChatMessage.system(GUARDIAN_PROMPT), ChatMessage.user(combined_text)]

        self._in_flight += 1
        try:
            with ProcessingTimer(logger, "moderation", "safety"):
                raw = await self.backend.complete(
                    messages,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    json_mode=True,
                )
        except Exception as e:
            logger.warning(
                "Moderation backend failed, treating exchange as safe",
                error_type=e.__class__.__name__,
            )
            return ModerationVerdict.fail_open("backend error")
        finally:
            self._in_flight -= 1

        if not raw:
            logger.info("Moderation backend returned no verdict, treating as safe")
            return ModerationVerdict.fail_open("empty verdict")

        try:
            verdict = parse_verdict(raw)
        except ParseError as e:
            logger.warning("Unparsable moderation verdict", error=str(e))
            return ModerationVerdict.fail_open("unparsable verdict")

        if not verdict.safe:
            logger.log_safety_event(
                "unsafe_exchange", verdict.category.value, combined_text
            )
        return verdict
