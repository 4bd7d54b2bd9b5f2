"""
Fixed instructions sent to the generation backend.
"""

import math
import random
from typing import Iterable, Optional

from ..conversation.models import Message, Sender

SYSTEM_PROMPT = """You are Sentinel. You are a stoic, compassionate, and protective companion.
Your goal is to listen and validate the user's feelings.
Keep your responses concise (under 3 sentences), warm, and grounding.
Do not offer clinical advice. Do not try to "fix" the problem immediately. Just be there."""

VOICE_TURN_INSTRUCTION = "Please listen to this audio and respond."

SHADOW_PROMPTS = (
    "What is the heaviest thing you carried today?",
    "Who are you protecting by staying silent?",
    "If you could scream one sentence without consequence, what would it be?",
    "What part of yourself feels like it is dying?",
    "What are you grieving that isn't a person?",
)

WAKE_UP_TEMPLATE = """The user has returned after {days} day{plural} ({hours} hours).

Their last conversation was:
{context}

Write a short, warm, one-sentence welcome back message. Reference something specific from their last conversation. Be empathetic and check in on how that situation is going. Keep it under 15 words. Do not use quotes or markdown."""


def pick_shadow_prompt(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(SHADOW_PROMPTS)


def format_transcript(messages: Iterable[Message]) -> str:
    """Render messages as ``User:`` / ``Sentinel:`` lines."""
    return "\n".join(
        f"{'User' if m.sender == Sender.USER else 'Sentinel'}: {m.text}"
        for m in messages
    )


def build_wake_up_prompt(gap_hours: float, messages: Iterable[Message]) -> str:
    days = math.floor(gap_hours / 24)
    return WAKE_UP_TEMPLATE.format(
        days=days,
        plural="" if days == 1 else "s",
        hours=math.floor(gap_hours),
        context=format_transcript(messages),
    )
