"""
Safety moderation and crisis escalation.
"""

from .escalation import EscalationContact
from .moderation import (
    CRISIS_DISTRESS_TEXT,
    CRISIS_VIOLENCE_TEXT,
    GUARDIAN_PROMPT,
    ModerationCategory,
    ModerationVerdict,
    SafetyModerationStage,
    crisis_text_for,
    parse_verdict,
    strip_code_fences,
)

__all__ = [
    "CRISIS_DISTRESS_TEXT",
    "CRISIS_VIOLENCE_TEXT",
    "GUARDIAN_PROMPT",
    "EscalationContact",
    "ModerationCategory",
    "ModerationVerdict",
    "SafetyModerationStage",
    "crisis_text_for",
    "parse_verdict",
    "strip_code_fences",
]
