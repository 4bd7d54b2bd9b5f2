"""
Tests for the safety moderation stage.
"""

import asyncio

import pytest

from conftest import SAFE_VERDICT, SELF_HARM_VERDICT, VIOLENCE_VERDICT, FakeBackend
from venting_vault.core.config import ModerationConfig
from venting_vault.core.exceptions import ParseError, TransportError
from venting_vault.safety import (
    CRISIS_DISTRESS_TEXT,
    CRISIS_VIOLENCE_TEXT,
    GUARDIAN_PROMPT,
    EscalationContact,
    ModerationCategory,
    ModerationVerdict,
    SafetyModerationStage,
    crisis_text_for,
    parse_verdict,
)


class TestParseVerdict:
    """Test guardian reply parsing."""

    def test_safe_verdict(self) -> None:
        """Test a plain safe verdict."""
        verdict = parse_verdict(SAFE_VERDICT)
        assert verdict.safe is True
        assert verdict.category == ModerationCategory.SAFE

    def test_code_fences_are_stripped(self) -> None:
        """Test fenced replies are accepted."""
        verdict = parse_verdict(f"```json\n{SELF_HARM_VERDICT}\n```")
        assert verdict.safe is False
        assert verdict.category == ModerationCategory.SELF_HARM

    def test_unknown_category_maps_to_other(self) -> None:
        """Test unknown categories are kept as OTHER."""
        verdict = parse_verdict('{"safe": false, "category": "weird"}')
        assert verdict.category == ModerationCategory.OTHER
        assert verdict.reason == ""

    def test_invalid_json(self) -> None:
        """Test non-JSON replies."""
        with pytest.raises(ParseError) as exc_info:
            parse_verdict("I think it's fine")
        assert exc_info.value.error_code == "MODERATION_PARSE_ERROR"

    def test_non_object(self) -> None:
        """Test JSON that is not an object."""
        with pytest.raises(ParseError):
            parse_verdict("[true]")

    def test_missing_safe_field(self) -> None:
        """Test a verdict without the safe flag."""
        with pytest.raises(ParseError):
            parse_verdict('{"category": "SELF_HARM"}')


class TestCrisisText:
    """Test crisis notice selection."""

    def test_violence(self) -> None:
        verdict = ModerationVerdict(safe=False, category="VIOLENCE")
        assert crisis_text_for(verdict) == CRISIS_VIOLENCE_TEXT

    def test_self_harm_and_other(self) -> None:
        for category in ("SELF_HARM", "OTHER"):
            verdict = ModerationVerdict(safe=False, category=category)
            assert crisis_text_for(verdict) == CRISIS_DISTRESS_TEXT


class TestSafetyModerationStage:
    """Test classification against the backend."""

    async def test_request_is_deterministic_json(self) -> None:
        """Test the guardian prompt, temperature and JSON mode."""
        backend = FakeBackend()
        stage = SafetyModerationStage(backend)
        await stage.classify("I feel exhausted I hear you.")

        call = backend.calls[0]
        assert call["json_mode"] is True
        assert call["temperature"] == 0.0
        assert call["messages"][0].content == GUARDIAN_PROMPT
        assert call["messages"][1].content == "I feel exhausted I hear you."

    async def test_unsafe_verdict(self) -> None:
        """Test an unsafe verdict is returned."""
        stage = SafetyModerationStage(FakeBackend(verdicts=[VIOLENCE_VERDICT]))
        verdict = await stage.classify("text")
        assert verdict.safe is False
        assert verdict.category == ModerationCategory.VIOLENCE

    @pytest.mark.parametrize(
        "reply",
        [
            TransportError("down", error_code="NETWORK_ERROR"),
            None,
            "",
            "not json at all",
            '{"category": "SELF_HARM"}',
        ],
    )
    async def test_fails_open(self, reply: object) -> None:
        """Test backend and parse failures are treated as safe."""
        stage = SafetyModerationStage(FakeBackend(verdicts=[reply]))
        verdict = await stage.classify("text")
        assert verdict.safe is True
        assert stage.reviewing is False

    async def test_disabled(self) -> None:
        """Test a disabled stage makes no backend call."""
        backend = FakeBackend()
        stage = SafetyModerationStage(backend, ModerationConfig(enabled=False))
        verdict = await stage.classify("text")
        assert verdict.safe is True
        assert backend.calls == []

    async def test_reviewing_flag(self) -> None:
        """Test the reviewing flag covers the backend call."""
        backend = FakeBackend()
        backend.moderation_gate = asyncio.Event()
        stage = SafetyModerationStage(backend)

        task = asyncio.ensure_future(stage.classify("text"))
        await asyncio.sleep(0)
        assert stage.reviewing is True

        backend.moderation_gate.set()
        await task
        assert stage.reviewing is False


class TestEscalationContact:
    """Test the escalation contact."""

    def test_invoke_uses_opener(self) -> None:
        """Test the URI is handed to the opener."""
        opened = []
        contact = EscalationContact(opener=lambda uri: opened.append(uri) or True)
        assert contact.invoke() is True
        assert opened == ["tel:988"]

    def test_invoke_reports_failure(self) -> None:
        """Test an opener that declines."""
        contact = EscalationContact(uri="tel:112", opener=lambda uri: False)
        assert contact.invoke() is False
