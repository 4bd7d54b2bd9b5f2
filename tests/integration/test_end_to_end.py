import json
from pathlib import Path

import pytest

from conftest import SELF_HARM_VERDICT, FakeBackend
from venting_vault.app import create_app
from venting_vault.conversation import MessageKind, Sender
from venting_vault.core.audio_io import MockAudioSubsystem
from venting_vault.core.config import Config
from venting_vault.core.persistence import JSONFileKeyValueStore
from venting_vault.services import ServiceErrorMessages


def _stored_messages(config: Config) -> list:
    document = json.loads(Path(config.memory.storage_path).read_text())
    return json.loads(document[config.memory.storage_key])


@pytest.mark.asyncio
@pytest.mark.integration
async def test_text_turn_persists_across_sessions(config: Config, tmp_path: Path):
    backend = FakeBackend(replies=["Rest is allowed."])
    app = create_app(config, backend=backend, audio=MockAudioSubsystem(tmp_path))
    await app.start()

    await app.orchestrator.submit_text("I feel exhausted")
    await app.orchestrator.wait_for_moderation()
    await app.close()

    stored = _stored_messages(config)
    assert len(stored) == 3
    assert [m["sender"] for m in stored] == ["assistant", "user", "assistant"]
    assert stored[0]["text"] == ServiceErrorMessages.WELCOME

    # A second session restores the same log without re-seeding
    restarted = create_app(
        config,
        backend=FakeBackend(),
        store=JSONFileKeyValueStore(config.memory.storage_path),
        audio=MockAudioSubsystem(tmp_path),
    )
    await restarted.start()
    assert [m.text for m in restarted.orchestrator.log] == [
        ServiceErrorMessages.WELCOME,
        "I feel exhausted",
        "Rest is allowed.",
    ]
    await restarted.close()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_voice_turn_with_crisis(config: Config, tmp_path: Path):
    backend = FakeBackend(verdicts=[SELF_HARM_VERDICT])
    audio = MockAudioSubsystem(tmp_path / "recordings")
    app = create_app(config, backend=backend, audio=audio)
    await app.start()

    clock = {"now": 10.0}
    app.capture.clock = lambda: clock["now"]
    await app.capture.start()
    clock["now"] += 5
    result = await app.capture.send()
    await app.orchestrator.wait_for_moderation()

    log = app.orchestrator.log
    assert log[1].kind == MessageKind.VOICE
    assert log[1].duration_seconds == 5
    assert log[2].sender == Sender.ASSISTANT
    assert log[3].kind == MessageKind.CRISIS
    assert log[3].turn_id == result.turn_id

    assert app.playback.play(log[1].voice_artifact_ref, log[1].id) is True
    await app.close()
    assert audio.players[0].released
    assert audio.recorders[0].is_released
