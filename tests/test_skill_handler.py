"""Tests for SkillHandler: activities a skill sends back to the root."""

from __future__ import annotations

from typing import Any

import pytest

from skillrelay.bot.root_bot import BACK_IN_ROOT_TEXT, CONNECTING_TEXT, LOCAL_REPLY_TEXT
from skillrelay.core.errors import UnknownMappingError
from skillrelay.models.delegation import ACTIVE_SKILL_PROPERTY, SKILL_CONVERSATION_ID_PROPERTY
from skillrelay.telemetry.base import Attr, SpanKind
from tests.conftest import RootBotHarness, SkillTransport, make_activity


def _skill_message(text: str) -> dict[str, Any]:
    return {"type": "message", "text": text, "from": {"id": "echo-skill-app-id"}}


def _skill_end_of_conversation(code: str = "completedSuccessfully") -> dict[str, Any]:
    return {"type": "endOfConversation", "code": code, "from": {"id": "echo-skill-app-id"}}


async def _activate(harness: RootBotHarness) -> str:
    await harness.send(make_activity("skill"))
    state = harness.stored_state()
    assert state is not None
    return state[SKILL_CONVERSATION_ID_PROPERTY]


class TestRelay:
    async def test_skill_message_relayed_to_user(self) -> None:
        harness = RootBotHarness()
        skill_conversation_id = await _activate(harness)

        response = await harness.skill_handler.on_send_to_conversation(
            skill_conversation_id, _skill_message("Echo: hi")
        )

        assert response.id
        assert harness.sender.texts("C1")[-1] == "Echo: hi"
        relayed = harness.sender.sent[-1]
        assert relayed.channel_id == "emulator"
        assert relayed.recipient is not None
        assert relayed.recipient.id == "user-1"

    async def test_reply_to_activity_sets_reply_id(self) -> None:
        harness = RootBotHarness()
        skill_conversation_id = await _activate(harness)

        await harness.skill_handler.on_reply_to_activity(
            skill_conversation_id, "in-42", _skill_message("Echo: hi")
        )

        assert harness.sender.sent[-1].reply_to_id == "in-42"

    async def test_relay_does_not_change_delegation(self) -> None:
        harness = RootBotHarness()
        skill_conversation_id = await _activate(harness)
        before = harness.stored_state()

        await harness.skill_handler.on_send_to_conversation(
            skill_conversation_id, _skill_message("Echo: hi")
        )

        assert harness.stored_state() == before

    async def test_unknown_id_rejected_without_side_effects(self) -> None:
        harness = RootBotHarness()
        await _activate(harness)
        before = harness.stored_state()
        sent = len(harness.sender.sent)

        with pytest.raises(UnknownMappingError):
            await harness.skill_handler.on_send_to_conversation(
                "forged-id", _skill_end_of_conversation()
            )

        assert harness.stored_state() == before
        assert len(harness.sender.sent) == sent

    async def test_conversation_state_key_rejected(self) -> None:
        harness = RootBotHarness()
        await harness.send(make_activity("hi"))
        assert harness.stored_state() is not None
        sent = len(harness.sender.sent)

        with pytest.raises(UnknownMappingError):
            await harness.skill_handler.on_send_to_conversation(
                "emulator/conversations/C1", _skill_message("Echo: hi")
            )

        assert harness.stored_state() == {}
        assert len(harness.sender.sent) == sent
        assert harness.telemetry.get_spans(SpanKind.SKILL_CALLBACK) == []

    async def test_callback_span(self) -> None:
        harness = RootBotHarness()
        skill_conversation_id = await _activate(harness)

        await harness.skill_handler.on_send_to_conversation(
            skill_conversation_id, _skill_message("Echo: hi")
        )

        span = harness.telemetry.get_spans(SpanKind.SKILL_CALLBACK)[0]
        assert span.conversation_id == "C1"
        assert span.attributes[Attr.SKILL_ID] == "EchoSkillBot"
        assert span.attributes[Attr.SKILL_CONVERSATION_ID] == skill_conversation_id


class TestEndOfConversationCallback:
    async def test_skill_ends_conversation(self) -> None:
        harness = RootBotHarness()
        skill_conversation_id = await _activate(harness)
        harness.sender.reset()

        await harness.skill_handler.on_send_to_conversation(
            skill_conversation_id, _skill_end_of_conversation()
        )

        state = harness.stored_state()
        assert state is not None
        assert ACTIVE_SKILL_PROPERTY not in state
        assert harness.sender.texts("C1") == [
            "Received endOfConversation.\n\nCode: completedSuccessfully",
            BACK_IN_ROOT_TEXT,
        ]
        with pytest.raises(UnknownMappingError):
            await harness.id_factory.get_skill_conversation_reference(skill_conversation_id)

    async def test_stale_id_rejected_after_termination(self) -> None:
        harness = RootBotHarness()
        skill_conversation_id = await _activate(harness)
        await harness.skill_handler.on_send_to_conversation(
            skill_conversation_id, _skill_end_of_conversation()
        )

        with pytest.raises(UnknownMappingError):
            await harness.skill_handler.on_send_to_conversation(
                skill_conversation_id, _skill_message("late")
            )

    async def test_end_during_activation_forward(self) -> None:
        """The skill finishes before the forward that activated it returns."""

        async def _finish_immediately(activity: dict[str, Any]) -> None:
            await harness.skill_handler.on_send_to_conversation(
                activity["conversation"]["id"], _skill_end_of_conversation()
            )

        harness = RootBotHarness(SkillTransport(on_request=_finish_immediately))

        await harness.send(make_activity("skill"))

        state = harness.stored_state()
        assert state is not None
        assert ACTIVE_SKILL_PROPERTY not in state
        assert SKILL_CONVERSATION_ID_PROPERTY not in state
        assert harness.sender.texts() == [
            CONNECTING_TEXT,
            "Received endOfConversation.\n\nCode: completedSuccessfully",
            BACK_IN_ROOT_TEXT,
        ]

        harness.transport.on_request = None  # type: ignore[attr-defined]
        harness.sender.reset()
        await harness.send(make_activity("hello"))
        assert harness.sender.texts() == [LOCAL_REPLY_TEXT]

    async def test_end_during_delegated_forward(self) -> None:
        harness = RootBotHarness()
        await _activate(harness)

        async def _finish(activity: dict[str, Any]) -> None:
            await harness.skill_handler.on_send_to_conversation(
                activity["conversation"]["id"], _skill_end_of_conversation("userCancelled")
            )

        harness.transport.on_request = _finish  # type: ignore[attr-defined]
        await harness.send(make_activity("cancel"))

        state = harness.stored_state()
        assert state is not None
        assert ACTIVE_SKILL_PROPERTY not in state

    async def test_event_callback_runs_bot_turn(self) -> None:
        harness = RootBotHarness()
        skill_conversation_id = await _activate(harness)
        requests = len(harness.transport.requests)

        await harness.skill_handler.on_send_to_conversation(
            skill_conversation_id, {"type": "event", "name": "progress"}
        )

        # The event runs as a root turn; while delegating that forwards it to the skill
        assert len(harness.transport.requests) == requests + 1
        assert harness.transport.activities[-1]["name"] == "progress"
