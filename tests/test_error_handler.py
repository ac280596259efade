"""Tests for TurnErrorHandler."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from skillrelay.bot.root_bot import LOCAL_REPLY_TEXT
from skillrelay.core.error_handler import (
    ERROR_TEXT,
    ERROR_TRACE_NAME,
    ERROR_TRACE_VALUE_TYPE,
    FIX_SOURCE_TEXT,
)
from skillrelay.core.errors import SkillInvocationError, StateStoreError, UnknownMappingError
from skillrelay.core.turn_context import TurnContext
from skillrelay.models.delegation import ACTIVE_SKILL_PROPERTY, SKILL_CONVERSATION_ID_PROPERTY
from skillrelay.models.enums import ActivityType, Channels, InputHint
from skillrelay.store.base import Storage
from skillrelay.store.memory import InMemoryStorage
from skillrelay.telemetry.base import Attr, SpanKind
from tests.conftest import RootBotHarness, SkillTransport, make_activity


async def _delegating(harness: RootBotHarness, conversation_id: str) -> str:
    await harness.send(make_activity("skill", conversation_id=conversation_id))
    state = harness.stored_state(conversation_id)
    assert state is not None
    return state[SKILL_CONVERSATION_ID_PROPERTY]


class _FailingStateDeleteStorage(InMemoryStorage):
    async def delete(self, keys: list[str]) -> None:
        if any("/conversations/" in key for key in keys):
            raise ConnectionError("delete unavailable")
        await super().delete(keys)


class TestSkillFailure:
    async def test_forward_503_recovers_and_resets(self) -> None:
        transport = SkillTransport()
        harness = RootBotHarness(transport)
        skill_conversation_id = await _delegating(harness, "C2")
        harness.sender.reset()
        transport.status = 503

        await harness.send(make_activity("next", conversation_id="C2"))

        # Generic message, then the operator trace
        assert harness.sender.texts("C2") == [ERROR_TEXT, FIX_SOURCE_TEXT]
        hints = [a.input_hint for a in harness.sender.sent if a.type == ActivityType.MESSAGE]
        assert hints == [InputHint.IGNORING_INPUT, InputHint.EXPECTING_INPUT]
        trace = harness.sender.sent[-1]
        assert trace.type == ActivityType.TRACE
        assert trace.name == ERROR_TRACE_NAME
        assert trace.value_type == ERROR_TRACE_VALUE_TYPE
        assert trace.label == "TurnError"
        assert "status is 503" in trace.value

        # endOfConversation attempted towards the skill
        end = transport.activities[-1]
        assert end["type"] == "endOfConversation"
        assert end["code"] == "rootSkillError"
        assert end["conversation"]["id"] == skill_conversation_id
        assert end["relatesTo"]["conversation"]["id"] == "C2"

        # All state for C2 is gone and the mapping is invalidated
        assert harness.stored_state("C2") is None
        with pytest.raises(UnknownMappingError):
            await harness.id_factory.get_skill_conversation_reference(skill_conversation_id)

    async def test_next_turn_handled_locally(self) -> None:
        transport = SkillTransport()
        harness = RootBotHarness(transport)
        await _delegating(harness, "C2")
        transport.status = 503
        await harness.send(make_activity("next", conversation_id="C2"))
        forwards = len(transport.requests)
        harness.sender.reset()

        await harness.send(make_activity("hello", conversation_id="C2"))

        assert harness.sender.texts("C2") == [LOCAL_REPLY_TEXT]
        assert len(transport.requests) == forwards

    async def test_failing_activation_forward_resets(self) -> None:
        transport = SkillTransport(500)
        harness = RootBotHarness(transport)

        await harness.send(make_activity("skill"))

        assert harness.sender.texts()[-2:] == [ERROR_TEXT, FIX_SOURCE_TEXT]
        assert harness.stored_state() is None
        # Only the forward and the endOfConversation attempt reached the skill
        types = [a["type"] for a in transport.activities]
        assert types == ["message", "endOfConversation"]

    async def test_trace_not_delivered_outside_emulator(self) -> None:
        harness = RootBotHarness()
        context = TurnContext(harness.adapter, make_activity(channel_id=Channels.MSTEAMS))

        await harness.error_handler(context, RuntimeError("boom"))

        assert [a.type for a in harness.sender.sent] == [ActivityType.MESSAGE] * 2

    async def test_recovery_span(self) -> None:
        harness = RootBotHarness()
        context = TurnContext(harness.adapter, make_activity())

        await harness.error_handler(context, RuntimeError("boom"))

        span = harness.telemetry.get_spans(SpanKind.ERROR_RECOVERY)[0]
        assert span.attributes[Attr.ERROR_TYPE] == "RuntimeError"
        assert span.status == "ok"


class TestIsolatedSteps:
    async def test_idle_conversation_sends_no_end_of_conversation(self) -> None:
        transport = SkillTransport()
        harness = RootBotHarness(transport)
        context = TurnContext(harness.adapter, make_activity())

        await harness.error_handler(context, RuntimeError("boom"))

        assert transport.requests == []
        assert harness.sender.texts() == [ERROR_TEXT, FIX_SOURCE_TEXT]

    async def test_cleanup_runs_when_messaging_fails(self) -> None:
        transport = SkillTransport()
        harness = RootBotHarness(transport)
        await _delegating(harness, "C1")
        harness.sender.send_activities = AsyncMock(  # type: ignore[method-assign]
            side_effect=ConnectionError("channel down")
        )
        context = TurnContext(harness.adapter, make_activity())

        await harness.error_handler(context, RuntimeError("boom"))

        assert transport.activities[-1]["type"] == "endOfConversation"
        assert harness.stored_state() is None

    async def test_cleanup_runs_when_end_of_conversation_fails(self) -> None:
        transport = SkillTransport()
        harness = RootBotHarness(transport)
        skill_conversation_id = await _delegating(harness, "C1")
        transport.status = 500
        context = TurnContext(harness.adapter, make_activity())

        await harness.error_handler(context, SkillInvocationError("EchoSkillBot", "x", 500))

        assert harness.stored_state() is None
        with pytest.raises(UnknownMappingError):
            await harness.id_factory.get_skill_conversation_reference(skill_conversation_id)

    async def test_mapping_cleanup_runs_when_state_delete_fails(self) -> None:
        harness = RootBotHarness(storage=_FailingStateDeleteStorage())
        skill_conversation_id = await _delegating(harness, "C1")
        context = TurnContext(harness.adapter, make_activity())

        await harness.error_handler(context, RuntimeError("boom"))

        with pytest.raises(UnknownMappingError):
            await harness.id_factory.get_skill_conversation_reference(skill_conversation_id)

    async def test_never_raises(self) -> None:
        harness = RootBotHarness()
        broken = AsyncMock(spec=Storage)
        broken.read.side_effect = ConnectionError("db down")
        broken.delete.side_effect = ConnectionError("db down")
        harness.error_handler._conversation_state._storage = broken
        harness.sender.send_activities = AsyncMock(  # type: ignore[method-assign]
            side_effect=ConnectionError("channel down")
        )
        context = TurnContext(harness.adapter, make_activity())

        await harness.error_handler(context, RuntimeError("boom"))

    async def test_half_written_delegation_still_notifies_skill(self) -> None:
        transport = SkillTransport()
        harness = RootBotHarness(transport)
        context = TurnContext(harness.adapter, make_activity())
        await harness.conversation_state.set(context, ACTIVE_SKILL_PROPERTY, "EchoSkillBot")
        await harness.conversation_state.save_changes(context)

        await harness.error_handler(context, StateStoreError("Inconsistent delegation state"))

        end: dict[str, Any] = transport.activities[-1]
        assert end["type"] == "endOfConversation"
        assert end["conversation"]["id"]
        assert harness.stored_state() is None

    async def test_unregistered_active_skill_skipped(self) -> None:
        transport = SkillTransport()
        harness = RootBotHarness(transport)
        context = TurnContext(harness.adapter, make_activity())
        await harness.conversation_state.set(context, ACTIVE_SKILL_PROPERTY, "GoneSkill")
        await harness.conversation_state.set(context, SKILL_CONVERSATION_ID_PROPERTY, "abc")
        await harness.conversation_state.save_changes(context)

        await harness.error_handler(context, RuntimeError("boom"))

        assert transport.requests == []
        assert harness.stored_state() is None
