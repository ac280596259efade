"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

import httpx
import pytest

from skillrelay.bot.root_bot import RootBot
from skillrelay.bot.selection import SkillSelector
from skillrelay.core.adapter import RootAdapter
from skillrelay.core.error_handler import TurnErrorHandler
from skillrelay.core.sender import MockActivitySender
from skillrelay.core.turn_context import TurnContext
from skillrelay.models.activity import Activity, ChannelAccount, ConversationAccount
from skillrelay.models.enums import ActivityType, Channels
from skillrelay.skills.client import SkillHttpClient
from skillrelay.skills.config import RootBotConfig, SkillsConfiguration
from skillrelay.skills.conversation_id import StorageSkillConversationIdFactory
from skillrelay.skills.handler import SkillHandler
from skillrelay.skills.registry import SkillRegistry
from skillrelay.store.conversation_state import ConversationState
from skillrelay.store.memory import InMemoryStorage
from skillrelay.telemetry.mock import MockTelemetryProvider

SKILL_HOST_ENDPOINT = "http://localhost:3978/api/skills/"
ECHO_SKILL_ENDPOINT = "http://localhost:39783/api/messages"
ECHO_SKILL_APP_ID = "echo-skill-app-id"


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

    Replaces ``await asyncio.sleep(0.05)`` patterns with zero-delay
    event loop yields::

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


def make_activity(
    text: str | None = "hello",
    conversation_id: str = "C1",
    channel_id: str = Channels.EMULATOR,
    activity_type: str = ActivityType.MESSAGE,
    **kwargs: Any,
) -> Activity:
    return Activity(
        type=activity_type,
        id=kwargs.pop("id", "act-1"),
        channel_id=channel_id,
        service_url="https://channel.example.com/",
        from_property=ChannelAccount(id="user-1", name="User"),
        recipient=ChannelAccount(id="root-bot", name="Root"),
        conversation=ConversationAccount(id=conversation_id),
        text=text,
        **kwargs,
    )


def make_end_of_conversation(
    code: str = "completedSuccessfully",
    text: str | None = None,
    conversation_id: str = "C1",
    **kwargs: Any,
) -> Activity:
    return make_activity(
        text=text,
        conversation_id=conversation_id,
        activity_type=ActivityType.END_OF_CONVERSATION,
        code=code,
        **kwargs,
    )


def make_skills_config(**skills: str) -> SkillsConfiguration:
    """Build a configuration; keyword arguments map skill id to endpoint."""
    skills = skills or {"EchoSkillBot": ECHO_SKILL_ENDPOINT}
    return SkillsConfiguration.from_settings(
        {
            "SkillHostEndpoint": SKILL_HOST_ENDPOINT,
            "BotFrameworkSkills": [
                {"Id": skill_id, "AppId": ECHO_SKILL_APP_ID, "SkillEndpoint": endpoint}
                for skill_id, endpoint in skills.items()
            ],
        }
    )


class SkillTransport(httpx.AsyncBaseTransport):
    """Plays the remote skill: records requests and answers with a fixed status.

    ``on_request`` runs before the response is returned, which lets a test
    simulate a skill calling back into the root while the forward is in flight.
    """

    def __init__(
        self,
        status: int = 200,
        body: Any = None,
        on_request: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
    ) -> None:
        self.status = status
        self.body = body
        self.on_request = on_request
        self.requests: list[httpx.Request] = []

    @property
    def activities(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            await self.on_request(json.loads(request.content))
        if self.body is None:
            return httpx.Response(self.status, request=request)
        if isinstance(self.body, str):
            return httpx.Response(self.status, text=self.body, request=request)
        return httpx.Response(self.status, json=self.body, request=request)


class FailingTransport(httpx.AsyncBaseTransport):
    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)


class RootBotHarness:
    """Wires a RootBot, its adapter and error handler around in-memory backends."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        *,
        storage: InMemoryStorage | None = None,
        registry: SkillRegistry | None = None,
        bot_config: RootBotConfig | None = None,
        selector: SkillSelector | None = None,
    ) -> None:
        self.transport = transport or SkillTransport()
        self.storage = storage or InMemoryStorage()
        self.telemetry = MockTelemetryProvider()
        self.sender = MockActivitySender()
        self.registry = registry or SkillRegistry(make_skills_config())
        self.bot_config = bot_config or RootBotConfig()
        self.conversation_state = ConversationState(self.storage, telemetry=self.telemetry)
        self.id_factory = StorageSkillConversationIdFactory(self.storage)
        self.skill_client = SkillHttpClient(
            client=httpx.AsyncClient(transport=self.transport),
            telemetry=self.telemetry,
        )
        self.bot = RootBot(
            self.conversation_state,
            self.registry,
            self.skill_client,
            self.id_factory,
            self.bot_config,
            selector=selector,
        )
        self.error_handler = TurnErrorHandler(
            self.conversation_state,
            self.registry,
            self.skill_client,
            self.id_factory,
            self.bot_config,
            telemetry=self.telemetry,
        )
        self.adapter = RootAdapter(
            self.sender,
            telemetry=self.telemetry,
            on_turn_error=self.error_handler,
        )
        self.skill_handler = SkillHandler(self.adapter, self.bot, self.id_factory)

    async def send(self, activity: Activity) -> None:
        await self.adapter.process_activity(activity, self.bot.on_turn)

    def stored_state(self, conversation_id: str = "C1") -> dict[str, Any] | None:
        item = self.storage._items.get(f"{Channels.EMULATOR}/conversations/{conversation_id}")
        if item is None:
            return None
        return {k: v for k, v in item.items() if k != "e_tag"}

    async def close(self) -> None:
        await self.adapter.close()
        await self.skill_client.close()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def conversation_state(storage: InMemoryStorage) -> ConversationState:
    return ConversationState(storage)


@pytest.fixture
def sender() -> MockActivitySender:
    return MockActivitySender()


@pytest.fixture
def adapter(sender: MockActivitySender) -> RootAdapter:
    return RootAdapter(sender)


@pytest.fixture
def turn_context(adapter: RootAdapter) -> TurnContext:
    return TurnContext(adapter, make_activity())


@pytest.fixture
def registry() -> SkillRegistry:
    return SkillRegistry(make_skills_config())
