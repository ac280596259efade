"""Root bot routing example: delegate a conversation to a skill and back.

Runs entirely in-process. The "skill" is an httpx mock transport that echoes
the user's message back through the root's skill handler, and ends the
conversation when the user says "stop".

    python examples/root_bot_skill_routing.py
"""

from __future__ import annotations

import asyncio
import json
import logging

import httpx

from skillrelay import (
    Activity,
    ChannelAccount,
    ConversationAccount,
    ConversationState,
    InMemoryStorage,
    MockActivitySender,
    RootAdapter,
    RootBot,
    RootBotConfig,
    SkillHandler,
    SkillHttpClient,
    SkillRegistry,
    SkillsConfiguration,
    StorageSkillConversationIdFactory,
    TurnErrorHandler,
)

SETTINGS = {
    "SkillHostEndpoint": "http://localhost:3978/api/skills/",
    "BotFrameworkSkills": [
        {"Id": "EchoSkillBot", "AppId": "", "SkillEndpoint": "http://localhost:39783/api/messages"}
    ],
}


def user_message(text: str) -> Activity:
    return Activity(
        type="message",
        channel_id="emulator",
        service_url="http://localhost:3978/",
        from_property=ChannelAccount(id="user-1", name="User"),
        recipient=ChannelAccount(id="root-bot", name="Root"),
        conversation=ConversationAccount(id="demo-conversation"),
        text=text,
    )


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    storage = InMemoryStorage()
    registry = SkillRegistry(SkillsConfiguration.from_settings(SETTINGS))
    bot_config = RootBotConfig.from_settings({})
    conversation_state = ConversationState(storage)
    id_factory = StorageSkillConversationIdFactory(storage)
    sender = MockActivitySender()

    skill_handler: SkillHandler | None = None

    async def echo_skill(request: httpx.Request) -> httpx.Response:
        activity = json.loads(request.content)
        skill_conversation_id = activity["conversation"]["id"]
        assert skill_handler is not None
        if activity.get("text", "").strip().lower() == "stop":
            reply = {"type": "endOfConversation", "code": "completedSuccessfully"}
        else:
            reply = {"type": "message", "text": f"Echo (skill): {activity.get('text')}"}
        await skill_handler.on_send_to_conversation(skill_conversation_id, reply)
        return httpx.Response(200, request=request)

    skill_client = SkillHttpClient(
        client=httpx.AsyncClient(transport=httpx.MockTransport(echo_skill))
    )
    bot = RootBot(conversation_state, registry, skill_client, id_factory, bot_config)
    adapter = RootAdapter(
        sender,
        on_turn_error=TurnErrorHandler(
            conversation_state, registry, skill_client, id_factory, bot_config
        ),
    )
    skill_handler = SkillHandler(adapter, bot, id_factory)

    for text in ["hi", "let's use the skill", "hello skill", "stop", "are you back?"]:
        sender.reset()
        await adapter.process_activity(user_message(text), bot.on_turn)
        print(f"User: {text}")
        for reply in sender.texts():
            print(f"  Bot: {reply}")

    await adapter.close()
    await skill_client.close()


if __name__ == "__main__":
    asyncio.run(main())
