"""Recovery for turns that fail with an unhandled exception."""

from __future__ import annotations

import logging

from skillrelay.core.turn_context import TurnContext
from skillrelay.models.activity import Activity
from skillrelay.models.delegation import ACTIVE_SKILL_PROPERTY, SKILL_CONVERSATION_ID_PROPERTY
from skillrelay.models.enums import EndOfConversationCode, InputHint
from skillrelay.models.skill import SkillConversationIdFactoryOptions
from skillrelay.skills.client import SkillHttpClient
from skillrelay.skills.config import RootBotConfig
from skillrelay.skills.conversation_id import SkillConversationIdFactory
from skillrelay.skills.registry import SkillRegistry
from skillrelay.store.conversation_state import ConversationState
from skillrelay.telemetry.base import Attr, SpanKind, TelemetryProvider
from skillrelay.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("skillrelay.error_handler")

ERROR_TEXT = "The bot encountered an error or bug."
FIX_SOURCE_TEXT = "To continue to run this bot, please fix the bot source code."
ERROR_TRACE_NAME = "OnTurnError Trace"
ERROR_TRACE_VALUE_TYPE = "https://www.botframework.com/schemas/error"


class TurnErrorHandler:
    """``on_turn_error`` callback for :class:`~skillrelay.core.adapter.RootAdapter`.

    Runs three steps in order, each isolated so a failure in one never
    prevents the next:

    1. Tell the user something went wrong (generic two-part message) and
       emit a trace with the error detail for operators.
    2. If a skill is active, send it ``endOfConversation`` with code
       ``rootSkillError`` so it can release its own resources.
    3. Delete the conversation's entire state record and invalidate its
       skill conversation ID, leaving the conversation Idle.

    The handler never raises.
    """

    def __init__(
        self,
        conversation_state: ConversationState,
        registry: SkillRegistry,
        skill_client: SkillHttpClient,
        conversation_id_factory: SkillConversationIdFactory,
        bot_config: RootBotConfig,
        *,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._conversation_state = conversation_state
        self._registry = registry
        self._skill_client = skill_client
        self._conversation_id_factory = conversation_id_factory
        self._bot_config = bot_config
        self._telemetry = telemetry or NoopTelemetryProvider()

    async def __call__(self, context: TurnContext, error: Exception) -> None:
        logger.info(
            "[on_turn_error] recovering from %s",
            type(error).__name__,
            extra={"conversation_id": context.activity.conversation_id},
        )
        with self._telemetry.span(
            SpanKind.ERROR_RECOVERY,
            "turn.error_recovery",
            conversation_id=context.activity.conversation_id,
            channel_id=context.activity.channel_id,
            attributes={Attr.ERROR_TYPE: type(error).__name__},
        ):
            await self._send_error_message(context, error)
            skill_conversation_id = await self._end_skill_conversation(context)
            await self._clear_conversation_state(context, skill_conversation_id)

    async def _send_error_message(self, context: TurnContext, error: Exception) -> None:
        try:
            await context.send_activity(
                Activity.message(ERROR_TEXT, input_hint=InputHint.IGNORING_INPUT)
            )
            await context.send_activity(
                Activity.message(FIX_SOURCE_TEXT, input_hint=InputHint.EXPECTING_INPUT)
            )
            await context.send_trace_activity(
                ERROR_TRACE_NAME,
                f"{error}",
                value_type=ERROR_TRACE_VALUE_TYPE,
                label="TurnError",
            )
        except Exception:
            logger.exception("Exception caught in send_error_message")

    async def _end_skill_conversation(self, context: TurnContext) -> str | None:
        """Notify the active skill, if any. Returns the skill conversation ID used."""
        try:
            active_skill_id = await self._conversation_state.get(context, ACTIVE_SKILL_PROPERTY)
            skill_conversation_id = await self._conversation_state.get(
                context, SKILL_CONVERSATION_ID_PROPERTY
            )
        except Exception:
            logger.exception("Could not read delegation state during error recovery")
            return None

        if not active_skill_id:
            return skill_conversation_id

        skill = self._registry.find(active_skill_id)
        if skill is None:
            logger.warning(
                "Active skill %s is no longer registered; skipping endOfConversation",
                active_skill_id,
            )
            return skill_conversation_id

        end_of_conversation = Activity.end_of_conversation(
            EndOfConversationCode.ROOT_SKILL_ERROR
        ).apply_conversation_reference(
            context.activity.get_conversation_reference(), is_incoming=True
        )

        try:
            await self._conversation_state.save_changes(context, force=True)
        except Exception:
            logger.exception("Could not save state before notifying skill %s", skill.id)

        try:
            if not skill_conversation_id:
                skill_conversation_id = (
                    await self._conversation_id_factory.create_skill_conversation_id(
                        SkillConversationIdFactoryOptions(
                            from_bot_oauth_scope=self._bot_config.oauth_scope,
                            from_bot_id=self._bot_config.app_id,
                            activity=end_of_conversation,
                            bot_framework_skill=skill,
                        )
                    )
                )
            await self._skill_client.post_activity(
                self._bot_config.app_id,
                skill,
                self._registry.skill_host_endpoint,
                skill_conversation_id,
                end_of_conversation,
            )
        except Exception:
            logger.exception("Exception caught on attempting to send EndOfConversation")
        return skill_conversation_id

    async def _clear_conversation_state(
        self, context: TurnContext, skill_conversation_id: str | None
    ) -> None:
        try:
            await self._conversation_state.delete(context)
        except Exception:
            logger.exception("Exception caught on attempting to delete ConversationState")

        if skill_conversation_id:
            try:
                await self._conversation_id_factory.delete_conversation_reference(
                    skill_conversation_id
                )
            except Exception:
                logger.exception(
                    "Could not invalidate skill conversation id %s", skill_conversation_id
                )
