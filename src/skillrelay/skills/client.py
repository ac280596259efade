"""Outbound HTTP calls from the root bot to a skill."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from skillrelay.core.errors import SkillInvocationError
from skillrelay.models.activity import Activity, ChannelAccount, ConversationAccount
from skillrelay.models.skill import BotFrameworkSkill, InvocationResult
from skillrelay.skills.auth import AnonymousCredentialProvider, CredentialProvider
from skillrelay.telemetry.base import Attr, SpanKind, TelemetryProvider
from skillrelay.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("skillrelay.skills.client")

_CALLER_ID_PREFIX = "urn:botframework:aadappid:"


class SkillHttpClient:
    """Forwards activities to skill endpoints.

    The forwarded activity is re-addressed to the skill conversation and
    carries a ``relatesTo`` reference to the root conversation; everything
    else is sent as received. Calls are never retried: a forwarded user
    message is not idempotent on the skill side.

    Args:
        credential_provider: Source of bearer tokens for the call.
        client: Shared ``httpx.AsyncClient``; one is created when omitted.
        timeout: Default deadline in seconds for a forward, ``None`` for no
            deadline. Overridable per call.
        telemetry: Span and metric sink.
    """

    def __init__(
        self,
        credential_provider: CredentialProvider | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._credentials = credential_provider or AnonymousCredentialProvider()
        self._client = client or httpx.AsyncClient(timeout=None)
        self._timeout = timeout
        self._telemetry = telemetry or NoopTelemetryProvider()

    async def post_activity(
        self,
        from_bot_id: str,
        to_skill: BotFrameworkSkill,
        service_url: str,
        conversation_id: str,
        activity: Activity,
        *,
        timeout: float | None = None,
    ) -> InvocationResult:
        """POST *activity* to *to_skill* as part of skill conversation *conversation_id*.

        Args:
            from_bot_id: App ID of the calling (root) bot.
            to_skill: Target skill.
            service_url: Callback endpoint the skill uses to reach the root.
            conversation_id: Skill conversation ID issued by the ID factory.
            activity: Activity to forward.
            timeout: Deadline in seconds for this call.

        Returns:
            The skill's response when its status is 2xx.

        Raises:
            SkillInvocationError: On a non-2xx status, a transport failure,
                or an expired deadline.
        """
        outgoing = self._prepare_activity(
            from_bot_id, to_skill, service_url, conversation_id, activity
        )
        headers = await self._build_headers(from_bot_id, to_skill)
        deadline = timeout if timeout is not None else self._timeout

        with self._telemetry.span(
            SpanKind.SKILL_FORWARD,
            f"skill.forward.{to_skill.id}",
            conversation_id=activity.conversation_id,
            channel_id=activity.channel_id,
            attributes={
                Attr.SKILL_ID: to_skill.id,
                Attr.SKILL_ENDPOINT: to_skill.skill_endpoint,
                Attr.SKILL_CONVERSATION_ID: conversation_id,
                Attr.ACTIVITY_TYPE: str(activity.type),
            },
        ) as span_id:
            t0 = time.monotonic()
            try:
                async with asyncio.timeout(deadline):
                    resp = await self._client.post(
                        to_skill.skill_endpoint,
                        json=outgoing.to_wire(),
                        headers=headers,
                    )
            except TimeoutError as exc:
                raise SkillInvocationError(
                    to_skill.id,
                    to_skill.skill_endpoint,
                    body=f"deadline of {deadline}s exceeded",
                    transport=True,
                ) from exc
            except httpx.HTTPError as exc:
                raise SkillInvocationError(
                    to_skill.id,
                    to_skill.skill_endpoint,
                    body=str(exc),
                    transport=True,
                ) from exc
            finally:
                self._telemetry.record_metric(
                    "skillrelay.skill.forward_ms",
                    (time.monotonic() - t0) * 1000,
                    unit="ms",
                    attributes={Attr.SKILL_ID: to_skill.id},
                )

            result = InvocationResult(status=resp.status_code, body=self._parse_body(resp))
            self._telemetry.set_attribute(span_id, Attr.SKILL_STATUS, result.status)

            if not result.is_successful:
                raise SkillInvocationError(
                    to_skill.id,
                    to_skill.skill_endpoint,
                    status=result.status,
                    body=result.body,
                )

        logger.debug(
            "Forwarded %s to skill %s (status %d)",
            activity.type,
            to_skill.id,
            result.status,
            extra={"skill_id": to_skill.id, "skill_conversation_id": conversation_id},
        )
        return result

    @staticmethod
    def _prepare_activity(
        from_bot_id: str,
        to_skill: BotFrameworkSkill,
        service_url: str,
        conversation_id: str,
        activity: Activity,
    ) -> Activity:
        conversation = activity.conversation or ConversationAccount()
        return activity.model_copy(
            update={
                "relates_to": activity.get_conversation_reference(),
                "conversation": conversation.model_copy(update={"id": conversation_id}),
                "service_url": service_url,
                "recipient": ChannelAccount(id=to_skill.app_id, role="skill"),
                "caller_id": f"{_CALLER_ID_PREFIX}{from_bot_id}" if from_bot_id else None,
            },
            deep=True,
        )

    async def _build_headers(
        self, from_bot_id: str, to_skill: BotFrameworkSkill
    ) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if not from_bot_id and not to_skill.app_id:
            return headers
        token = await self._credentials.get_token(from_bot_id, to_skill.app_id)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _parse_body(resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    async def close(self) -> None:
        await self._client.aclose()
