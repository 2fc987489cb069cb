# src/proactive_bot/delivery.py
import logging
from dataclasses import dataclass
from typing import Optional, Union

from botbuilder.core import BotAdapter, MessageFactory, TurnContext
from botbuilder.schema import ConversationReference
from botframework.connector.auth import ClaimsIdentity, MicrosoftAppCredentials

from .dialogs import WizardDialogs
from .errors import DeliveryFailedError
from .state import ConversationData


@dataclass(frozen=True)
class TextMessage:
    text: str


@dataclass(frozen=True)
class ResumeDialog:
    name: str


Payload = Union[TextMessage, ResumeDialog]


class ProactiveMessenger:
    """Continues a stored conversation and delivers one payload into it."""

    def __init__(self, app_id: str = "", dialogs: Optional[WizardDialogs] = None):
        self.app_id = app_id
        self.dialogs = dialogs

    async def deliver(self, adapter: BotAdapter, reference: ConversationReference, payload: Payload) -> None:
        if isinstance(payload, ResumeDialog):
            if self.dialogs is None:
                raise DeliveryFailedError("dialogs are disabled for this bot")
            if not self.dialogs.has(payload.name):
                raise DeliveryFailedError(f"unknown dialog: {payload.name}")

        conversation_id = reference.conversation.id if reference.conversation else None
        logging.info("[SEND] %s -> conversation=%s", type(payload).__name__, conversation_id)

        failures = []

        async def logic(ctx: TurnContext):
            # Errors are handed back to the caller, not to the adapter's on_turn_error
            try:
                if isinstance(payload, TextMessage):
                    await ctx.send_activity(MessageFactory.text(payload.text))
                else:
                    await self._resume(ctx, payload.name)
            except Exception as e:
                failures.append(e)

        try:
            if reference.service_url:
                MicrosoftAppCredentials.trust_service_url(reference.service_url)

            if self.app_id:  # real channel (App ID/secret configured)
                await adapter.continue_conversation(reference, logic, bot_id=self.app_id)
            else:            # Emulator (no creds)
                anon = ClaimsIdentity({}, False, "anonymous")
                await adapter.continue_conversation(reference, logic, claims_identity=anon)
        except Exception as e:
            raise DeliveryFailedError(f"could not continue conversation={conversation_id}: {e}") from e
        if failures:
            raise DeliveryFailedError(
                f"could not deliver into conversation={conversation_id}: {failures[0]}"
            ) from failures[0]

        logging.info("[SEND] continue_conversation OK")

    async def _resume(self, ctx: TurnContext, name: str):
        accessors = self.dialogs.accessors
        data = await accessors.conversation_data.get(ctx, ConversationData)
        data.resumed_dialogs += 1
        await self.dialogs.begin(ctx, name)
        await accessors.save_changes(ctx)
