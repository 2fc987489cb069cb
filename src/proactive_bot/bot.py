# src/proactive_bot/bot.py
import logging
from typing import List, Optional

from botbuilder.core import ActivityHandler, MessageFactory, TurnContext
from botbuilder.schema import ChannelAccount

from .delivery import ProactiveMessenger, ResumeDialog, TextMessage
from .dialogs import EXAMPLE_WATERFALL_DIALOG, WizardDialogs
from .state import Accessors, UserProfile
from .storage import FileReferenceStore

SET_RECEIVER = "1"
SEND_MESSAGE = "2"
START_DIALOG = "3"

DIALOG_GREETING = [
    "Welcome",
    f'Send "{SET_RECEIVER}" to set this conversation as the receiving conversation.',
    f'Send "{SEND_MESSAGE}[your message]" to send a message to the receiving conversation.',
    f'Send "{START_DIALOG}" to start a dialog in the receiving conversation.',
]

RELAY_GREETING = [
    "Welcome",
    f'Send "{SET_RECEIVER}" to set this conversation as the receiving conversation.',
    "Anything else you send is relayed to the receiving conversation.",
]


class ProactiveBot(ActivityHandler):
    def __init__(
        self,
        store: FileReferenceStore,
        messenger: ProactiveMessenger,
        accessors: Accessors,
        dialogs: Optional[WizardDialogs] = None,
        with_dialog: bool = True,
    ):
        if with_dialog and dialogs is None:
            raise ValueError("with_dialog requires dialogs")
        self.store = store
        self.messenger = messenger
        self.accessors = accessors
        self.dialogs = dialogs
        self.with_dialog = with_dialog

    @property
    def greeting(self) -> List[str]:
        return DIALOG_GREETING if self.with_dialog else RELAY_GREETING

    async def on_turn(self, turn_context: TurnContext):
        await super().on_turn(turn_context)
        await self.accessors.save_changes(turn_context)

    async def on_members_added_activity(self, members_added: List[ChannelAccount], turn_context: TurnContext):
        # Greet once per update, however many people joined
        bot_id = turn_context.activity.recipient.id
        if any(member.id != bot_id for member in members_added):
            for line in self.greeting:
                await turn_context.send_activity(line)

    async def on_message_activity(self, turn_context: TurnContext):
        text = (turn_context.activity.text or "").strip()
        await self._remember_sender(turn_context)

        if self.with_dialog and await self.dialogs.continue_active(turn_context):
            return

        if text == SET_RECEIVER:
            await self.store.remember(turn_context)
            return await turn_context.send_activity(
                MessageFactory.text("This conversation will receive proactive messages.")
            )

        if not self.with_dialog:
            if text:
                await self._deliver(turn_context, TextMessage(text))
            return

        if text.startswith(SEND_MESSAGE) and len(text) > len(SEND_MESSAGE):
            return await self._deliver(turn_context, TextMessage(text[len(SEND_MESSAGE):]))

        if text == START_DIALOG:
            return await self._deliver(turn_context, ResumeDialog(EXAMPLE_WATERFALL_DIALOG))

        logging.info("[CMD] ignored %r", text)

    async def _deliver(self, turn_context: TurnContext, payload):
        reference = await self.store.load()
        await self.messenger.deliver(turn_context.adapter, reference, payload)

    async def _remember_sender(self, turn_context: TurnContext):
        sender = turn_context.activity.from_property
        if sender is None or not sender.name:
            return
        profile = await self.accessors.user_profile.get(turn_context, UserProfile)
        profile.name = sender.name
