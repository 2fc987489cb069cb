import pytest
from botbuilder.core import ConversationState, MemoryStorage, UserState
from botbuilder.core.adapters import TestAdapter as BotTestAdapter
from botbuilder.schema import (
    Activity,
    ActivityTypes,
    ChannelAccount,
    ConversationAccount,
    ConversationReference,
)

from proactive_bot.bot import ProactiveBot
from proactive_bot.delivery import ProactiveMessenger
from proactive_bot.dialogs import WizardDialogs
from proactive_bot.state import Accessors
from proactive_bot.storage import FileReferenceStore


def make_reference(conversation_id: str = "convo-a", user_id: str = "User1") -> ConversationReference:
    return ConversationReference(
        channel_id="test",
        service_url="https://test.com",
        conversation=ConversationAccount(id=conversation_id),
        user=ChannelAccount(id=user_id, name="user"),
        bot=ChannelAccount(id="bot", name="Bot"),
    )


def message(text: str, conversation_id: str = "convo-a") -> Activity:
    return Activity(
        type=ActivityTypes.message,
        text=text,
        conversation=ConversationAccount(id=conversation_id),
    )


def sent_to(adapter, conversation_id: str):
    """Texts the bot sent into one conversation, in order."""
    return [
        activity.text
        for activity in adapter.activity_buffer
        if activity.conversation is not None and activity.conversation.id == conversation_id
    ]


class UnreachableAdapter(BotTestAdapter):
    """Test adapter whose outgoing sends fail, like an expired conversation."""

    async def send_activities(self, context, activities):
        raise RuntimeError("conversation expired")


@pytest.fixture
def store(tmp_path):
    return FileReferenceStore(str(tmp_path / "ConversationReference.json"))


@pytest.fixture
def adapter():
    return BotTestAdapter(template_or_conversation=make_reference())


@pytest.fixture
def make_bot(store, adapter):
    """Build a bot of either variant and hook it to the test adapter."""

    def _make(with_dialog: bool = True) -> ProactiveBot:
        storage = MemoryStorage()
        accessors = Accessors(ConversationState(storage), UserState(storage))
        dialogs = WizardDialogs(accessors) if with_dialog else None
        messenger = ProactiveMessenger("", dialogs)
        bot = ProactiveBot(store, messenger, accessors, dialogs, with_dialog=with_dialog)
        adapter.logic = bot.on_turn
        return bot

    return _make
