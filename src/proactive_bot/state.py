# src/proactive_bot/state.py
from dataclasses import dataclass
from typing import Optional

from botbuilder.core import ConversationState, UserState


@dataclass
class UserProfile:
    name: Optional[str] = None
    age: Optional[int] = None


@dataclass
class WizardAnswers:
    """Answers collected by the example wizard."""
    choice: Optional[str] = None
    text: Optional[str] = None
    number: Optional[int] = None


@dataclass
class ConversationData:
    resumed_dialogs: int = 0


class Accessors:
    USER_PROFILE = "UserProfile"
    WIZARD_ANSWERS = "WizardAnswers"
    CONVERSATION_DATA = "ConversationData"
    DIALOG_STATE = "DialogState"

    def __init__(self, conversation_state: ConversationState, user_state: UserState):
        if conversation_state is None:
            raise TypeError("conversation_state is required")
        if user_state is None:
            raise TypeError("user_state is required")
        self.conversation_state = conversation_state
        self.user_state = user_state

        self.user_profile = user_state.create_property(self.USER_PROFILE)
        self.wizard_answers = user_state.create_property(self.WIZARD_ANSWERS)
        self.conversation_data = conversation_state.create_property(self.CONVERSATION_DATA)
        self.dialog_state = conversation_state.create_property(self.DIALOG_STATE)

    async def save_changes(self, turn_context) -> None:
        await self.conversation_state.save_changes(turn_context)
        await self.user_state.save_changes(turn_context)
