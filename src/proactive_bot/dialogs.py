# src/proactive_bot/dialogs.py
import logging
from enum import Enum
from typing import List

from botbuilder.core import MessageFactory, TurnContext
from botbuilder.dialogs import (
    DialogSet,
    DialogTurnResult,
    WaterfallDialog,
    WaterfallStepContext,
)
from botbuilder.dialogs.choices import Choice
from botbuilder.dialogs.prompts import (
    ChoicePrompt,
    NumberPrompt,
    PromptOptions,
    PromptValidatorContext,
    TextPrompt,
)

from .state import Accessors, WizardAnswers

EXAMPLE_WATERFALL_DIALOG = "exampleWaterfallDialog"
FIRST_PROMPT = "firstPrompt"
SECOND_PROMPT = "secondPrompt"
THIRD_PROMPT = "thirdPrompt"


class WizardStep(Enum):
    """Steps of the example wizard, in the order they run."""
    CHOICE = "choice"
    TEXT = "text"
    NUMBER = "number"
    SUMMARY = "summary"


async def _accept_text(prompt_context: PromptValidatorContext) -> bool:
    return True


async def _accept_number(prompt_context: PromptValidatorContext) -> bool:
    return prompt_context.recognized.succeeded


class WizardDialogs:
    """
    Dialog capability used by the bot: start a named dialog, feed the active
    one, inspect the stack. Dialog state lives in conversation state, so the
    same instance serves every conversation.
    """

    def __init__(self, accessors: Accessors):
        self.accessors = accessors
        self.dialog_set = DialogSet(accessors.dialog_state)
        self.dialog_set.add(ChoicePrompt(FIRST_PROMPT))
        self.dialog_set.add(TextPrompt(SECOND_PROMPT, _accept_text))
        self.dialog_set.add(NumberPrompt(THIRD_PROMPT, _accept_number))

        steps = {
            WizardStep.CHOICE: self._choice_step,
            WizardStep.TEXT: self._text_step,
            WizardStep.NUMBER: self._number_step,
            WizardStep.SUMMARY: self._summary_step,
        }
        self.dialog_set.add(WaterfallDialog(EXAMPLE_WATERFALL_DIALOG, [steps[s] for s in WizardStep]))
        self._names = {EXAMPLE_WATERFALL_DIALOG}

    def has(self, name: str) -> bool:
        return name in self._names

    async def begin(self, turn_context: TurnContext, name: str) -> DialogTurnResult:
        if not self.has(name):
            raise KeyError(f"unknown dialog: {name}")
        dc = await self.dialog_set.create_context(turn_context)
        logging.info("[DLG] begin %s in conversation=%s", name, turn_context.activity.conversation.id)
        return await dc.begin_dialog(name)

    async def continue_active(self, turn_context: TurnContext) -> bool:
        dc = await self.dialog_set.create_context(turn_context)
        if dc.active_dialog is None:
            return False
        await dc.continue_dialog()
        return True

    async def stack(self, turn_context: TurnContext) -> List[str]:
        dc = await self.dialog_set.create_context(turn_context)
        return [instance.id for instance in dc.stack]

    # Waterfall steps

    async def _choice_step(self, step_context: WaterfallStepContext) -> DialogTurnResult:
        return await step_context.prompt(
            FIRST_PROMPT,
            PromptOptions(
                prompt=MessageFactory.text("Make a choice."),
                retry_prompt=MessageFactory.text("Try making a choice again."),
                choices=[Choice("Yes"), Choice("No")],
            ),
        )

    async def _text_step(self, step_context: WaterfallStepContext) -> DialogTurnResult:
        step_context.values[WizardStep.CHOICE.value] = step_context.result.value
        return await step_context.prompt(
            SECOND_PROMPT,
            PromptOptions(
                prompt=MessageFactory.text("This is a prompt"),
                retry_prompt=MessageFactory.text("Please try again"),
            ),
        )

    async def _number_step(self, step_context: WaterfallStepContext) -> DialogTurnResult:
        step_context.values[WizardStep.TEXT.value] = step_context.result
        return await step_context.prompt(
            THIRD_PROMPT,
            PromptOptions(
                prompt=MessageFactory.text("Please enter a number."),
                retry_prompt=MessageFactory.text("That is not a number."),
            ),
        )

    async def _summary_step(self, step_context: WaterfallStepContext) -> DialogTurnResult:
        answers = WizardAnswers(
            choice=step_context.values.get(WizardStep.CHOICE.value),
            text=step_context.values.get(WizardStep.TEXT.value),
            number=int(step_context.result),
        )
        await self.accessors.wizard_answers.set(step_context.context, answers)
        await step_context.context.send_activity(
            MessageFactory.text(f"Thanks! You chose {answers.choice}, said '{answers.text}' and picked {answers.number}.")
        )
        return await step_context.end_dialog(answers)
