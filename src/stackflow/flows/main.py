"""Main conversation: sign in, optionally show the token, then run one command."""

from __future__ import annotations

from stackflow.commands import dispatch_command, parse_command
from stackflow.dialogs import FrameValues, StepContext, WaterfallFlow
from stackflow.dialogs.outcomes import StepOutcome

MAIN_FLOW = "main"
OAUTH_PROMPT = "oauth_prompt"
CONFIRM_PROMPT = "confirm_prompt"
TEXT_PROMPT = "text_prompt"
CHOICE_PROMPT = "choice_prompt"

COMMAND_PROMPT = "Would you like to do? (type 'me', 'send <EMAIL>' or 'recent')"


class MainFlowValues(FrameValues):
    command: str | None = None


type MainStep = StepContext[MainFlowValues]


async def sign_in(step: MainStep) -> StepOutcome:
    return step.begin(OAUTH_PROMPT)


async def confirm_login(step: MainStep) -> StepOutcome:
    if step.token() is not None:
        step.send("You are now logged in.")
        return step.prompt(CONFIRM_PROMPT, "Would you like to view your token?")

    step.send("Login was not successful please try again.")
    return step.end()


async def acknowledge_choice(step: MainStep) -> StepOutcome:
    step.send("Thank you.")
    if step.confirmed():
        # Tokens never live in frame values; ask the provider again.
        return step.begin(OAUTH_PROMPT)
    return step.end()


async def show_token(step: MainStep) -> StepOutcome:
    token = step.token()
    if token is None:
        return step.end()

    step.send(f"Here is your token {token.token}")
    return step.prompt(TEXT_PROMPT, COMMAND_PROMPT)


async def capture_command(step: MainStep) -> StepOutcome:
    step.send("Got it.")
    step.values.command = step.text()
    # Fresh token right before the command runs.
    return step.begin(OAUTH_PROMPT)


async def run_command(step: MainStep) -> StepOutcome:
    token = step.token()
    if token is None:
        step.send("We couldn't log you in. Please try again later.")
        return step.end()

    await dispatch_command(step.turn, parse_command(step.values.command), token)
    return step.end()


def build_main_flow(name: str = MAIN_FLOW) -> WaterfallFlow:
    return WaterfallFlow(
        name,
        [sign_in, confirm_login, acknowledge_choice, show_token, capture_command, run_command],
        values_model=MainFlowValues,
    )
