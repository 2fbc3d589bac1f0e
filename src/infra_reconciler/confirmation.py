"""Operator confirmation channel."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import click

from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


class ConfirmationChannel(ABC):
    """Asks a human before anything irreversible happens."""

    @abstractmethod
    def confirm(self, prompt: str) -> bool:
        """Yes/no confirmation."""

    @abstractmethod
    def confirm_typed(self, prompt: str, expected: str) -> bool:
        """Confirmation that requires typing ``expected`` exactly."""


class ClickConfirmation(ConfirmationChannel):
    """Interactive confirmation on the terminal."""

    def __init__(self, assume_yes: bool = False):
        """Initialize confirmation channel.

        Args:
            assume_yes: Answer yes to plain confirmations (``--auto-approve``).
                Typed confirmations are always asked.
        """
        self.assume_yes = assume_yes

    def confirm(self, prompt: str) -> bool:
        if self.assume_yes:
            logger.info(f"Auto-approved: {prompt}")
            return True
        return click.confirm(prompt, default=False)

    def confirm_typed(self, prompt: str, expected: str) -> bool:
        click.echo(prompt)
        answer = click.prompt(f"Type '{expected}' to confirm", default="", show_default=False)
        if answer.strip() != expected:
            click.echo("Cancelled.")
            return False
        return True


class StaticConfirmation(ConfirmationChannel):
    """Scripted answers, for non-interactive runs and tests.

    Answers are consumed in order; once exhausted, ``default`` is used.
    """

    def __init__(self, answers: Optional[Iterable[bool]] = None, default: bool = False):
        self.answers: List[bool] = list(answers or [])
        self.default = default
        self.prompts: List[str] = []

    def _next(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        if self.answers:
            return self.answers.pop(0)
        return self.default

    def confirm(self, prompt: str) -> bool:
        return self._next(prompt)

    def confirm_typed(self, prompt: str, expected: str) -> bool:
        return self._next(prompt)
