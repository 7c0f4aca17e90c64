"""Execution context for explicit state passing.

The CLI builds one ExecutionContext per invocation and hands it to every
transport and domain flow. Nothing below the CLI reads global flags.
"""

from dataclasses import dataclass, field, replace
from typing import Callable

from valley_sync.core.config import Config

# (prompt, default_answer) -> answer
ConfirmFn = Callable[[str, bool], bool]


def rich_confirm(prompt: str, default: bool) -> bool:
    """Ask the operator a yes/no question on the shared console."""
    from rich.prompt import Confirm

    from valley_sync.core.console import get_console

    return Confirm.ask(prompt, default=default, console=get_console())


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable per-invocation settings.

    Attributes:
        config: Application configuration
        dry_run: Log mutating actions instead of performing them
        force: Skip confirmations; the newer side always wins
        confirm: Prompt hook used when force is off
    """

    config: Config = field(default_factory=Config)
    dry_run: bool = False
    force: bool = False
    confirm: ConfirmFn = rich_confirm

    def ask(self, prompt: str, default: bool) -> bool:
        """Confirm an action, or accept it outright in forced mode."""
        if self.force:
            return True
        return self.confirm(prompt, default)

    def with_force(self, force: bool) -> "ExecutionContext":
        """Return new context with updated force flag."""
        return replace(self, force=force)
