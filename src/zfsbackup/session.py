"""Interactive session state machine.

The screens translate key presses and submitted input into the intents
below (select, confirm, cancel, submit, dismiss, quit). Each intent returns
an effect telling the application what to do next: launch an operation,
quit, or nothing. An intent that does not apply to the current state is
ignored. The session never performs I/O itself, so every transition can be
tested directly.

    menu ──► secret-input ──────────────────────► running ──► result ──► menu
      │            ▲                                 ▲
      ├──► confirm ┘ (force backup)                  │
      ├──► device-input ──► confirm ─────────────────┤ (prepare)
      ├──► running (unmount) ────────────────────────┘
      └──► help ──► menu
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum

from zfsbackup.models import OperationKind, OperationRequest, OperationResult, SessionState

__all__ = [
    "DEVICE_INPUT_LIMIT",
    "MENU_ITEMS",
    "SECRET_INPUT_LIMIT",
    "Effect",
    "Launch",
    "MenuAction",
    "MenuItem",
    "PendingOperation",
    "Quit",
    "Session",
]

DEVICE_INPUT_LIMIT = 50
SECRET_INPUT_LIMIT = 256


class MenuAction(StrEnum):
    """Behaviour bound to a menu entry, independent of its display text."""

    BACKUP = "backup"
    FORCE_BACKUP = "force-backup"
    PREPARE = "prepare"
    UNMOUNT = "unmount"
    HELP = "help"
    EXIT = "exit"


@dataclass(frozen=True)
class MenuItem:
    action: MenuAction
    title: str
    description: str
    icon: str


MENU_ITEMS: tuple[MenuItem, ...] = (
    MenuItem(
        MenuAction.BACKUP,
        "Backup ZFS (incremental)",
        "Run incremental backup of NIXROOT to NIXBACKUPS",
        "📦",
    ),
    MenuItem(
        MenuAction.FORCE_BACKUP,
        "Force Backup ZFS (destructive)",
        "Force backup - deletes old snapshots on backup disk",
        "🔥",
    ),
    MenuItem(
        MenuAction.PREPARE,
        "Prepare Backup Device",
        "Create encrypted ZFS pool on new backup device",
        "🔧",
    ),
    MenuItem(
        MenuAction.UNMOUNT,
        "Unmount Backup Disk",
        "Safely unmount and power off backup disk",
        "🔌",
    ),
    MenuItem(MenuAction.HELP, "Help", "Show help information", "❓"),
    MenuItem(MenuAction.EXIT, "Exit", "Exit the application", "❌"),
)

FORCE_BACKUP_WARNING = (
    "⚠️  This will delete all previous snapshots on the backup disk.\nAre you sure you want to continue?"
)


def erase_warning(device: str) -> str:
    return f"⚠️  WARNING: You are about to erase all data on {device}.\nThis action is irreversible!\nAre you absolutely sure?"


@dataclass(frozen=True)
class PendingOperation:
    """An operation request under construction across confirm/input states."""

    kind: OperationKind
    device: str | None = None

    def finalize(self, secret: str | None = None) -> OperationRequest:
        return OperationRequest(kind=self.kind, device=self.device, secret=secret)


@dataclass(frozen=True)
class Launch:
    """Start the given operation off the interactive path."""

    request: OperationRequest


@dataclass(frozen=True)
class Quit:
    """Terminate the session."""


type Effect = Launch | Quit | None


class Session:
    """Live interactive context, mutated in place on every intent.

    The secret is never stored here: it goes from the submitted input
    straight into the launched request.
    """

    def __init__(self) -> None:
        self.state = SessionState.MENU
        self.cursor = 0
        self.confirm_message = ""
        self.pending: PendingOperation | None = None
        self.running: OperationKind | None = None
        self.result: OperationResult | None = None
        self.quitting = False

    @property
    def selected(self) -> MenuItem:
        return MENU_ITEMS[self.cursor]

    def move(self, step: int) -> None:
        """Move the menu cursor, wrapping at either end."""
        if self.state is SessionState.MENU:
            self.cursor = (self.cursor + step) % len(MENU_ITEMS)

    def highlight(self, index: int) -> None:
        """Put the menu cursor on an entry."""
        if self.state is SessionState.MENU and 0 <= index < len(MENU_ITEMS):
            self.cursor = index

    def select(self) -> Effect:
        """Activate the menu entry under the cursor."""
        if self.state is not SessionState.MENU:
            return None

        match self.selected.action:
            case MenuAction.BACKUP:
                self.pending = PendingOperation(OperationKind.BACKUP)
                self.state = SessionState.SECRET_INPUT
            case MenuAction.FORCE_BACKUP:
                self.pending = PendingOperation(OperationKind.FORCE_BACKUP)
                self.confirm_message = FORCE_BACKUP_WARNING
                self.state = SessionState.CONFIRM
            case MenuAction.PREPARE:
                self.pending = PendingOperation(OperationKind.PREPARE)
                self.state = SessionState.DEVICE_INPUT
            case MenuAction.UNMOUNT:
                return self._launch(PendingOperation(OperationKind.UNMOUNT).finalize())
            case MenuAction.HELP:
                self.state = SessionState.HELP
            case MenuAction.EXIT:
                return self.quit()
        return None

    def confirm(self) -> Effect:
        """Accept the confirmation prompt."""
        if self.state is not SessionState.CONFIRM:
            return None
        assert self.pending is not None
        if self.pending.kind.requires_secret:
            self.state = SessionState.SECRET_INPUT
            return None
        return self._launch(self.pending.finalize())

    def cancel(self) -> None:
        """Back out of a confirmation or input prompt, discarding the pending operation."""
        if self.state in (SessionState.CONFIRM, SessionState.DEVICE_INPUT, SessionState.SECRET_INPUT):
            self._to_menu()

    def submit_device(self, value: str) -> None:
        """Take the device path and ask for confirmation. Blank input is ignored."""
        device = value.strip()
        if self.state is not SessionState.DEVICE_INPUT or not device:
            return
        assert self.pending is not None
        self.pending = replace(self.pending, device=device)
        self.confirm_message = erase_warning(device)
        self.state = SessionState.CONFIRM

    def submit_secret(self, value: str) -> Effect:
        """Hand the secret to the pending operation and launch it. Empty input is ignored."""
        if self.state is not SessionState.SECRET_INPUT or not value:
            return None
        assert self.pending is not None
        return self._launch(self.pending.finalize(value))

    def dismiss(self) -> None:
        """Leave the result or help view."""
        if self.state in (SessionState.RESULT, SessionState.HELP):
            self._to_menu()

    def quit(self) -> Quit:
        """End the session from any state."""
        self.quitting = True
        return Quit()

    def finish(self, result: OperationResult) -> None:
        """Handle the completion event of the in-flight operation."""
        if self.state is not SessionState.RUNNING:
            return
        self.running = None
        self.result = result
        self.state = SessionState.RESULT

    def _launch(self, request: OperationRequest) -> Launch:
        self.pending = None
        self.running = request.kind
        self.state = SessionState.RUNNING
        return Launch(request)

    def _to_menu(self) -> None:
        self.pending = None
        self.confirm_message = ""
        self.state = SessionState.MENU
