"""Textual screens for the interactive session.

Every session state has one screen. Screens turn key presses and submitted
input into Session intents and post the resulting effect as a Transition
message, which the application handles by launching, quitting, or showing
the screen for the new state.
"""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical, VerticalScroll
from textual.message import Message
from textual.screen import Screen
from textual.widgets import Input, Label, ListItem, ListView, LoadingIndicator, Static

from zfsbackup.models import OperationKind, OperationResult, SessionState
from zfsbackup.session import (
    DEVICE_INPUT_LIMIT,
    MENU_ITEMS,
    SECRET_INPUT_LIMIT,
    Effect,
    MenuItem,
    Session,
)
from zfsbackup.theme import STYLES

__all__ = [
    "HELP_TEXT",
    "ConfirmScreen",
    "DeviceScreen",
    "HelpScreen",
    "MenuScreen",
    "ResultScreen",
    "RunningScreen",
    "SecretScreen",
    "Transition",
    "render_transcript",
    "screen_for",
]

APP_TITLE = "🗄️  ZFS Backup Management Tool"
RETURN_HINT = "Press Enter or Esc to return to menu"

HELP_TEXT = """\
🗄️  ZFS Backup Management Tool

DESCRIPTION:
  A terminal UI for managing ZFS backups from NIXROOT to NIXBACKUPS.

OPERATIONS:

  📦 Backup ZFS (incremental)
     Performs an incremental backup using syncoid. Creates a timestamped
     snapshot, syncs to the external backup pool, and prunes old snapshots
     while keeping monthly archives. You will be prompted for the encryption
     password.

  🔥 Force Backup ZFS (destructive)
     Forces a complete backup by deleting previous snapshots on the backup
     disk. Use this when local and backup are out of sync. You will be
     prompted for the encryption password.

  🔧 Prepare Backup Device
     Creates an encrypted ZFS pool on a new external drive. This will
     erase all data on the specified device and create NIXBACKUPS pool
     with AES-256-GCM encryption.

  🔌 Unmount Backup Disk
     Safely exports the NIXBACKUPS pool and powers off the USB drive.
     Always use this before unplugging the backup drive.

REQUIREMENTS:
  - syncoid installed (from sanoid package)
  - ZFS filesystem with NIXROOT pool
  - External drive for NIXBACKUPS pool
  - Root privileges (sudo) OR ZFS delegation configured
  - Encryption password for NIXBACKUPS pool

KEYBOARD SHORTCUTS:
  ↑/↓      Navigate menu
  Enter    Select option
  y/n      Confirm/Cancel
  Esc      Go back
  q        Quit application
  Ctrl+C   Force quit"""


def render_transcript(result: OperationResult) -> Text:
    """Render transcript lines, highlighting warnings."""
    text = Text()
    for line in result.transcript:
        style = STYLES["warning"] if line.startswith("⚠️") else STYLES["status"]
        text.append(line + "\n", style=style)
    return text


class Transition(Message):
    """A session intent was applied; carries the effect it produced."""

    def __init__(self, effect: Effect) -> None:
        self.effect = effect
        super().__init__()


class SessionScreen(Screen[None]):
    """Base for screens that drive the shared Session."""

    def __init__(self, session: Session) -> None:
        super().__init__()
        self.session = session

    def advance(self, effect: Effect = None) -> None:
        self.post_message(Transition(effect))

    def action_quit_session(self) -> None:
        self.advance(self.session.quit())


class MenuEntry(ListItem):
    def __init__(self, menu_item: MenuItem) -> None:
        super().__init__(Label(f"{menu_item.icon} {menu_item.title}\n   {menu_item.description}"))
        self.menu_item = menu_item


class MenuScreen(SessionScreen):
    BINDINGS = [
        # Ahead of the list's own bindings so the cursor wraps at both ends
        Binding("down,j", "move(1)", "Down", show=False, priority=True),
        Binding("up,k", "move(-1)", "Up", show=False, priority=True),
        Binding("q", "quit_session", "Quit"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(classes="panel"):
            yield Static(APP_TITLE, classes="title")
            yield Static("Manage your NIXROOT to NIXBACKUPS backup operations", classes="subtitle")
            yield ListView(*(MenuEntry(item) for item in MENU_ITEMS), initial_index=self.session.cursor, id="menu")
            yield Static("Press 'q' or Ctrl+C to quit", classes="hint")

    def action_move(self, step: int) -> None:
        self.session.move(step)
        self.query_one(ListView).index = self.session.cursor

    def on_list_view_highlighted(self, event: ListView.Highlighted) -> None:
        if event.list_view.index is not None:
            self.session.highlight(event.list_view.index)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        if event.list_view.index is not None:
            self.session.highlight(event.list_view.index)
        self.advance(self.session.select())


class ConfirmScreen(SessionScreen):
    BINDINGS = [
        Binding("y,Y", "confirm", "Confirm"),
        Binding("n,N,escape", "cancel", "Cancel"),
        Binding("q", "quit_session", "Quit"),
    ]

    def __init__(self, session: Session) -> None:
        super().__init__(session)
        self.message = session.confirm_message

    def compose(self) -> ComposeResult:
        with Vertical(classes="panel"):
            yield Static("⚠️  Confirmation Required", classes="title")
            yield Static(self.message, classes="warning", markup=False)
            yield Static("Press 'y' to confirm, 'n' to cancel", classes="hint")

    def action_confirm(self) -> None:
        self.advance(self.session.confirm())

    def action_cancel(self) -> None:
        self.session.cancel()
        self.advance()


class DeviceScreen(SessionScreen):
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def compose(self) -> ComposeResult:
        with Vertical(classes="panel"):
            yield Static("🔧 Prepare Backup Device", classes="title")
            yield Static("Enter the device path to use for backup:", classes="hint")
            yield Input(placeholder="/dev/sda", max_length=DEVICE_INPUT_LIMIT, id="device")
            yield Static("Example: /dev/sda", classes="subtitle")
            yield Static("Press Enter to continue, Esc to cancel", classes="hint")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.session.submit_device(event.value)
        self.advance()

    def action_cancel(self) -> None:
        self.session.cancel()
        self.advance()


class SecretScreen(SessionScreen):
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def compose(self) -> ComposeResult:
        with Vertical(classes="panel"):
            yield Static("🔐 Encryption Password", classes="title")
            yield Static("Enter the encryption password for NIXBACKUPS:", classes="hint")
            yield Input(
                placeholder="Enter encryption password",
                password=True,
                max_length=SECRET_INPUT_LIMIT,
                id="secret",
            )
            yield Static("Press Enter to continue, Esc to cancel", classes="hint")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        effect = self.session.submit_secret(event.value)
        if effect is not None:
            event.input.value = ""
        self.advance(effect)

    def action_cancel(self) -> None:
        self.query_one(Input).value = ""
        self.session.cancel()
        self.advance()


class RunningScreen(SessionScreen):
    """Busy indicator while the operation runs. Only the application's force quit applies."""

    def __init__(self, session: Session) -> None:
        super().__init__(session)
        self.kind = session.running

    def compose(self) -> ComposeResult:
        label = self.kind.label if self.kind else "Working"
        with Vertical(classes="panel"):
            yield Static("⚙️  Working...", classes="title")
            if self.kind is OperationKind.PREPARE:
                # No animation: the terminal is handed to zpool while this screen is up
                yield Static(f"{label}: follow the prompts in the terminal")
            else:
                yield LoadingIndicator()
                yield Static(label)
            yield Static("Please wait while the operation completes...", classes="hint")


class ResultScreen(SessionScreen):
    BINDINGS = [
        Binding("enter,escape,q", "dismiss_result", "Back to menu"),
    ]

    def __init__(self, session: Session) -> None:
        super().__init__(session)
        self.result = session.result

    def compose(self) -> ComposeResult:
        result = self.result
        with Vertical(classes="panel"):
            if result is None or result.success:
                yield Static("✅ Operation Completed", classes="title")
            else:
                yield Static("❌ Operation Failed", classes="title")
            if result is not None:
                with VerticalScroll(classes="transcript"):
                    yield Static(render_transcript(result))
                if result.error is not None:
                    yield Static(result.error, classes="error", markup=False)
            yield Static(RETURN_HINT, classes="hint")

    def action_dismiss_result(self) -> None:
        self.session.dismiss()
        self.advance()


class HelpScreen(SessionScreen):
    BINDINGS = [
        Binding("enter,escape,q", "dismiss_help", "Back to menu"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(classes="panel"):
            with VerticalScroll(classes="transcript"):
                yield Static(HELP_TEXT, markup=False)
            yield Static(RETURN_HINT, classes="hint")

    def action_dismiss_help(self) -> None:
        self.session.dismiss()
        self.advance()


_SCREENS: dict[SessionState, type[SessionScreen]] = {
    SessionState.MENU: MenuScreen,
    SessionState.CONFIRM: ConfirmScreen,
    SessionState.DEVICE_INPUT: DeviceScreen,
    SessionState.SECRET_INPUT: SecretScreen,
    SessionState.RUNNING: RunningScreen,
    SessionState.RESULT: ResultScreen,
    SessionState.HELP: HelpScreen,
}


def screen_for(session: Session) -> SessionScreen:
    """Build the screen showing the session's current state."""
    return _SCREENS[session.state](session)
