"""Interactive application tying the session, screens and workflows together."""

from __future__ import annotations

from contextlib import nullcontext

from rich.text import Text
from textual.app import App
from textual.binding import Binding
from textual.message import Message
from textual.worker import Worker

from zfsbackup.logging import get_logger
from zfsbackup.models import OperationRequest, OperationResult, SessionState
from zfsbackup.session import Effect, Launch, Quit, Session
from zfsbackup.theme import APP_CSS, STYLES
from zfsbackup.ui import Transition, screen_for
from zfsbackup.workflows import WorkflowContext, run_operation

__all__ = ["BackupApp", "OperationFinished"]

PASSPHRASE_NOTICE = "🔧 zpool will now prompt for the new pool's encryption passphrase."

logger = get_logger("zfsbackup.app")


class OperationFinished(Message):
    """The in-flight operation produced its result."""

    def __init__(self, result: OperationResult) -> None:
        self.result = result
        super().__init__()


class BackupApp(App[None]):
    """Full-screen session over the four backup operations.

    Textual delivers one message at a time, so session transitions never
    overlap. A launched operation runs as a worker and reports back through
    a single OperationFinished message; the session's running state
    guarantees at most one such worker exists. Force quit terminates any
    in-flight command instead of cancelling it gracefully.
    """

    TITLE = "ZFS Backup"
    CSS = APP_CSS
    ENABLE_COMMAND_PALETTE = False
    BINDINGS = [
        Binding("ctrl+c,ctrl+q", "force_quit", "Force quit", show=False, priority=True),
    ]

    def __init__(self, context: WorkflowContext) -> None:
        super().__init__()
        self.context = context
        self.session = Session()
        self._shown: SessionState | None = None
        self._operation: Worker[None] | None = None

    def on_mount(self) -> None:
        logger.info("Interactive session started")
        self._show()

    async def on_transition(self, message: Transition) -> None:
        await self._apply(message.effect)

    def on_operation_finished(self, message: OperationFinished) -> None:
        self._operation = None
        self.session.finish(message.result)
        self._show()

    async def action_force_quit(self) -> None:
        await self._apply(self.session.quit())

    async def _apply(self, effect: Effect) -> None:
        if isinstance(effect, Quit):
            await self._abort_operation()
            logger.info("Interactive session ended")
            self.exit(message=Text("👋 Goodbye!", style=STYLES["status"]))
            return
        self._show()
        if isinstance(effect, Launch):
            # Start once the running screen is painted
            self.call_after_refresh(self._start, effect.request)

    def _show(self) -> None:
        """Switch to the screen for the session's state if it changed."""
        state = self.session.state
        if state is self._shown:
            return
        self._shown = state
        screen = screen_for(self.session)
        if len(self.screen_stack) > 1:
            self.switch_screen(screen)
        else:
            self.push_screen(screen)

    def _start(self, request: OperationRequest) -> None:
        if self._operation is not None and not self._operation.is_finished:
            raise RuntimeError("an operation is already running")
        self._operation = self.run_worker(
            self._execute(request),
            name=request.kind.value,
            group="operation",
            exclusive=True,
        )

    async def _execute(self, request: OperationRequest) -> None:
        # Prepare hands the terminal to zpool's passphrase prompt
        terminal = self.suspend() if request.kind.requires_device else nullcontext()
        try:
            with terminal:
                if request.kind.requires_device:
                    print(PASSPHRASE_NOTICE, flush=True)
                result = await run_operation(request, self.context)
        except Exception as e:
            logger.exception("Operation crashed", operation=request.kind.value)
            result = OperationResult(kind=request.kind, transcript=(), error=f"unexpected error: {e}")
        self.post_message(OperationFinished(result))

    async def _abort_operation(self) -> None:
        if self._operation is None or self._operation.is_finished:
            return
        logger.warning("Force quit while an operation is running", operation=self._operation.name)
        self._operation.cancel()
        await self.context.executor.terminate_all_processes()
