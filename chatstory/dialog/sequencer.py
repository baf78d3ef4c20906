"""
Dialog sequencer - walks the script graph and drives the chat.

A run starts at a node and follows jump ids, posting each line to the
right conversation with chat-like pacing, pausing on option sets until
the player answers. Only one run is alive at a time: starting a new one
cancels the old run and clears its pending choices.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Generator, Optional

from chatengine.core.events import Event, EventBus, ChatEvent
from chatengine.core.tasks import Signal, Task, TaskScheduler, WaitForSignal, WaitSeconds
from chatstory.dialog.script import ScriptRow, ScriptStore, is_option_set

if TYPE_CHECKING:
    from chatstory.chat.models import Contact
    from chatstory.chat.router import ConversationRouter
    from chatstory.progression.countdown import CountdownTimer

logger = logging.getLogger(__name__)


class SequencerState(Enum):
    """State of the sequencer."""
    IDLE = auto()
    RUNNING = auto()
    AWAITING_OPTION = auto()
    SUSPENDED = auto()
    ENDED = auto()


@dataclass
class DialogRun:
    """
    State of one run through the script.

    Attributes:
        start_node_id: Node the run was started at
        current_node_id: Node being executed (0 = none)
        active_contact: Contact the run is currently addressing
        is_first_line: True until the first exchange has been shown
        separator_inserted_for: Contacts already touched by this run
        selection: Signal the run waits on while choices are shown
        resume_at: Scheduler time a suspended run wakes up
        cancelled: Set when a newer run replaced this one
    """
    start_node_id: int
    current_node_id: int
    active_contact: Optional[Contact] = None
    is_first_line: bool = True
    separator_inserted_for: set[str] = field(default_factory=set)
    selection: Optional[Signal] = None
    resume_at: Optional[float] = None
    cancelled: bool = False
    task: Optional[Task] = None


class DialogSequencer:
    """
    Interprets script nodes.

    Listens for ChatEvent.DIALOG_START and publishes DIALOG_END,
    CONSEQUENCE_POPUP and GAME_WIN.

    Usage:
        sequencer = DialogSequencer(store, router, event_bus, scheduler, timer)
        event_bus.publish(ChatEvent.DIALOG_START, node_id=1001)
        scheduler.update(dt)   # every frame
    """

    def __init__(
        self,
        store: ScriptStore,
        router: ConversationRouter,
        events: EventBus,
        scheduler: TaskScheduler,
        timer: Optional[CountdownTimer] = None,
        default_line_delay: float = 1.0,
        self_line_delay: float = 0.5,
        option_delay: float = 1.0,
        safe_threshold: int = 12001,
        lookahead_limit: int = 50,
    ):
        self.store = store
        self.router = router
        self.events = events
        self.scheduler = scheduler
        self.timer = timer

        # Pacing (seconds)
        self.default_line_delay = default_line_delay
        self.self_line_delay = self_line_delay
        self.option_delay = option_delay

        self.safe_threshold = safe_threshold
        self.lookahead_limit = lookahead_limit

        self._run: Optional[DialogRun] = None
        self._state = SequencerState.IDLE
        self._safe_phase = False

        events.subscribe(ChatEvent.DIALOG_START, self._on_dialog_start)

    # Status

    @property
    def state(self) -> SequencerState:
        return self._state

    @property
    def current_run(self) -> Optional[DialogRun]:
        return self._run

    @property
    def current_node_id(self) -> int:
        return self._run.current_node_id if self._run else 0

    @property
    def active_contact(self) -> Optional[Contact]:
        return self._run.active_contact if self._run else None

    @property
    def safe_phase(self) -> bool:
        if self.timer is not None and self.timer.safe_phase:
            return True
        return self._safe_phase

    @property
    def is_running(self) -> bool:
        return self._state not in (SequencerState.IDLE, SequencerState.ENDED)

    # Control

    def _on_dialog_start(self, event: Event) -> None:
        raw = event.get("node_id")
        try:
            node_id = int(raw)
        except (TypeError, ValueError):
            logger.error(f"DIALOG_START with invalid node id: {raw!r}")
            return
        self.start(node_id)

    def start(self, node_id: int) -> bool:
        """
        Start a run at a node.

        A dialogue whose first row addresses a contact that is not in view
        is queued on that contact instead of interrupting the current
        conversation.

        Returns:
            True if a run started
        """
        if node_id <= 0 or not self.store.has_node(node_id):
            logger.error(f"Failed to start dialog: node {node_id} not in script")
            return False

        first = self.store.get_node(node_id)[0]
        contact = self.router.get_contact(first.character)
        if contact is not None and not self.router.is_active(contact):
            self.router.queue_dialog(contact.name, node_id)
            return False

        self.cancel()

        run = DialogRun(start_node_id=node_id, current_node_id=node_id)
        self._run = run
        logger.info(f"Starting dialog {node_id}")
        run.task = self.scheduler.start(self._execute(run), name=f"dialog-{node_id}")
        return True

    def cancel(self) -> None:
        """Stop the current run and clear any pending choices."""
        self.router.clear_all_pending_options()

        run = self._run
        if run is None:
            return

        run.cancelled = True
        run.selection = None
        if run.task is not None:
            run.task.cancel()
        self._run = None
        self._state = SequencerState.IDLE

    # Run loop

    def _is_current(self, run: DialogRun) -> bool:
        return run is self._run and not run.cancelled

    def _set_state(self, run: DialogRun, state: SequencerState) -> None:
        if self._is_current(run):
            self._state = state

    def _execute(self, run: DialogRun) -> Generator:
        try:
            yield from self._walk(run)
        except Exception:
            logger.exception(f"Dialog {run.start_node_id} failed at node {run.current_node_id}")
            if self._is_current(run):
                self.router.clear_all_pending_options()
                self._state = SequencerState.ENDED

    def _walk(self, run: DialogRun) -> Generator:
        self._set_state(run, SequencerState.RUNNING)
        self._preresolve_opening(run)

        while run.current_node_id > 0 and self.store.has_node(run.current_node_id):
            node_id = run.current_node_id
            rows = self.store.get_node(node_id)

            self._check_safe_phase(node_id)
            if not self._is_current(run):
                return

            self._resolve_contact(run, rows)
            self._show_consequence(rows)
            if not self._is_current(run):
                return

            if is_option_set(rows):
                # Let the last line breathe before the buttons appear
                if not run.is_first_line:
                    yield from self._wait(run, self.option_delay)
                run.is_first_line = False

                index = yield from self._await_selection(run, rows)
                chosen = rows[index]
                logger.debug(f"Option {index} chosen at node {node_id}, jumping to {chosen.jump_id}")

                self._apply_cost(chosen.cost_time)
                if not self._is_current(run):
                    return
                run.current_node_id = chosen.jump_id
                self._post(run, chosen.content, is_self=True)
                continue

            row = rows[0]
            if row.is_terminal:
                self._finish(run, row)
                return

            self._apply_cost(row.cost_time)
            if not self._is_current(run):
                return

            wait = self._line_delay(run, row)
            if wait > 0:
                yield from self._wait(run, wait)

            self._post(run, row.content, row.is_self, row.character)
            run.current_node_id = row.jump_id

        if run.current_node_id > 0:
            logger.info(f"Dialog stopped: node {run.current_node_id} not in script")
        else:
            logger.info("Dialog sequence ended.")
        self._set_state(run, SequencerState.ENDED)

    def _wait(self, run: DialogRun, seconds: float) -> Generator:
        run.resume_at = self.scheduler.now + seconds
        self._set_state(run, SequencerState.SUSPENDED)
        yield WaitSeconds(seconds)
        run.resume_at = None
        self._set_state(run, SequencerState.RUNNING)

    def _await_selection(self, run: DialogRun, rows: list[ScriptRow]) -> Generator:
        captions = [row.caption for row in rows]
        signal = Signal()
        run.selection = signal

        self._set_state(run, SequencerState.AWAITING_OPTION)
        self.router.present_options(captions, signal.fire, run.active_contact)

        index = yield WaitForSignal(signal)

        run.selection = None
        self._set_state(run, SequencerState.RUNNING)
        return index

    def _finish(self, run: DialogRun, row: ScriptRow) -> None:
        if row.jump_id > 0:
            if row.character:
                logger.info(
                    f"Scheduling dialog {row.jump_id} for {row.character} in {row.delay}s"
                )
                self.scheduler.call_later(
                    row.delay, self.router.trigger_dialog, row.character, row.jump_id
                )
            else:
                logger.warning(
                    f"END row {row.node_id} jumps to {row.jump_id} but names no contact"
                )

        logger.info(f"Reached END at node {row.node_id}")
        self._set_state(run, SequencerState.ENDED)
        self.events.publish(ChatEvent.DIALOG_END, node_id=row.node_id)

    # Node effects

    def _check_safe_phase(self, node_id: int) -> None:
        if node_id < self.safe_threshold or self.safe_phase:
            return

        self._safe_phase = True
        if self.timer is not None:
            self.timer.enter_safe_phase()
        logger.info(f"Reached checkpoint {node_id}, safe phase enabled")
        self.events.publish(ChatEvent.GAME_WIN)

    def _show_consequence(self, rows: list[ScriptRow]) -> None:
        for row in rows:
            if row.consequence:
                self.events.publish(ChatEvent.CONSEQUENCE_POPUP, text=row.consequence)
                return

    def _apply_cost(self, cost: int) -> None:
        if cost <= 0:
            return
        if self.timer is None:
            logger.debug(f"No timer, ignoring cost of {cost}s")
            return
        self.timer.reduce_time(cost)

    def _line_delay(self, run: DialogRun, row: ScriptRow) -> float:
        if row.is_self:
            return self.self_line_delay
        if run.is_first_line:
            run.is_first_line = False
            return 0.0
        return row.delay if row.delay > 0 else self.default_line_delay

    # Contacts

    def _find_contact(self, rows: list[ScriptRow]) -> Optional[Contact]:
        for row in rows:
            if row.character:
                contact = self.router.get_contact(row.character)
                if contact is not None:
                    return contact
        return None

    def _resolve_contact(self, run: DialogRun, rows: list[ScriptRow]) -> Optional[Contact]:
        contact = self._find_contact(rows)
        if contact is not None:
            self._touch(run, contact)
        return contact

    def _touch(self, run: DialogRun, contact: Contact) -> None:
        """Address a contact, marking the resumed conversation once per run."""
        run.active_contact = contact
        if contact.name in run.separator_inserted_for:
            return
        run.separator_inserted_for.add(contact.name)
        if contact.message_history and not contact.ends_with_separator:
            self.router.insert_separator(contact)

    def _preresolve_opening(self, run: DialogRun) -> None:
        rows = self.store.get_node(run.current_node_id)
        if self._find_contact(rows) is not None:
            return
        contact = self.lookahead_contact(run.current_node_id)
        if contact is not None:
            self._touch(run, contact)

    def lookahead_contact(self, node_id: int) -> Optional[Contact]:
        """
        Follow jump ids from a node to the first one naming a known contact.

        Gives up after lookahead_limit hops, at a missing node, or on a cycle.
        """
        visited = set()
        current = node_id
        for _ in range(self.lookahead_limit):
            if current <= 0 or current in visited or not self.store.has_node(current):
                return None
            visited.add(current)

            rows = self.store.get_node(current)
            contact = self._find_contact(rows)
            if contact is not None:
                return contact
            current = rows[0].jump_id
        return None

    def _post(self, run: DialogRun, text: str, is_self: bool, character: str = "") -> None:
        target = None
        if character:
            target = self.router.get_contact(character)
            if target is not None:
                run.active_contact = target
        if target is None:
            target = run.active_contact
        if target is None:
            # Last resort: whatever is on screen
            target = self.router.active_contact
        if target is None:
            logger.warning(f"No conversation to post to, dropping line {text!r}")
            return

        self.router.post_message(text, is_self, target)
