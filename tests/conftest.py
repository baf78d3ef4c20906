import os
import sys
import pytest
from unittest.mock import MagicMock, patch

# Ensure project packages can be imported
sys.path.append(os.getcwd())

@pytest.fixture(autouse=True)
def mock_pygame():
    """
    Global mock for pygame.mixer to allow headless testing.
    Autoused for all tests so no audio device is ever opened.
    """
    with patch('pygame.init'), \
         patch('pygame.mixer'):

        import pygame
        pygame.mixer.get_init.return_value = True

        yield

@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    from chatengine.core.events import EventBus
    return EventBus()

@pytest.fixture
def scheduler():
    """Fresh TaskScheduler at t=0."""
    from chatengine.core.tasks import TaskScheduler
    return TaskScheduler()

@pytest.fixture
def presenter():
    """Presenter that records every call."""
    from chatstory.chat.presenter import ChatPresenter
    return MagicMock(spec=ChatPresenter)

@pytest.fixture
def router(event_bus, presenter):
    """Router with two contacts, Mira in view."""
    from chatstory.chat.router import ConversationRouter
    router = ConversationRouter(event_bus, presenter)
    router.add_contact("Mira")
    router.add_contact("Jonas")
    router.switch_active("Mira")
    presenter.reset_mock()
    return router

@pytest.fixture
def make_store():
    """
    Build a ScriptStore from short row tuples.

    Rows are given positionally in COLUMNS order and may be truncated.
    """
    from chatstory.dialog.script import ScriptStore

    def _make(*rows):
        return ScriptStore.from_rows(rows)
    return _make

@pytest.fixture
def timer(event_bus):
    """Started countdown with the default budget."""
    from chatstory.progression.countdown import CountdownTimer
    timer = CountdownTimer(event_bus, total_time=600)
    timer.start()
    return timer

@pytest.fixture
def recorder(event_bus):
    """Collects every ChatEvent published on the bus."""
    from chatengine.core.events import ChatEvent
    received = []

    def handler(event):
        received.append(event)

    for event_type in ChatEvent:
        event_bus.subscribe(event_type, handler, priority=100, weak=False)
    return received
