"""
Chat Demo: scripted conversation in the terminal

Demonstrates:
- Loading a session config and its CSV script
- Paced delivery and option sets
- Hand-off to a second contact, unread notifications
- Safe phase / win

The player is simulated: it always picks the first option and opens
whichever contact has unread messages once the current dialogue ends.

Usage:
    python demos/chat_demo.py [path/to/session.json]
"""

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatstory.chat.presenter import TranscriptPresenter
from chatstory.dialog.sequencer import SequencerState
from chatstory.session import ChatSession

FIXED_TIMESTEP = 0.1
MAX_SECONDS = 120.0


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    default_config = Path(__file__).parent.parent / "data" / "session.json"
    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else default_config

    session = ChatSession.from_files(config_path, TranscriptPresenter())
    session.setup()

    elapsed = 0.0
    while not session.finished and elapsed < MAX_SECONDS:
        session.update(FIXED_TIMESTEP)
        elapsed += FIXED_TIMESTEP

        if session.router.options_locked:
            session.choose(0)
            continue

        if session.sequencer.state in (SequencerState.IDLE, SequencerState.ENDED):
            unread = [c for c in session.router.contacts if c.unread]
            if unread:
                session.switch_to(unread[0].name)

    outcome = session.result.name if session.result else "no result"
    print(f"\n[{outcome}] after {elapsed:.1f}s, {session.timer.remaining:.0f}s left on the clock")
    session.shutdown()


if __name__ == "__main__":
    main()
