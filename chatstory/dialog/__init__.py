"""
Dialog module - the chat script and its interpreter.

Provides:
- Script table loading (CSV/TSV/XLSX) and node lookup
- Branching with option sets
- Paced delivery of lines to the right conversation
- Chained hand-off between dialogue threads
"""

from chatstory.dialog.script import (
    COLUMNS,
    LoadError,
    RowParseError,
    RowFlag,
    Side,
    ScriptRow,
    ScriptStore,
    is_option_set,
)
from chatstory.dialog.sequencer import DialogSequencer, DialogRun, SequencerState

__all__ = [
    "COLUMNS",
    "LoadError",
    "RowParseError",
    "RowFlag",
    "Side",
    "ScriptRow",
    "ScriptStore",
    "is_option_set",
    "DialogSequencer",
    "DialogRun",
    "SequencerState",
]
