"""
Dialogue script table - rows grouped into nodes.

The script is a table with one record per row:

    flag, nodeId, character, side, content, jumpId, effect, target,
    delay, task, optionLabel, costTime, totalTimeHint, consequence

Rows sharing a node id form one node: either a single line (or END
marker), or an option set where every row is one branch.

Parsing is tolerant. A cell that does not parse as its column's type
becomes that type's zero value; only a row whose node id is unreadable
is dropped.
"""

from __future__ import annotations

import csv
import logging
import math
import re
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)


COLUMNS = (
    "flag",
    "node_id",
    "character",
    "side",
    "content",
    "jump_id",
    "effect",
    "target",
    "delay",
    "task",
    "option_label",
    "cost_time",
    "total_time_hint",
    "consequence",
)

# Header spellings used by older sheets
_HEADER_ALIASES = {
    "id": "node_id",
    "position": "side",
    "optiondesc": "option_label",
    "totaltime": "total_time_hint",
}

_SELF_SIDES = {"right", "r", "self", "右"}


class LoadError(Exception):
    """Raised when a script source is missing, unreadable or empty."""


class RowParseError(ValueError):
    """Raised for a row that cannot be placed in any node."""


class RowFlag(Enum):
    """Row marker in the first column."""
    LINE = "#"
    OPTION = "&"
    END = "END"


class Side(Enum):
    """Which side of the chat a line appears on."""
    OTHER = "left"
    SELF = "right"


def _normalize(name: str) -> str:
    return re.sub(r'[^a-z0-9]', '', str(name).lower())


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return 0.0
    # "inf" and "nan" parse, but are not usable delays or costs
    return number if math.isfinite(number) else 0.0


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else 0
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        number = _to_float(text)
        return int(number) if number.is_integer() else 0


def parse_node_id(value: Any) -> int:
    """Parse a node id strictly; raises RowParseError."""
    if isinstance(value, bool):
        raise RowParseError(f"Invalid node id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise RowParseError(f"Invalid node id: {value!r}") from None


class ScriptRow(BaseModel):
    """
    One row of the dialogue table.

    Attributes:
        flag: LINE, OPTION or END
        node_id: Node the row belongs to
        character: Contact the row speaks as / addresses (may be empty)
        side: OTHER for the contact's lines, SELF for the player's
        content: Line text; for options, the text posted when chosen
        jump_id: Next node (0 = stop)
        effect: Free-form effect text, carried but not interpreted
        target: Free-form target text, carried but not interpreted
        delay: Seconds to wait before the line (END: hand-off delay)
        task: Free-form task text, carried but not interpreted
        option_label: Button caption override for option rows
        cost_time: Seconds deducted from the countdown
        total_time_hint: Session time budget override
        consequence: Popup text shown when the node is reached
    """

    model_config = ConfigDict(frozen=True)

    flag: RowFlag = RowFlag.LINE
    node_id: int
    character: str = ""
    side: Side = Side.OTHER
    content: str = ""
    jump_id: int = 0
    effect: str = ""
    target: str = ""
    delay: float = 0.0
    task: str = ""
    option_label: str = ""
    cost_time: int = 0
    total_time_hint: float = 0.0
    consequence: str = ""

    @field_validator("flag", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> RowFlag:
        if isinstance(value, RowFlag):
            return value
        text = "" if value is None else str(value).strip().upper()
        if text == RowFlag.OPTION.value:
            return RowFlag.OPTION
        if text == RowFlag.END.value:
            return RowFlag.END
        return RowFlag.LINE

    @field_validator("side", mode="before")
    @classmethod
    def _parse_side(cls, value: Any) -> Side:
        if isinstance(value, Side):
            return value
        text = "" if value is None else str(value).strip().lower()
        return Side.SELF if text in _SELF_SIDES else Side.OTHER

    @field_validator(
        "character", "content", "effect", "target", "task", "option_label", "consequence",
        mode="before",
    )
    @classmethod
    def _parse_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip()

    @field_validator("jump_id", "cost_time", mode="before")
    @classmethod
    def _parse_int(cls, value: Any) -> int:
        return _to_int(value)

    @field_validator("delay", "total_time_hint", mode="before")
    @classmethod
    def _parse_float(cls, value: Any) -> float:
        return _to_float(value)

    @field_validator("node_id", mode="before")
    @classmethod
    def _parse_node_id(cls, value: Any) -> int:
        return parse_node_id(value)

    @classmethod
    def from_cells(cls, cells: dict[str, Any]) -> ScriptRow:
        """
        Build a row from a column -> cell mapping.

        Raises:
            RowParseError: If the node id is missing or not an integer
        """
        if "node_id" not in cells:
            raise RowParseError("Row has no node id")
        node_id = parse_node_id(cells["node_id"])
        values = {k: v for k, v in cells.items() if k in COLUMNS and k != "node_id"}
        return cls(node_id=node_id, **values)

    @property
    def is_self(self) -> bool:
        return self.side is Side.SELF

    @property
    def is_terminal(self) -> bool:
        return self.flag is RowFlag.END

    @property
    def caption(self) -> str:
        """Button text for an option row."""
        return self.option_label or self.content


def is_option_set(rows: Sequence[ScriptRow]) -> bool:
    """A node is a choice if it has several rows or one OPTION row."""
    return len(rows) > 1 or (len(rows) == 1 and rows[0].flag is RowFlag.OPTION)


def _column_map(header: Sequence[Any]) -> Optional[list[Optional[str]]]:
    """Map header cells to column names, or None if the header is unknown."""
    known = {_normalize(c): c for c in COLUMNS}
    known.update(_HEADER_ALIASES)

    mapping = []
    for cell in header:
        key = _normalize(cell) if cell is not None else ""
        mapping.append(known.get(key))

    if "node_id" not in mapping:
        return None
    return mapping


def _is_blank(cells: Sequence[Any]) -> bool:
    return all(c is None or str(c).strip() == "" for c in cells)


class ScriptStore:
    """
    Read-only index of script rows by node id.

    Usage:
        store = ScriptStore.load("data/dialog.csv")
        rows = store.get_node(1001)
    """

    def __init__(
        self,
        nodes: Optional[dict[int, list[ScriptRow]]] = None,
        time_hint: Optional[float] = None,
    ):
        self._nodes: dict[int, list[ScriptRow]] = nodes or {}
        self._time_hint = time_hint

    @classmethod
    def load(cls, source: str | Path) -> ScriptStore:
        """
        Load a script table from a .csv, .tsv or .xlsx file.

        The first row is a header.

        Raises:
            LoadError: If the file is missing, unreadable or has no usable rows
        """
        path = Path(source)
        if not path.is_file():
            raise LoadError(f"Script not found: {path}")

        suffix = path.suffix.lower()
        if suffix in (".csv", ".tsv"):
            table = cls._read_delimited(path, "\t" if suffix == ".tsv" else ",")
        elif suffix == ".xlsx":
            table = cls._read_xlsx(path)
        else:
            raise LoadError(f"Unsupported script format: {path.suffix or path.name}")

        if not table:
            raise LoadError(f"Script {path} is empty")

        header, rows = table[0], table[1:]
        store = cls.from_rows(rows, header=header)
        logger.info(f"Loaded script {path.name}: {len(store)} nodes")
        return store

    @staticmethod
    def _read_delimited(path: Path, delimiter: str) -> list[list[str]]:
        try:
            with open(path, 'r', encoding='utf-8-sig', newline='') as f:
                return [row for row in csv.reader(f, delimiter=delimiter)]
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise LoadError(f"Failed to read script {path}: {e}") from e

    @staticmethod
    def _read_xlsx(path: Path) -> list[list[Any]]:
        from openpyxl import load_workbook

        try:
            workbook = load_workbook(path, read_only=True, data_only=True)
        except Exception as e:
            raise LoadError(f"Failed to open workbook {path}: {e}") from e

        try:
            sheet = workbook.worksheets[0]
            return [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Sequence[Any]],
        header: Optional[Sequence[Any]] = None,
    ) -> ScriptStore:
        """
        Build a store from cell sequences.

        Args:
            rows: Data rows (no header)
            header: Column names; None (or an unrecognised header) reads
                columns positionally in COLUMNS order

        Raises:
            LoadError: If no row could be parsed
        """
        mapping = _column_map(header) if header is not None else None
        if mapping is None:
            if header is not None:
                logger.warning("Unrecognised script header, reading columns by position")
            mapping = list(COLUMNS)

        nodes: dict[int, list[ScriptRow]] = {}
        time_hint = 0.0
        for line_no, cells in enumerate(rows, start=1):
            if _is_blank(cells):
                continue
            values = {
                column: cell
                for column, cell in zip(mapping, cells)
                if column is not None
            }
            try:
                row = ScriptRow.from_cells(values)
            except RowParseError as e:
                logger.warning(f"Dropping script row {line_no}: {e}")
                continue
            nodes.setdefault(row.node_id, []).append(row)
            if time_hint == 0 and row.total_time_hint > 0:
                time_hint = row.total_time_hint

        if not nodes:
            raise LoadError("Script has no valid rows")
        return cls(nodes, time_hint=time_hint)

    def get_node(self, node_id: int) -> list[ScriptRow]:
        """Rows of a node in table order (empty if absent)."""
        return list(self._nodes.get(node_id, ()))

    def has_node(self, node_id: int) -> bool:
        return node_id in self._nodes

    @property
    def node_ids(self) -> list[int]:
        return list(self._nodes)

    def total_time_hint(self) -> float:
        """First positive total time configured in the table, else 0."""
        if self._time_hint is not None:
            return self._time_hint
        for rows in self._nodes.values():
            for row in rows:
                if row.total_time_hint > 0:
                    return row.total_time_hint
        return 0.0

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes
