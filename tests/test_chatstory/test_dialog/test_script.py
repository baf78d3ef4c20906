import pytest
from chatstory.dialog.script import (
    ScriptStore,
    ScriptRow,
    RowFlag,
    Side,
    LoadError,
    is_option_set,
)

HEADER = "flag,nodeId,character,side,content,jumpId,effect,target,delay,task,optionLabel,costTime,totalTimeHint,consequence"

def write_csv(tmp_path, *lines, name="dialog.csv"):
    path = tmp_path / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path

def test_load_csv_groups_rows_by_node(tmp_path):
    path = write_csv(
        tmp_path,
        HEADER,
        "#,100,Mira,Left,Hi,101,,,,,,,,",
        "&,101,,Right,Yes,200,,,,,Agree,5,,",
        "&,101,,Right,No,300,,,,,,,,",
    )

    store = ScriptStore.load(path)

    assert len(store) == 2
    assert store.has_node(100)
    options = store.get_node(101)
    assert [r.content for r in options] == ["Yes", "No"]
    assert [r.jump_id for r in options] == [200, 300]
    assert options[0].option_label == "Agree"
    assert options[0].cost_time == 5

def test_bad_cells_default_to_zero_values():
    store = ScriptStore.from_rows([
        ("#", "100", "Mira", "Left", "Hi", "abc", "", "", "soon", "", "", "x", "?", ""),
    ])

    row = store.get_node(100)[0]
    assert row.jump_id == 0
    assert row.delay == 0.0
    assert row.cost_time == 0
    assert row.total_time_hint == 0.0

def test_non_finite_numbers_default_to_zero():
    store = ScriptStore.from_rows([
        ("#", 1, "Mira", "Left", "Hi", 0, "", "", "inf", "", "", "nan", float("nan"), ""),
        ("#", 2, "Mira", "Left", "Hi", 0, "", "", float("-inf")),
    ])

    row = store.get_node(1)[0]
    assert row.delay == 0.0
    assert row.cost_time == 0
    assert row.total_time_hint == 0.0
    assert store.get_node(2)[0].delay == 0.0

def test_row_with_bad_node_id_is_dropped():
    store = ScriptStore.from_rows([
        ("#", "oops", "Mira", "Left", "lost"),
        ("#", "5", "Mira", "Left", "kept"),
    ])

    assert store.node_ids == [5]

def test_get_missing_node_returns_empty_list(make_store):
    store = make_store(("#", 1, "", "Left", "x"))
    assert store.get_node(99) == []
    assert not store.has_node(99)
    assert 1 in store

def test_get_node_returns_a_copy(make_store):
    store = make_store(("#", 1, "", "Left", "x"))
    store.get_node(1).clear()
    assert len(store.get_node(1)) == 1

def test_missing_file_raises(tmp_path):
    with pytest.raises(LoadError):
        ScriptStore.load(tmp_path / "nope.csv")

def test_unsupported_format_raises(tmp_path):
    path = tmp_path / "dialog.txt"
    path.write_text("hello")
    with pytest.raises(LoadError):
        ScriptStore.load(path)

def test_header_only_is_empty(tmp_path):
    path = write_csv(tmp_path, HEADER)
    with pytest.raises(LoadError):
        ScriptStore.load(path)

def test_no_parseable_rows_is_empty():
    with pytest.raises(LoadError):
        ScriptStore.from_rows([("#", "x"), ("", "")])

def test_header_order_is_respected(tmp_path):
    path = write_csv(
        tmp_path,
        "Node ID,Content,Flag,Jump ID",
        "7,Hello,END,8",
    )

    row = ScriptStore.load(path).get_node(7)[0]

    assert row.content == "Hello"
    assert row.flag is RowFlag.END
    assert row.jump_id == 8

def test_unrecognised_header_reads_by_position(tmp_path):
    path = write_csv(tmp_path, "a,b,c,d,e", "#,3,Mira,Right,Me")

    row = ScriptStore.load(path).get_node(3)[0]

    assert row.character == "Mira"
    assert row.side is Side.SELF

def test_tsv(tmp_path):
    path = write_csv(tmp_path, HEADER.replace(",", "\t"), "#\t4\tMira\tLeft\tHey", name="dialog.tsv")
    assert ScriptStore.load(path).get_node(4)[0].content == "Hey"

def test_xlsx(tmp_path):
    from openpyxl import Workbook

    wb = Workbook()
    ws = wb.active
    ws.append(HEADER.split(","))
    ws.append(["#", 10, "Mira", "Left", "From a sheet", 11.0, None, None, 1.5])
    path = tmp_path / "dialog.xlsx"
    wb.save(path)

    row = ScriptStore.load(path).get_node(10)[0]

    assert row.content == "From a sheet"
    assert row.jump_id == 11
    assert row.delay == 1.5

def test_corrupt_xlsx_raises(tmp_path):
    path = tmp_path / "dialog.xlsx"
    path.write_bytes(b"not a zip")
    with pytest.raises(LoadError):
        ScriptStore.load(path)

@pytest.mark.parametrize("raw,expected", [
    ("#", RowFlag.LINE),
    ("&", RowFlag.OPTION),
    ("END", RowFlag.END),
    ("end", RowFlag.END),
    ("?", RowFlag.LINE),
    ("", RowFlag.LINE),
])
def test_flag_parsing(raw, expected):
    assert ScriptRow(node_id=1, flag=raw).flag is expected

@pytest.mark.parametrize("raw,is_self", [
    ("Right", True),
    ("右", True),
    ("right", True),
    ("Left", False),
    ("左", False),
    ("", False),
])
def test_side_parsing(raw, is_self):
    assert ScriptRow(node_id=1, side=raw).is_self is is_self

def test_caption_prefers_option_label():
    assert ScriptRow(node_id=1, content="long text", option_label="Short").caption == "Short"
    assert ScriptRow(node_id=1, content="long text").caption == "long text"

def test_option_set_classification():
    line = ScriptRow(node_id=1, flag="#")
    option = ScriptRow(node_id=1, flag="&")

    assert not is_option_set([line])
    assert is_option_set([option])
    assert is_option_set([line, line])

def test_total_time_hint_takes_first_in_table_order():
    store = ScriptStore.from_rows([
        ("#", 1, "", "", "a", 2),
        ("#", 2, "", "", "b", 0, "", "", "", "", "", "", "300"),
        ("#", 1, "", "", "c", 0, "", "", "", "", "", "", "450"),
    ])
    assert store.total_time_hint() == 300.0

def test_blank_rows_are_skipped():
    store = ScriptStore.from_rows([
        ("", "", ""),
        ("#", 1, "", "", "a"),
    ])
    assert store.node_ids == [1]
