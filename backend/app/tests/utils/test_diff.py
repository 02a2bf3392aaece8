from app.utils.diff import (
    DIFF_DELETE,
    DIFF_EQUAL,
    DIFF_INSERT,
    create_diff,
    create_line_diff,
    diff_summary,
)


def test_create_diff_character_operations():
    ops = create_diff("abc", "abd")

    assert ops == [(DIFF_EQUAL, "ab"), (DIFF_DELETE, "c"), (DIFF_INSERT, "d")]
    assert "".join(text for op, text in ops if op != DIFF_DELETE) == "abd"
    assert create_diff("", "") == []


def test_line_diff_marks_modified_line_with_inline_changes():
    entries = create_line_diff("a\nb\nc", "a\nB\nc")

    assert [entry["type"] for entry in entries] == ["context", "modify", "context"]
    modified = entries[1]
    assert modified["line_number"] == 2
    assert modified["old_content"] == "b"
    assert modified["inline_changes"] == [
        {"type": "remove", "content": "b"},
        {"type": "add", "content": "B"},
    ]
    assert diff_summary(entries) == {"added": 0, "removed": 0, "modified": 1}


def test_line_diff_added_and_removed_lines():
    added = create_line_diff("a", "a\nb")
    removed = create_line_diff("a\nb", "a")

    assert added[-1] == {"type": "add", "line_number": 2, "content": "b"}
    assert removed[-1] == {"type": "remove", "line_number": 2, "content": "b"}
    assert diff_summary(added)["added"] == 1
    assert diff_summary(removed)["removed"] == 1


def test_identical_text_has_no_line_diff():
    assert create_line_diff("same\ntext", "same\ntext") == []
