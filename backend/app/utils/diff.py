"""
Text diffing for content versions.

``create_diff`` produces character-level operations as ``(op, text)`` pairs
where op is -1 (delete), 0 (equal) or 1 (insert). ``create_line_diff``
produces line entries for rendering a review view with word-level changes
inside modified lines.
"""
import re
from difflib import SequenceMatcher
from typing import Any

DIFF_DELETE = -1
DIFF_EQUAL = 0
DIFF_INSERT = 1

CONTEXT_LINES = 2


def _opcodes_to_ops(old: list[str] | str, new: list[str] | str, joiner: str = "") -> list[tuple[int, str]]:
    matcher = SequenceMatcher(None, old, new, autojunk=False)
    ops: list[tuple[int, str]] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            ops.append((DIFF_EQUAL, joiner.join(old[i1:i2])))
            continue
        if tag in ("delete", "replace"):
            ops.append((DIFF_DELETE, joiner.join(old[i1:i2])))
        if tag in ("insert", "replace"):
            ops.append((DIFF_INSERT, joiner.join(new[j1:j2])))
    return ops


def create_diff(old_text: str, new_text: str) -> list[tuple[int, str]]:
    if not old_text and not new_text:
        return []
    return _opcodes_to_ops(old_text or "", new_text or "")


def _inline_changes(old_line: str, new_line: str) -> list[dict[str, str]]:
    # Tokenize on word boundaries but keep whitespace so joins are lossless.
    old_tokens = re.findall(r"\s+|\S+", old_line)
    new_tokens = re.findall(r"\s+|\S+", new_line)
    kinds = {DIFF_EQUAL: "unchanged", DIFF_DELETE: "remove", DIFF_INSERT: "add"}
    return [
        {"type": kinds[op], "content": text}
        for op, text in _opcodes_to_ops(old_tokens, new_tokens)
        if text
    ]


def create_line_diff(old_text: str, new_text: str) -> list[dict[str, Any]]:
    old_lines = (old_text or "").split("\n")
    new_lines = (new_text or "").split("\n")
    if old_lines == new_lines:
        return []

    matcher = SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    entries: list[dict[str, Any]] = []
    for group in matcher.get_grouped_opcodes(CONTEXT_LINES):
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                for offset, line in enumerate(new_lines[j1:j2]):
                    entries.append({"type": "context", "line_number": j1 + offset + 1, "content": line})
                continue

            if tag == "replace":
                paired = min(i2 - i1, j2 - j1)
                for offset in range(paired):
                    old_line = old_lines[i1 + offset]
                    new_line = new_lines[j1 + offset]
                    entries.append(
                        {
                            "type": "modify",
                            "line_number": j1 + offset + 1,
                            "content": new_line,
                            "old_content": old_line,
                            "inline_changes": _inline_changes(old_line, new_line),
                        }
                    )
                i1 += paired
                j1 += paired

            for offset, line in enumerate(old_lines[i1:i2]):
                entries.append({"type": "remove", "line_number": i1 + offset + 1, "content": line})
            for offset, line in enumerate(new_lines[j1:j2]):
                entries.append({"type": "add", "line_number": j1 + offset + 1, "content": line})
    return entries


def diff_summary(line_diff: list[dict[str, Any]]) -> dict[str, int]:
    summary = {"added": 0, "removed": 0, "modified": 0}
    for entry in line_diff:
        if entry["type"] == "add":
            summary["added"] += 1
        elif entry["type"] == "remove":
            summary["removed"] += 1
        elif entry["type"] == "modify":
            summary["modified"] += 1
    return summary
