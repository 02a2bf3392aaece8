import re

from app.utils.text import create_slug

_TITLE = re.compile(r"^#\s+(.*)", re.MULTILINE)
_LEADING_TITLE = re.compile(r"^#\s+.*\n?")
_INTERNAL_LINK = re.compile(r"\[\[([^|\]]+)(?:\|([^\]]+))?\]\]")


def extract_title_from_markdown(markdown: str) -> str:
    match = _TITLE.search(markdown or "")
    return match.group(1).strip() if match else ""


def remove_title_from_markdown(markdown: str) -> str:
    """Drop the H1 only when it is the very first line."""
    return _LEADING_TITLE.sub("", markdown or "", count=1)


def analyze_content_structure(text: str) -> dict[str, int]:
    text = text or ""
    blocks = [block for block in re.split(r"\n\s*\n", text) if block.strip()]
    return {
        "headings": len(re.findall(r"^#{1,6}\s", text, re.MULTILINE)),
        "paragraphs": sum(1 for block in blocks if not re.match(r"^#{1,6}\s|^[*\-+\d]", block)),
        "lists": len(re.findall(r"^[*\-+]\s", text, re.MULTILINE)),
        "code_blocks": len(re.findall(r"```[\s\S]*?```", text)),
        "links": len(re.findall(r"(?<!!)\[([^\]]+)\]\([^)]+\)", text)),
        "images": len(re.findall(r"!\[([^\]]*)\]\([^)]+\)", text)),
        "words": len(text.split()),
    }


def to_markdown_document(title: str, body: str) -> str:
    """Re-attach a title to a stored body for export."""
    body = (body or "").lstrip("\n")
    if not title:
        return body
    return f"# {title}\n\n{body}"


def rewrite_internal_links(text: str, *, html: bool = False) -> str:
    """Turn ``[[target]]`` and ``[[target|label]]`` into anchor links to ``#<slug of target>``."""

    def _replace(match: re.Match) -> str:
        target = match.group(1).strip()
        label = (match.group(2) or target).strip()
        anchor = create_slug(target)
        if html:
            return f'<a href="#{anchor}" class="internal-link">{label}</a>'
        return f"[{label}](#{anchor})"

    return _INTERNAL_LINK.sub(_replace, text or "")
