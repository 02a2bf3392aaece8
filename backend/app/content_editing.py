"""Manual edits of generated content, versioning and export."""
import html
import json
import logging
import uuid
from typing import Any

import markdown
from sqlmodel import Session

from app import crud
from app.core.errors import ForbiddenError, InvalidInputError
from app.models import Content, ContentStatus, ContentVersion, User
from app.utils.diff import create_diff, create_line_diff, diff_summary
from app.utils.markdown import analyze_content_structure, rewrite_internal_links, to_markdown_document
from app.utils.misc import format_date
from app.utils.text import calculate_content_stats, calculate_readability_score

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("md", "mdx", "html", "json")

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title}</title>
<style>
body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; line-height: 1.6; max-width: 800px; margin: 0 auto; padding: 40px 20px; color: #333; }}
pre {{ background: #f5f5f5; padding: 16px; border-radius: 8px; overflow-x: auto; }}
code {{ background: #f0f0f0; padding: 2px 4px; border-radius: 4px; }}
.internal-link {{ color: #0066cc; text-decoration: none; border-bottom: 1px dotted #0066cc; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""


def edit_content_body(
    *, session: Session, db_content: Content, user_id: uuid.UUID, body: str
) -> tuple[Content, ContentVersion | None]:
    """
    Replace the body of a piece of content and record what changed as a new
    version. Returns the content and the version, or ``None`` when the body is
    unchanged.
    """
    old_body = db_content.body or ""
    if body == old_body:
        return db_content, None

    line_diff = create_line_diff(old_body, body)
    version_number = crud.get_next_version_number(session=session, content_id=db_content.id)
    version = crud.create_content_version(
        session=session,
        content_id=db_content.id,
        user_id=user_id,
        version=version_number,
        meta={
            "diff": [list(op) for op in create_diff(old_body, body)],
            "line_diff": line_diff,
            "changed_fields": ["body"],
            "summary": diff_summary(line_diff),
        },
    )

    stats = {**(db_content.stats or {}), **calculate_content_stats(body)}
    content = crud.update_content_fields(
        session=session,
        content_id=db_content.id,
        body=body,
        stats=stats,
        current_version=version_number,
    )
    logger.info("Saved version %s of content %s", version_number, db_content.id)
    return content, version


def approve_content(*, session: Session, db_content: Content) -> Content:
    if db_content.status != ContentStatus.draft:
        raise InvalidInputError(
            f"Only drafts can be approved, content is {db_content.status.value}"
        )
    return crud.update_content_status(
        session=session, content_id=db_content.id, status=ContentStatus.approved
    )


def _owned_contents(session: Session, ids: list[uuid.UUID], user: User, action: str) -> list[Content]:
    contents = crud.get_contents_by_ids(session=session, content_ids=ids)
    allowed = {
        content.id for content in contents if content.user_id == user.id or user.is_superuser
    }
    denied = [str(content_id) for content_id in dict.fromkeys(ids) if content_id not in allowed]
    if denied:
        raise ForbiddenError(
            f"You don't have permission to {action} content items: {', '.join(denied)}",
            data={"ids": denied},
        )
    return [content for content in contents if content.id in allowed]


def bulk_delete_content(*, session: Session, ids: list[uuid.UUID], user: User) -> int:
    contents = _owned_contents(session, ids, user, "delete")
    deleted = crud.delete_contents(session=session, contents=contents)
    logger.info("Bulk deleted %s content item(s) for user %s", deleted, user.id)
    return deleted


def bulk_approve_content(*, session: Session, ids: list[uuid.UUID], user: User) -> list[Content]:
    """Approve several drafts at once. Nothing is approved unless every item is an owned draft."""
    contents = _owned_contents(session, ids, user, "approve")
    not_drafts = [str(content.id) for content in contents if content.status != ContentStatus.draft]
    if not_drafts:
        raise InvalidInputError(
            f"Only drafts can be approved: {', '.join(not_drafts)}", data={"ids": not_drafts}
        )
    return crud.update_contents_status(session=session, contents=contents, status=ContentStatus.approved)


def analyze_content(db_content: Content) -> dict[str, Any]:
    return {
        "structure": analyze_content_structure(db_content.body),
        "readability": calculate_readability_score(db_content.body),
    }


def _html_document(title: str, body: str) -> str:
    rendered = markdown.markdown(body, extensions=["fenced_code", "tables"])
    return HTML_TEMPLATE.format(title=html.escape(title or "Untitled"), body=rendered)


def export_content(db_content: Content, export_format: str) -> tuple[str, str]:
    """Render content for download. Returns (payload, media type)."""
    meta = db_content.meta or {}
    title = meta.get("title") or ""
    if export_format in ("md", "mdx"):
        document = rewrite_internal_links(to_markdown_document(title, db_content.body))
        return document, "text/markdown" if export_format == "md" else "text/mdx"
    if export_format == "html":
        body = rewrite_internal_links(to_markdown_document(title, db_content.body), html=True)
        return _html_document(title, body), "text/html"
    if export_format == "json":
        payload = {
            "id": str(db_content.id),
            "meta": meta,
            "stats": db_content.stats or {},
            "body": db_content.body,
            "status": db_content.status.value,
            "version": db_content.current_version,
            "updated": format_date(db_content.updated_at),
        }
        return json.dumps(payload, ensure_ascii=False, indent=2), "application/json"
    raise InvalidInputError(
        f"Unsupported export format: {export_format}", data={"formats": list(EXPORT_FORMATS)}
    )
