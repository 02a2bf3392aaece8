import json
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlmodel import Session

from app import crud
from app.core.config import settings
from app.integrations.billing import EVENT_GENERATED_CONTENT
from app.models import ContentStatus, UsageEvent, User
from app.tests.api.conftest import auth_headers
from app.tests.helpers import make_agent, make_content

API = settings.API_V1_STR
BODY = "Teams that ship weekly keep customers close.\n\nStart with a template."


def test_create_content_enqueues_generation(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)

    with patch("app.api.routes.content.enqueue") as enqueue:
        response = client.post(
            f"{API}/content/",
            headers=headers,
            json={
                "agent_id": str(agent.id),
                "request": {"description": "Release notes for v2", "layout": "changelog"},
            },
        )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["request"] == {"description": "Release notes for v2", "layout": "changelog"}
    assert body["current_version"] is None
    enqueue.assert_called_once()
    assert enqueue.call_args.args[0] == f"content:{body['id']}"


def test_create_content_rejects_unknown_layout(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)

    response = client.post(
        f"{API}/content/",
        headers=headers,
        json={"agent_id": str(agent.id), "request": {"description": "x", "layout": "poem"}},
    )
    assert response.status_code == 422


def test_create_content_monthly_limit(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    for _ in range(3):
        session.add(UsageEvent(user_id=user.id, event=EVENT_GENERATED_CONTENT))
    session.commit()

    with patch("app.api.routes.content.enqueue") as enqueue:
        response = client.post(
            f"{API}/content/",
            headers=headers,
            json={"agent_id": str(agent.id), "request": {"description": "One more post"}},
        )

    assert response.status_code == 429
    enqueue.assert_not_called()


def test_create_content_for_foreign_agent(client: TestClient, session: Session, user: User, other_user: User):
    agent = make_agent(session, user)

    response = client.post(
        f"{API}/content/",
        headers=auth_headers(other_user),
        json={"agent_id": str(agent.id), "request": {"description": "Not mine"}},
    )
    assert response.status_code == 403


def test_list_content_filters_by_status(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    draft = make_content(session, agent, body=BODY)
    crud.update_content_status(session=session, content_id=draft.id, status=ContentStatus.draft)
    make_content(session, agent)

    response = client.get(f"{API}/content/", headers=headers, params={"status": ["draft"]})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["data"][0]["id"] == str(draft.id)

    everything = client.get(f"{API}/content/", headers=headers, params={"agent_ids": [str(agent.id)]})
    assert everything.json()["count"] == 2


def test_edit_body_creates_versions(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    content = make_content(session, agent, body="Line one\nLine two")

    response = client.put(
        f"{API}/content/{content.id}/body", headers=headers, json={"body": "Line one\nLine 2"}
    )
    assert response.status_code == 200
    assert response.json()["current_version"] == 1
    assert response.json()["stats"]["words_count"] == "4"

    unchanged = client.put(
        f"{API}/content/{content.id}/body", headers=headers, json={"body": "Line one\nLine 2"}
    )
    assert unchanged.json()["current_version"] == 1

    versions = client.get(f"{API}/content/{content.id}/versions", headers=headers).json()
    assert [version["version"] for version in versions] == [1]
    assert versions[0]["meta"]["changed_fields"] == ["body"]
    assert versions[0]["meta"]["summary"] == {"added": 0, "removed": 0, "modified": 1}

    assert client.get(f"{API}/content/{content.id}/versions/1", headers=headers).status_code == 200
    assert client.get(f"{API}/content/{content.id}/versions/9", headers=headers).status_code == 404


def test_only_drafts_can_be_approved(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    content = make_content(session, agent, body=BODY)

    pending = client.post(f"{API}/content/{content.id}/approve", headers=headers)
    assert pending.status_code == 400

    crud.update_content_status(session=session, content_id=content.id, status=ContentStatus.draft)
    approved = client.post(f"{API}/content/{content.id}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"


def test_update_meta_merges_fields(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    content = make_content(session, agent, body=BODY)
    crud.update_content_fields(session=session, content_id=content.id, meta={"title": "Weekly", "slug": "weekly"})

    response = client.patch(
        f"{API}/content/{content.id}", headers=headers, json={"meta": {"description": "Ship often."}}
    )

    meta = response.json()["meta"]
    assert meta["title"] == "Weekly"
    assert meta["description"] == "Ship often."


def test_export_formats(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    content = make_content(session, agent, body=BODY)
    crud.update_content_fields(session=session, content_id=content.id, meta={"title": "Weekly", "slug": "weekly"})

    markdown = client.get(f"{API}/content/{content.id}/export", headers=headers, params={"format": "md"})
    assert markdown.status_code == 200
    assert markdown.text == f"# Weekly\n\n{BODY}"
    assert markdown.headers["content-type"].startswith("text/markdown")
    assert markdown.headers["content-disposition"] == 'attachment; filename="weekly.md"'

    exported = client.get(f"{API}/content/{content.id}/export", headers=headers, params={"format": "json"})
    payload = json.loads(exported.text)
    assert payload["body"] == BODY
    assert payload["meta"]["slug"] == "weekly"

    unsupported = client.get(f"{API}/content/{content.id}/export", headers=headers, params={"format": "pdf"})
    assert unsupported.status_code == 400
    assert unsupported.json()["data"] == {"formats": ["md", "mdx", "html", "json"]}


def test_export_rewrites_internal_links(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    body = "Read [[Release Notes|our notes]] and [[Roadmap]].\n\n```\ncode\n```"
    content = make_content(session, agent, body=body)
    crud.update_content_fields(session=session, content_id=content.id, meta={"title": "Weekly", "slug": "weekly"})

    mdx = client.get(f"{API}/content/{content.id}/export", headers=headers, params={"format": "mdx"})
    assert mdx.status_code == 200
    assert mdx.headers["content-disposition"] == 'attachment; filename="weekly.mdx"'
    assert "Read [our notes](#release-notes) and [Roadmap](#roadmap)." in mdx.text
    assert "[[" not in mdx.text

    markdown = client.get(f"{API}/content/{content.id}/export", headers=headers, params={"format": "md"})
    assert "[our notes](#release-notes)" in markdown.text

    page = client.get(f"{API}/content/{content.id}/export", headers=headers, params={"format": "html"})
    assert page.status_code == 200
    assert page.headers["content-type"].startswith("text/html")
    assert page.text.startswith("<!DOCTYPE html>")
    assert "<title>Weekly</title>" in page.text
    assert "<h1>Weekly</h1>" in page.text
    assert '<a href="#release-notes" class="internal-link">our notes</a>' in page.text
    assert "<pre><code>code\n</code></pre>" in page.text


def test_analysis(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    content = make_content(session, agent, body="## Start\n\n" + BODY)

    response = client.get(f"{API}/content/{content.id}/analysis", headers=headers)

    body = response.json()
    assert body["structure"]["headings"] == 1
    assert body["readability"]["level"]


def test_content_is_private_and_deletable(client: TestClient, session: Session, user: User, other_user: User, headers):
    agent = make_agent(session, user)
    content = make_content(session, agent, body=BODY)

    assert client.get(f"{API}/content/{content.id}", headers=auth_headers(other_user)).status_code == 403

    deleted = client.delete(f"{API}/content/{content.id}", headers=headers)
    assert deleted.json() == {"message": "Content deleted successfully"}
    assert client.get(f"{API}/content/{content.id}", headers=headers).status_code == 404


def test_bulk_approve_drafts(client: TestClient, session: Session, user: User, headers):
    agent = make_agent(session, user)
    drafts = [make_content(session, agent, body=BODY) for _ in range(2)]
    for draft in drafts:
        crud.update_content_status(session=session, content_id=draft.id, status=ContentStatus.draft)
    pending = make_content(session, agent)

    rejected = client.post(
        f"{API}/content/bulk-approve",
        headers=headers,
        json={"ids": [str(drafts[0].id), str(pending.id)]},
    )
    assert rejected.status_code == 400
    assert rejected.json()["data"] == {"ids": [str(pending.id)]}
    assert crud.get_content(session=session, content_id=drafts[0].id).status == ContentStatus.draft

    response = client.post(
        f"{API}/content/bulk-approve", headers=headers, json={"ids": [str(draft.id) for draft in drafts]}
    )
    assert response.json() == {"approved_count": 2}
    for draft in drafts:
        session.refresh(draft)
        assert draft.status == ContentStatus.approved


def test_bulk_delete_requires_ownership(
    client: TestClient, session: Session, user: User, other_user: User, headers
):
    mine = make_content(session, make_agent(session, user), body=BODY)
    theirs = make_content(session, make_agent(session, other_user), body=BODY)

    denied = client.post(
        f"{API}/content/bulk-delete", headers=headers, json={"ids": [str(mine.id), str(theirs.id)]}
    )
    assert denied.status_code == 403
    assert denied.json()["data"] == {"ids": [str(theirs.id)]}
    assert client.get(f"{API}/content/{mine.id}", headers=headers).status_code == 200

    response = client.post(f"{API}/content/bulk-delete", headers=headers, json={"ids": [str(mine.id)]})
    assert response.json() == {"deleted_count": 1}
    assert client.get(f"{API}/content/{mine.id}", headers=headers).status_code == 404

    empty = client.post(f"{API}/content/bulk-delete", headers=headers, json={"ids": []})
    assert empty.status_code == 422
