from __future__ import annotations

from typing import Any

import pytest
import requests

BASE = "http://fotolog.test"


class FakeResponse:
    def __init__(
        self,
        *,
        text: str = "",
        payload: Any = None,
        content: bytes = b"",
        status_code: int = 200,
    ) -> None:
        self.text = text
        self._payload = payload
        self.content = content
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Client Error")

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    def iter_content(self, chunk_size: int = 8192):  # noqa: D401 - generator helper
        yield self.content

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Serves canned pages, images and comment batches and records every call."""

    def __init__(
        self,
        *,
        pages: dict[str, str] | None = None,
        images: dict[str, bytes] | None = None,
        batches: dict[tuple[int, int], Any] | None = None,
    ) -> None:
        self.pages = dict(pages or {})
        self.images = dict(images or {})
        self.batches = dict(batches or {})
        self.calls: list[tuple[Any, ...]] = []

    def get(self, url: str, *, timeout: float, stream: bool = False):  # noqa: D401 - signature matches requests
        self.calls.append(("GET", url))
        if url in self.pages:
            return FakeResponse(text=self.pages[url])
        if url in self.images:
            return FakeResponse(content=self.images[url])
        return FakeResponse(status_code=404)

    def post(self, url: str, *, data: dict[str, Any], timeout: float):  # noqa: D401
        key = (int(data["identifier"]), int(data["offset"]))
        self.calls.append(("POST", url, data["user_name"], key[0], key[1]))
        payload = self.batches.get(key, {"success": True, "comments": []})
        return FakeResponse(payload=payload)

    def comment_offsets(self, post_id: int) -> list[int]:
        return [call[4] for call in self.calls if call[0] == "POST" and call[3] == post_id]


def mosaic_html(post_hrefs: list[str], pagination_hrefs: list[str] | None = None) -> str:
    posts = "".join(f'<a href="{href}"><img src="thumb.jpg"></a>' for href in post_hrefs)
    pagination = ""
    if pagination_hrefs is not None:
        anchors = "".join(
            f'<a href="{href}">{index}</a>' for index, href in enumerate(pagination_hrefs, start=1)
        )
        pagination = f'<div id="pagination">{anchors}</div>'
    return (
        "<html><body>"
        f'<div id="list_photos_mosaic">{posts}</div>'
        f"{pagination}"
        "</body></html>"
    )


def comment_html(username: str, posted: str, message: str) -> str:
    return (
        '<div class="flog_img_comments">'
        f'<img class="comment_avatar" src="{BASE}/avatars/{username}.jpg">'
        f"<p><b>{username}</b> {posted}<br><br>{message}</p>"
        "</div>"
    )


def post_html(
    *,
    image_url: str,
    description: str,
    lang: str | None = "en",
    comments: list[str] | None = None,
    include_image: bool = True,
) -> str:
    lang_attr = f' lang="{lang}"' if lang else ""
    image = f'<div id="flog_img_holder"><img src="{image_url}"></div>' if include_image else ""
    login_prompt = '<div class="flog_img_comments"><p>Log in to leave a comment</p></div>'
    return (
        f"<html{lang_attr}><body>"
        f"{image}"
        f'<div id="description_photo">{description}</div>'
        f"{login_prompt}"
        f"{''.join(comments or [])}"
        "</body></html>"
    )


def raw_comment(username: str, message: str, posted: str = "2011-01-20 20/01/2011") -> dict[str, Any]:
    return {
        "avatar": f"{BASE}/avatars/{username}.jpg",
        "poster_user_name": username,
        "posted": posted,
        "message": message,
    }


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def html():
    """Page builders shared by the traversal tests."""

    class Builders:
        mosaic = staticmethod(mosaic_html)
        post = staticmethod(post_html)
        comment = staticmethod(comment_html)
        raw_comment = staticmethod(raw_comment)

    return Builders
