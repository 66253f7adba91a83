"""Core traversal utilities for exporting a Fotolog user's posts."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, List, Sequence, TypeVar
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup, Tag

from .dates import DateParser, parse_caption_date

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BASE_URL = "http://www.fotolog.com"
COMMENTS_URL = "http://fotolog.com/ajax/load_more_comments"
POSTS_PER_MOSAIC_PAGE = 30
COMMENTS_PER_BATCH = 45
DEFAULT_TIMEOUT = 30.0

LAYOUTS = {"dated", "flat"}
COMMENT_FILE_MODES = {"combined", "separate"}

EMBEDDED_COMMENT_DATE_RE = re.compile(r"\d{2}/\d{2}/\d{4}")
DOUBLE_BREAK_RE = re.compile(r"<br\s*/?>\s*<br\s*/?>", re.IGNORECASE)

T = TypeVar("T")
R = TypeVar("R")


class FotologError(RuntimeError):
    """Base class for errors that abort an export run."""


class TransportError(FotologError):
    """Raised when a request fails or returns a non-2xx status."""


class ParseError(FotologError):
    """Raised when a page or JSON response lacks an expected field."""


@dataclass(slots=True, frozen=True)
class ExportOptions:
    """Configuration shared by every stage of a single export run."""

    username: str
    output_root: Path
    skip_comments: bool = False
    extract_dates: bool = True
    layout: str = "dated"
    comments_file: str | None = None
    base_url: str = BASE_URL
    comments_url: str = COMMENTS_URL
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        username = (self.username or "").strip()
        if not username:
            raise ValueError("A Fotolog username is required")
        if "/" in username:
            raise ValueError(f"Invalid Fotolog username: {username!r}")
        if self.layout not in LAYOUTS:
            raise ValueError(f"Unsupported layout: {self.layout}")
        comments_file = self.comments_file
        if comments_file is None:
            comments_file = "combined" if self.layout == "dated" else "separate"
        if comments_file not in COMMENT_FILE_MODES:
            raise ValueError(f"Unsupported comments file mode: {comments_file}")
        if self.timeout <= 0:
            raise ValueError("Timeout must be positive")
        object.__setattr__(self, "username", username)
        object.__setattr__(self, "comments_file", comments_file)
        object.__setattr__(self, "output_root", Path(self.output_root))
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def mosaic_url(self) -> str:
        return f"{self.base_url}/{self.username}/mosaic"

    @property
    def run_dir(self) -> Path:
        return self.output_root / f"fotolog_{self.username}_data"


@dataclass(slots=True, frozen=True)
class ListingPageLink:
    """One mosaic listing page and its pagination offset."""

    url: str
    offset: int


@dataclass(slots=True, frozen=True)
class Comment:
    avatar_url: str | None
    username: str
    date: str
    message: str


@dataclass(slots=True, frozen=True)
class PostRecord:
    """Everything persisted for one post."""

    id: int
    image_url: str
    description: str
    date: date | None = None
    comments: tuple[Comment, ...] | None = None


def build_session(user_agent: str, verify: bool) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.8",
            "Referer": f"{BASE_URL}/",
            "Connection": "keep-alive",
        }
    )
    session.verify = verify
    return session


def fetch(
    session: requests.Session,
    url: str,
    *,
    method: str = "GET",
    data: dict[str, Any] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    stream: bool = False,
) -> requests.Response:
    """Issue a single request. Failures are raised as :class:`TransportError`."""
    try:
        if method == "POST":
            response = session.post(url, data=data, timeout=timeout)
        else:
            response = session.get(url, timeout=timeout, stream=stream)
        response.raise_for_status()
    except requests.exceptions.RequestException as exc:
        raise TransportError(f"Failed to fetch {url!r}: {exc}") from exc
    return response


def fetch_html(session: requests.Session, url: str, *, timeout: float = DEFAULT_TIMEOUT) -> BeautifulSoup:
    response = fetch(session, url, timeout=timeout)
    return BeautifulSoup(response.text, "html.parser")


def fetch_json(
    session: requests.Session,
    url: str,
    *,
    data: dict[str, Any],
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    response = fetch(session, url, method="POST", data=data, timeout=timeout)
    try:
        return response.json()
    except ValueError as exc:
        raise ParseError(f"Failed to decode JSON from {url!r}: {exc}") from exc


def trailing_number(url: str) -> int | None:
    """Return the trailing numeric path segment of ``url``, if there is one."""
    segments = [segment for segment in urlsplit(url).path.split("/") if segment]
    if segments and segments[-1].isascii() and segments[-1].isdigit():
        return int(segments[-1])
    return None


def post_id_from_url(url: str) -> int:
    post_id = trailing_number(url)
    if post_id is None:
        raise ParseError(f"No numeric post id in {url!r}")
    return post_id


# Listing pages
# -------------


def extract_pagination_hrefs(soup: BeautifulSoup, page_url: str) -> List[str]:
    container = soup.select_one("#pagination")
    if container is None:
        return []
    return [urljoin(page_url, anchor.get("href") or "") for anchor in container.find_all("a")]


def _offset_from_href(mosaic_url: str, href: str) -> int:
    # The first page is linked as the bare mosaic URL, without an offset.
    if href.rstrip("/") == mosaic_url.rstrip("/"):
        return 0
    offset = trailing_number(href)
    if offset is None:
        raise ParseError(f"No pagination offset in {href!r}")
    return offset


def plan_listing_pages(mosaic_url: str, hrefs: Sequence[str]) -> List[ListingPageLink]:
    """Derive every mosaic page link from the first page's pagination anchors."""
    logger.info("Getting all mosaic pagination links...")
    if not hrefs:
        logger.info("- User has only one page of photos, no pagination")
        max_offset = 0
    elif len(hrefs) == 1:
        logger.info("- User has only one page of photos")
        max_offset = 0
    elif hrefs[-1].rstrip("/") == f"{mosaic_url}/{POSTS_PER_MOSAIC_PAGE}":
        # The widget only shows the next few pages and ends in a "next" link
        # pointing at offset 30, so the real last page is the link before it.
        logger.info("- User has up to 6 pages of photos")
        max_offset = _offset_from_href(mosaic_url, hrefs[-2])
    else:
        logger.info("- User has more than 6 pages of photos")
        max_offset = _offset_from_href(mosaic_url, hrefs[-1])
    return build_listing_pages(mosaic_url, max_offset)


def build_listing_pages(mosaic_url: str, max_offset: int) -> List[ListingPageLink]:
    if max_offset < 0:
        raise ValueError(f"Negative pagination offset: {max_offset}")
    last_index, remainder = divmod(max_offset, POSTS_PER_MOSAIC_PAGE)
    if remainder:
        logger.warning(
            "Pagination offset %d is not a multiple of %d; last page starts at %d",
            max_offset,
            POSTS_PER_MOSAIC_PAGE,
            last_index * POSTS_PER_MOSAIC_PAGE,
        )
    pages: List[ListingPageLink] = []
    for index in range(last_index + 1):
        offset = index * POSTS_PER_MOSAIC_PAGE
        url = mosaic_url if offset == 0 else f"{mosaic_url}/{offset}"
        pages.append(ListingPageLink(url=url, offset=offset))
    logger.info("- Built links for %d page(s)", len(pages))
    return pages


def extract_post_links(soup: BeautifulSoup, page_url: str) -> List[str]:
    container = soup.select_one("#list_photos_mosaic")
    if container is None:
        return []
    return [
        urljoin(page_url, anchor["href"])
        for anchor in container.find_all("a")
        if anchor.get("href")
    ]


def iterate_sequentially(
    items: Sequence[T],
    fetcher: Callable[[T], Iterable[R]],
    *,
    message: str | None = None,
) -> List[R]:
    """Run ``fetcher`` over ``items`` one at a time and concatenate the results.

    The call for an item only starts after the previous call has returned.
    Any exception aborts the iteration and propagates to the caller.
    """
    results: List[R] = []
    total = len(items)
    for index, item in enumerate(items, start=1):
        if message:
            logger.info("- %s - %d/%d", message, index, total)
        results.extend(fetcher(item))
    return results


# Comments
# --------


def _embedded_comment(element: Tag) -> Comment:
    paragraph = element.find("p", recursive=False)
    if paragraph is None:
        raise ParseError("Embedded comment has no message paragraph")
    date_match = EMBEDDED_COMMENT_DATE_RE.search(paragraph.get_text())
    if date_match is None:
        raise ParseError("Embedded comment has no dd/mm/yyyy date")
    avatar = element.select_one(".comment_avatar")
    author = element.select_one("p b")
    # Author and date come first; the message follows the first double break.
    parts = DOUBLE_BREAK_RE.split(paragraph.decode_contents(), maxsplit=1)
    return Comment(
        avatar_url=avatar.get("src") if avatar is not None else None,
        username=author.get_text() if author is not None else "",
        date=date_match.group(0),
        message=parts[1] if len(parts) > 1 else "",
    )


def extract_embedded_comments(soup: BeautifulSoup) -> List[Comment]:
    """Comments rendered in the post page, skipping the leading login prompt."""
    elements = soup.select(".flog_img_comments")
    return [_embedded_comment(element) for element in elements[1:]]


def _batch_key(key: Any) -> tuple[int, int, str]:
    text = str(key)
    if text.isascii() and text.isdigit():
        return (0, int(text), "")
    return (1, 0, text)


def _batch_comment(item: Any) -> Comment:
    if not isinstance(item, dict):
        raise ParseError(f"Unexpected comment payload: {item!r}")
    posted = str(item.get("posted") or "").split()
    if len(posted) < 2:
        raise ParseError(f"Unexpected comment timestamp: {item.get('posted')!r}")
    return Comment(
        avatar_url=item.get("avatar"),
        username=str(item.get("poster_user_name") or ""),
        date=posted[1],
        message=str(item.get("message") or ""),
    )


def normalize_comment_batch(payload: Any) -> List[Comment]:
    """Turn a comments endpoint response into an ordered list of comments.

    The endpoint returns ``comments`` either as a list or as an object keyed
    by position. An unsuccessful or empty response yields an empty list,
    which is how the end of the comment stream is signalled.
    """
    if not isinstance(payload, dict):
        raise ParseError("Comment batch response is not a JSON object")
    raw = payload.get("comments")
    if not payload.get("success") or not raw:
        return []
    if isinstance(raw, dict):
        raw = [raw[key] for key in sorted(raw, key=_batch_key)]
    elif not isinstance(raw, list):
        raise ParseError(f"Unexpected comments payload type: {type(raw).__name__}")
    return [_batch_comment(item) for item in raw]


def fetch_comment_batch(
    session: requests.Session,
    options: ExportOptions,
    post_id: int,
    offset: int,
) -> List[Comment]:
    payload = fetch_json(
        session,
        options.comments_url,
        data={"user_name": options.username, "identifier": post_id, "offset": offset},
        timeout=options.timeout,
    )
    comments = normalize_comment_batch(payload)
    logger.debug("Fetched %d comment(s) for post %s at offset %d", len(comments), post_id, offset)
    return comments


def paginate_comments(
    session: requests.Session,
    options: ExportOptions,
    post_id: int,
    soup: BeautifulSoup,
) -> List[Comment]:
    """Embedded comments followed by every paginated batch, in offset order."""
    comments = extract_embedded_comments(soup)
    offset = COMMENTS_PER_BATCH
    while True:
        batch = fetch_comment_batch(session, options, post_id, offset)
        if not batch:
            break
        comments.extend(batch)
        offset += COMMENTS_PER_BATCH
    return comments


# Posts
# -----


def _page_language(soup: BeautifulSoup) -> str | None:
    root = soup.find("html")
    if root is None:
        return None
    return root.get("lang") or None


def assemble_record(
    session: requests.Session,
    url: str,
    options: ExportOptions,
    *,
    date_parser: DateParser = parse_caption_date,
) -> PostRecord:
    post_id = post_id_from_url(url)
    soup = fetch_html(session, url, timeout=options.timeout)

    image = soup.select_one("#flog_img_holder img")
    if image is None or not image.get("src"):
        raise ParseError(f"No photo found on {url}")
    holder = soup.select_one("#description_photo")
    if holder is None:
        raise ParseError(f"No description found on {url}")
    description = holder.get_text()

    post_date: date | None = None
    if options.extract_dates:
        post_date = date_parser(description, _page_language(soup))
        if post_date is None:
            logger.warning("No date found for post %s; saving it without one", post_id)

    comments: tuple[Comment, ...] | None = None
    if not options.skip_comments:
        comments = tuple(paginate_comments(session, options, post_id, soup))

    logger.debug("Retrieved post data from %s", url)
    return PostRecord(
        id=post_id,
        image_url=urljoin(url, image["src"]),
        description=description,
        date=post_date,
        comments=comments,
    )


__all__ = [
    "BASE_URL",
    "COMMENTS_PER_BATCH",
    "COMMENTS_URL",
    "DEFAULT_USER_AGENT",
    "POSTS_PER_MOSAIC_PAGE",
    "Comment",
    "ExportOptions",
    "FotologError",
    "ListingPageLink",
    "ParseError",
    "PostRecord",
    "TransportError",
    "assemble_record",
    "build_listing_pages",
    "build_session",
    "extract_embedded_comments",
    "extract_pagination_hrefs",
    "extract_post_links",
    "fetch",
    "fetch_comment_batch",
    "fetch_html",
    "fetch_json",
    "iterate_sequentially",
    "normalize_comment_batch",
    "paginate_comments",
    "plan_listing_pages",
    "post_id_from_url",
    "trailing_number",
]
