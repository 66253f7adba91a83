"""Writing exported posts to disk."""
from __future__ import annotations

import logging
import shutil
from contextlib import closing
from dataclasses import dataclass
from html import unescape
from pathlib import Path
from typing import Iterable

import requests

from .core import Comment, ExportOptions, PostRecord, fetch

logger = logging.getLogger(__name__)

COMMENTS_BANNER = (
    "========================================\n"
    "                COMMENTS\n"
    "========================================\n\n"
)
COMMENT_DIVIDER = "\n\n-------------------\n\n"
UNDATED_DIR = "undated"


@dataclass(slots=True, frozen=True)
class RecordPaths:
    text: Path
    image: Path
    comments: Path | None = None


@dataclass(slots=True, frozen=True)
class SavedPost:
    post_id: int
    text_path: Path
    image_path: Path
    comments_path: Path | None = None


def reset_output_dir(path: Path) -> None:
    """Remove anything left at ``path`` from a previous run and recreate it empty."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        logger.info("- Removed any previous data")
    elif path.exists() or path.is_symlink():
        path.unlink()
        logger.info("- Removed any previous data")
    path.mkdir(parents=True)
    logger.info("- Created output directory %s", path)


def render_comments(comments: Iterable[Comment]) -> str:
    entries = [f"{comment.username} on {comment.date}:\n\n{comment.message}" for comment in comments]
    return unescape(COMMENT_DIVIDER.join(entries))


def record_paths(record: PostRecord, options: ExportOptions) -> RecordPaths:
    """Where a record's files live for the configured layout.

    ``dated`` puts files under ``<year>/<month>/`` with a ``YYYYMMDD_`` prefix
    (posts without a date go to ``undated/``); ``flat`` keeps every file in
    the run directory, named after the post id.
    """
    root = options.run_dir
    if options.layout == "dated" and record.date is not None:
        directory = root / f"{record.date:%Y}" / f"{record.date:%m}"
        stem = f"{record.date:%Y%m%d}_{record.id}"
    elif options.layout == "dated":
        directory = root / UNDATED_DIR
        stem = str(record.id)
    else:
        directory = root
        stem = str(record.id)

    comments_path = None
    if options.comments_file == "separate":
        comments_path = directory / f"{stem}_comments.txt"
    return RecordPaths(
        text=directory / f"{stem}.txt",
        image=directory / f"{stem}.jpg",
        comments=comments_path,
    )


def download_image(
    session: requests.Session,
    url: str,
    dest_path: Path,
    *,
    timeout: float,
) -> Path:
    response = fetch(session, url, timeout=timeout, stream=True)
    with closing(response):
        with dest_path.open("wb") as fh:
            for chunk in response.iter_content(chunk_size=8192):
                if chunk:
                    fh.write(chunk)
    return dest_path


def save_record(
    session: requests.Session,
    record: PostRecord,
    options: ExportOptions,
) -> SavedPost:
    """Write a record's description, comments and photo.

    Returns once the photo has been fully written and its file closed.
    """
    paths = record_paths(record, options)
    paths.text.parent.mkdir(parents=True, exist_ok=True)

    text = unescape(record.description)
    comments_path: Path | None = None
    if record.comments is not None:
        transcript = render_comments(record.comments)
        if paths.comments is None:
            text += "\n\n" + COMMENTS_BANNER + transcript
        else:
            paths.comments.write_text(transcript, encoding="utf-8")
            comments_path = paths.comments
    paths.text.write_text(text, encoding="utf-8")

    download_image(session, record.image_url, paths.image, timeout=options.timeout)

    logger.debug("Saved photo and post data from post %s", record.id)
    if record.date is not None:
        logger.debug("Post date: %s", record.date.strftime("%d/%m/%Y"))
    if record.comments is not None:
        logger.debug("Comments: %d", len(record.comments))
    return SavedPost(
        post_id=record.id,
        text_path=paths.text,
        image_path=paths.image,
        comments_path=comments_path,
    )


__all__ = [
    "COMMENTS_BANNER",
    "COMMENT_DIVIDER",
    "RecordPaths",
    "SavedPost",
    "UNDATED_DIR",
    "download_image",
    "record_paths",
    "render_comments",
    "reset_output_dir",
    "save_record",
]
