"""End-to-end export of one user's photo log."""
from __future__ import annotations

import logging
from typing import List, Sequence

import requests
from bs4 import BeautifulSoup

from .core import (
    ExportOptions,
    ListingPageLink,
    assemble_record,
    extract_pagination_hrefs,
    extract_post_links,
    fetch_html,
    iterate_sequentially,
    plan_listing_pages,
)
from .dates import DateParser, parse_caption_date
from .output import SavedPost, reset_output_dir, save_record

logger = logging.getLogger(__name__)


def collect_post_links(
    session: requests.Session,
    options: ExportOptions,
    pages: Sequence[ListingPageLink],
    *,
    first_page: BeautifulSoup | None = None,
) -> List[str]:
    """Post links from every listing page, in page order.

    ``first_page`` is the already fetched offset-0 page; it is reused instead
    of being requested a second time.
    """
    logger.info("Getting all posts links...")

    def posts_on_page(page: ListingPageLink) -> List[str]:
        if page.offset == 0 and first_page is not None:
            soup = first_page
        else:
            soup = fetch_html(session, page.url, timeout=options.timeout)
        links = extract_post_links(soup, page.url)
        logger.info("- Retrieved %d post links from %s", len(links), page.url)
        return links

    return iterate_sequentially(pages, posts_on_page)


def export_user(
    options: ExportOptions,
    *,
    session: requests.Session,
    date_parser: DateParser = parse_caption_date,
) -> List[SavedPost]:
    logger.info("Getting data from %s...", options.username)
    first_page = fetch_html(session, options.mosaic_url, timeout=options.timeout)
    pages = plan_listing_pages(
        options.mosaic_url,
        extract_pagination_hrefs(first_page, options.mosaic_url),
    )
    post_links = collect_post_links(session, options, pages, first_page=first_page)

    logger.info("Retrieving data from %d posts...", len(post_links))
    records = iterate_sequentially(
        post_links,
        lambda link: [assemble_record(session, link, options, date_parser=date_parser)],
        message="Retrieving post data",
    )

    logger.info("Saving all data from %s", options.username)
    reset_output_dir(options.run_dir)
    saved = iterate_sequentially(
        records,
        lambda record: [save_record(session, record, options)],
        message="Saving post data",
    )
    logger.info("Done! Saved %d post(s) to the %s folder.", len(saved), options.run_dir)
    return saved


__all__ = ["collect_post_links", "export_user"]
