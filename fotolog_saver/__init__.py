"""Public package surface for the Fotolog saver."""
from .core import (
    BASE_URL,
    COMMENTS_URL,
    DEFAULT_USER_AGENT,
    Comment,
    ExportOptions,
    FotologError,
    ListingPageLink,
    ParseError,
    PostRecord,
    TransportError,
    assemble_record,
    build_listing_pages,
    build_session,
    iterate_sequentially,
    normalize_comment_batch,
    paginate_comments,
    plan_listing_pages,
    post_id_from_url,
)
from .dates import parse_caption_date
from .output import SavedPost, reset_output_dir, save_record
from .pipeline import collect_post_links, export_user

__version__ = "0.1.0"

__all__ = [
    "BASE_URL",
    "COMMENTS_URL",
    "DEFAULT_USER_AGENT",
    "Comment",
    "ExportOptions",
    "FotologError",
    "ListingPageLink",
    "ParseError",
    "PostRecord",
    "SavedPost",
    "TransportError",
    "assemble_record",
    "build_listing_pages",
    "build_session",
    "collect_post_links",
    "export_user",
    "iterate_sequentially",
    "normalize_comment_batch",
    "paginate_comments",
    "parse_caption_date",
    "plan_listing_pages",
    "post_id_from_url",
    "reset_output_dir",
    "save_record",
    "__version__",
]
