from __future__ import annotations

import logging
from pathlib import Path

from fotolog_saver import DEFAULT_USER_AGENT, ExportOptions, build_session, export_user


def main() -> None:
    """Demonstrate the Python API by exporting one user without comments."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    session = build_session(DEFAULT_USER_AGENT, verify=True)

    options = ExportOptions(
        username="example_user",
        output_root=Path("./example_runs"),
        skip_comments=True,
        layout="flat",
    )

    saved = export_user(options, session=session)
    for post in saved:
        print(post.post_id, post.text_path)


if __name__ == "__main__":
    main()
