from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from fotolog_saver.core import Comment, ExportOptions, PostRecord, TransportError
from fotolog_saver.output import (
    COMMENTS_BANNER,
    record_paths,
    render_comments,
    reset_output_dir,
    save_record,
)

IMAGE_URL = "http://fotolog.test/photos/42.jpg"


def _record(**overrides) -> PostRecord:
    values = {
        "id": 42,
        "image_url": IMAGE_URL,
        "description": "Caf&eacute; &amp; friends",
        "date": date(2010, 3, 7),
        "comments": (
            Comment(avatar_url=None, username="bob", date="08/03/2010", message="Nice &lt;3"),
            Comment(avatar_url=None, username="carol", date="09/03/2010", message="Wow"),
        ),
    }
    values.update(overrides)
    return PostRecord(**values)


def test_reset_output_dir_removes_previous_contents(tmp_path: Path) -> None:
    run_dir = tmp_path / "fotolog_alice_data"
    (run_dir / "2009" / "01").mkdir(parents=True)
    (run_dir / "2009" / "01" / "20090101_1.txt").write_text("old", encoding="utf-8")
    (run_dir / "stale.jpg").write_bytes(b"old")

    reset_output_dir(run_dir)

    assert run_dir.is_dir()
    assert list(run_dir.iterdir()) == []

    reset_output_dir(run_dir)
    assert list(run_dir.iterdir()) == []


def test_render_comments_decodes_entities_and_separates_entries() -> None:
    transcript = render_comments(_record().comments)

    assert transcript == (
        "bob on 08/03/2010:\n\nNice <3"
        "\n\n-------------------\n\n"
        "carol on 09/03/2010:\n\nWow"
    )


def test_save_record_dated_layout_combines_comments(tmp_path: Path, fake_session) -> None:
    options = ExportOptions(username="alice", output_root=tmp_path)
    reset_output_dir(options.run_dir)
    session = fake_session(images={IMAGE_URL: b"jpeg-bytes"})

    saved = save_record(session, _record(), options)

    month_dir = options.run_dir / "2010" / "03"
    assert saved.text_path == month_dir / "20100307_42.txt"
    assert saved.image_path == month_dir / "20100307_42.jpg"
    assert saved.comments_path is None
    text = saved.text_path.read_text(encoding="utf-8")
    assert text.startswith("Café & friends\n\n" + COMMENTS_BANNER)
    assert text.endswith("carol on 09/03/2010:\n\nWow")
    assert saved.image_path.read_bytes() == b"jpeg-bytes"
    assert sorted(p.name for p in month_dir.iterdir()) == ["20100307_42.jpg", "20100307_42.txt"]


def test_save_record_flat_layout_writes_separate_comment_file(tmp_path: Path, fake_session) -> None:
    options = ExportOptions(username="alice", output_root=tmp_path, layout="flat")
    reset_output_dir(options.run_dir)
    session = fake_session(images={IMAGE_URL: b"jpeg-bytes"})

    saved = save_record(session, _record(), options)

    assert sorted(p.name for p in options.run_dir.iterdir()) == ["42.jpg", "42.txt", "42_comments.txt"]
    assert saved.text_path.read_text(encoding="utf-8") == "Café & friends"
    assert saved.comments_path is not None
    assert saved.comments_path.read_text(encoding="utf-8").startswith("bob on 08/03/2010:")


def test_save_record_without_comments_or_date(tmp_path: Path, fake_session) -> None:
    options = ExportOptions(username="alice", output_root=tmp_path, skip_comments=True)
    reset_output_dir(options.run_dir)
    session = fake_session(images={IMAGE_URL: b"jpeg-bytes"})

    saved = save_record(session, _record(date=None, comments=None), options)

    assert saved.text_path == options.run_dir / "undated" / "42.txt"
    assert saved.text_path.read_text(encoding="utf-8") == "Café & friends"
    assert "COMMENTS" not in saved.text_path.read_text(encoding="utf-8")


def test_save_record_reuses_existing_month_directory(tmp_path: Path, fake_session) -> None:
    options = ExportOptions(username="alice", output_root=tmp_path)
    reset_output_dir(options.run_dir)
    other_url = "http://fotolog.test/photos/43.jpg"
    session = fake_session(images={IMAGE_URL: b"first", other_url: b"second"})

    save_record(session, _record(), options)
    save_record(session, _record(id=43, image_url=other_url, date=date(2010, 3, 21)), options)

    month_dir = options.run_dir / "2010" / "03"
    assert sorted(p.name for p in month_dir.iterdir()) == [
        "20100307_42.jpg",
        "20100307_42.txt",
        "20100321_43.jpg",
        "20100321_43.txt",
    ]
    assert (month_dir / "20100321_43.jpg").read_bytes() == b"second"


def test_record_paths_flat_combined(tmp_path: Path) -> None:
    options = ExportOptions(username="alice", output_root=tmp_path, layout="flat", comments_file="combined")

    paths = record_paths(_record(), options)

    assert paths.text == options.run_dir / "42.txt"
    assert paths.image == options.run_dir / "42.jpg"
    assert paths.comments is None


def test_save_record_propagates_image_download_failure(tmp_path: Path, fake_session) -> None:
    options = ExportOptions(username="alice", output_root=tmp_path)
    reset_output_dir(options.run_dir)

    with pytest.raises(TransportError):
        save_record(fake_session(), _record(), options)
