import threading
import time

import pytest

from conftest import FakeResponse, FakeSession
from sheet_images.batch import load_rows, process_spreadsheet, run_batch
from sheet_images.config import DownloadConfig
from sheet_images.errors import SchemaError
from sheet_images.models import DownloadResult, SheetRow

SHEET_URL = "https://docs.google.com/spreadsheets/d/ABC/edit#gid=3"
CSV_URL = "https://docs.google.com/spreadsheets/d/ABC/export?format=csv&gid=3"


def _row(index, main="", cache="", brand="acme", seo="item"):
    return SheetRow(index=index, main_image=main, image_cache=cache, brand=brand, seo=f"{seo}{index}")


def test_failed_main_image_leaves_gap(tmp_path, image_host):
    config = DownloadConfig(output_root=tmp_path, max_workers=3)
    image_host.routes.update(
        {
            "https://img.test/1.jpg": FakeResponse(b"one"),
            "https://img.test/3.jpg": FakeResponse(b"three"),
        }
    )
    rows = [
        _row(0, main="https://img.test/1.jpg"),
        _row(1, main="https://img.test/2.jpg"),
        _row(2, main="https://img.test/3.jpg"),
    ]

    outcome = run_batch(rows, config)

    assert outcome.main_image_column == [
        (tmp_path / "acme" / "item0_m0.jpg").as_posix(),
        "",
        (tmp_path / "acme" / "item2_m2.jpg").as_posix(),
    ]
    assert outcome.image_cache_column == ["", "", ""]
    assert (outcome.total, outcome.succeeded, outcome.failed) == (3, 2, 1)
    assert outcome.summary() == "Download completed, 2 images of 3 downloaded. 1 Failed."


def test_cache_paths_keep_order_and_skip_failures(tmp_path):
    config = DownloadConfig(output_root=tmp_path, max_workers=4)
    delays = {"a": 0.05, "b": 0.0, "c": 0.01}

    def downloader(task, config):
        time.sleep(delays.get(task.source_url, 0))
        if task.source_url == "b":
            return DownloadResult(task=task, error=RuntimeError("boom"))
        return DownloadResult(task=task, relative_path=f"p/{task.slug}")

    outcome = run_batch([_row(0, cache="a | b | c")], config, downloader=downloader)

    assert outcome.image_cache_column == ["p/i0_j0|p/i0_j2"]
    assert outcome.main_image_column == [""]
    assert (outcome.total, outcome.succeeded, outcome.failed) == (3, 2, 1)


def test_progress_is_monotonic_and_covers_every_row(tmp_path):
    config = DownloadConfig(output_root=tmp_path, max_workers=4)
    seen = []
    threads = set()

    def downloader(task, config):
        return DownloadResult(task=task, relative_path=task.slug)

    def progress(completed, total, message):
        threads.add(threading.get_ident())
        seen.append((completed, total))

    rows = [_row(0, main="x"), _row(1), _row(2, main="y", cache="z,w")]
    outcome = run_batch(rows, config, progress=progress, downloader=downloader)

    assert seen == [(1, 3), (2, 3), (3, 3)]
    assert threads == {threading.get_ident()}
    assert outcome.main_image_column == ["m0", "", "m2"]
    assert outcome.image_cache_column == ["", "", "i2_j0|i2_j1"]
    assert outcome.main_image_text() == "m0\n\nm2"


def test_empty_rows_produce_empty_outputs(tmp_path):
    outcome = run_batch([_row(0), _row(1)], DownloadConfig(output_root=tmp_path))
    assert outcome.main_image_column == ["", ""]
    assert outcome.snapshot() == (2, 0, 0, 0)


def test_process_spreadsheet_end_to_end(tmp_path, image_host):
    csv_body = (
        "main_image,image_cache,brand_seo_url,seo_url_uk\n"
        'https://img.test/m.png,"https://img.test/a.gif|https://img.test/b",acme,lamp\n'
    ).encode()
    sheets = FakeSession({CSV_URL: FakeResponse(csv_body)})
    image_host.routes.update(
        {
            "https://img.test/m.png": FakeResponse(b"m"),
            "https://img.test/a.gif": FakeResponse(b"a"),
            "https://img.test/b": FakeResponse(b"b"),
        }
    )
    config = DownloadConfig(output_root=tmp_path / "products")

    outcome = process_spreadsheet(SHEET_URL, config, session=sheets)

    base = (tmp_path / "products" / "acme").as_posix()
    assert outcome.main_image_text() == f"{base}/lamp_m0.png"
    assert outcome.image_cache_text() == f"{base}/lamp_i0_j0.gif|{base}/lamp_i0_j1.jpg"
    assert outcome.snapshot() == (1, 3, 3, 0)


def test_schema_error_happens_before_image_requests(tmp_path, image_host):
    csv_body = b"main_image,image_cache,seo_url\nhttps://img.test/m.png,,x\n"
    sheets = FakeSession({CSV_URL: FakeResponse(csv_body)})

    with pytest.raises(SchemaError, match="brand_seo_url"):
        process_spreadsheet(SHEET_URL, DownloadConfig(output_root=tmp_path), session=sheets)

    assert image_host.calls == []
    assert not any(tmp_path.iterdir())


def test_bad_segment_fails_only_its_task(tmp_path, image_host):
    image_host.routes["https://img.test/ok.jpg"] = FakeResponse(b"ok")
    rows = [
        _row(0, main="https://img.test/bad.jpg", brand="ac\x00me"),
        _row(1, main="https://img.test/ok.jpg", brand="ok"),
    ]

    outcome = run_batch(rows, DownloadConfig(output_root=tmp_path, max_workers=2))

    assert outcome.main_image_column == ["", (tmp_path / "ok" / "item1_m1.jpg").as_posix()]
    assert outcome.snapshot() == (2, 2, 1, 1)


def test_unexpected_downloader_error_is_counted_as_failure(tmp_path):
    def downloader(task, config):
        if task.row_index == 0:
            raise KeyError("boom")
        return DownloadResult(task=task, relative_path=task.slug)

    outcome = run_batch([_row(0, main="a"), _row(1, main="b")], DownloadConfig(output_root=tmp_path), downloader=downloader)

    assert outcome.main_image_column == ["", "m1"]
    assert outcome.summary() == "Download completed, 1 images of 2 downloaded. 1 Failed."


def test_load_rows_does_not_touch_output_root(tmp_path):
    csv_body = b"main_image,image_cache,brand_seo_url,seo_url\nhttps://img.test/m.png,,acme,lamp\n"
    sheets = FakeSession({CSV_URL: FakeResponse(csv_body)})
    root = tmp_path / "products"

    rows = load_rows(SHEET_URL, DownloadConfig(output_root=root), session=sheets)

    assert [(row.brand, row.seo) for row in rows] == [("acme", "lamp")]
    assert not root.exists()
