"""
Batch command line: annotation files in, translated drawings and a summary out.
"""

import json

import pytest
from PIL import Image

import techdraw_reconstruct as rd


@pytest.fixture
def drawings(tmp_path, drawing_png, label_annotation):
    src = tmp_path / "drawings"
    ann = tmp_path / "annotations"
    src.mkdir()
    ann.mkdir()
    (src / "sheet1.png").write_bytes(drawing_png)
    (src / "sheet2.png").write_bytes(drawing_png)
    (ann / "sheet1.json").write_text(json.dumps([label_annotation]), encoding="utf-8")
    technical_only = dict(label_annotation, translatedText=label_annotation["originalText"])
    (ann / "sheet2.json").write_text(json.dumps([technical_only]), encoding="utf-8")
    return src, ann


def read_summary(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def test_batch_with_annotation_directory(tmp_path, drawings):
    src, ann = drawings
    outdir = tmp_path / "out"
    summary = tmp_path / "reports" / "summary.json"

    code = rd.main([
        "--input", str(src),
        "--outdir", str(outdir),
        "--summary", str(summary),
        "--annotations", str(ann),
        "--log-level", "WARNING",
    ])

    assert code == 0
    data = read_summary(summary)
    assert (data["total"], data["processed"], data["skipped"], data["errors"]) == (2, 1, 1, 0)
    by_name = {f["path"].rsplit("/", 1)[-1]: f for f in data["files"]}
    assert by_name["sheet1.png"]["status"] == "processed"
    assert by_name["sheet2.png"]["reason"] == "nothing_to_translate"

    out = outdir / "sheet1.translated.png"
    assert out.exists()
    assert Image.open(out).size == (400, 200)
    assert not (outdir / "sheet2.translated.png").exists()


def test_missing_annotation_file_is_an_error(tmp_path, drawings):
    src, ann = drawings
    (ann / "sheet2.json").unlink()
    summary = tmp_path / "summary.json"

    code = rd.main([
        "--input", str(src / "*.png"),
        "--outdir", str(tmp_path / "out"),
        "--summary", str(summary),
        "--annotations", str(ann),
    ])

    assert code == 1
    data = read_summary(summary)
    assert data["errors"] == 1
    assert data["processed"] == 1


def test_skip_existing(tmp_path, drawings):
    src, ann = drawings
    outdir = tmp_path / "out"
    outdir.mkdir()
    (outdir / "sheet1.translated.png").write_bytes(b"")
    summary = tmp_path / "summary.json"

    rd.main([
        "--input", str(src / "sheet1.png"),
        "--outdir", str(outdir),
        "--summary", str(summary),
        "--annotations", str(ann / "sheet1.json"),
        "--skip-existing",
    ])

    assert read_summary(summary)["files"][0]["reason"] == "skip_existing"


def test_no_inputs(tmp_path):
    code = rd.main([
        "--input", str(tmp_path / "nothing" / "*.png"),
        "--outdir", str(tmp_path / "out"),
        "--summary", str(tmp_path / "summary.json"),
        "--annotations", str(tmp_path),
    ])
    assert code == 2


def test_annotation_source_is_required(tmp_path):
    with pytest.raises(SystemExit):
        rd.main(["--input", "x.png", "--outdir", str(tmp_path), "--summary", "s.json"])
