import os

import pytest

from secretguard.errors import FileAccessError
from secretguard.walker import FileRef, path_matches, walk


def _relative_paths(refs):
    return [ref.relative_path for ref in refs]


def test_walk_skips_default_dirs(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "index.js").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config").write_text("[core]\n", encoding="utf-8")
    (tmp_path / "logo.json").write_bytes(b"\x89PNG\x00\x00binary")

    refs = list(walk(tmp_path))

    assert _relative_paths(refs) == ["logo.json", "src/app.py"]


def test_file_ref_detects_binary_content_lazily(tmp_path):
    (tmp_path / "logo.json").write_bytes(b"\x89PNG\x00\x00binary")
    (tmp_path / "app.py").write_text("print('hi')\n", encoding="utf-8")

    refs = {ref.relative_path: ref for ref in walk(tmp_path)}

    assert refs["logo.json"].is_binary()
    assert refs["logo.json"].read() == ""
    assert not refs["app.py"].is_binary()
    assert refs["app.py"].read() == "print('hi')\n"


def test_walk_does_not_open_files(tmp_path, monkeypatch):
    (tmp_path / "app.py").write_text("x = 1\n", encoding="utf-8")
    opened = []
    monkeypatch.setattr(FileRef, "_load", lambda self: opened.append(self.relative_path))

    refs = list(walk(tmp_path))

    assert _relative_paths(refs) == ["app.py"]
    assert opened == []


def test_walk_honours_include_extensions_and_env_files(tmp_path):
    (tmp_path / "notes.txt").write_text("text\n", encoding="utf-8")
    (tmp_path / "image.svg").write_text("<svg/>\n", encoding="utf-8")
    (tmp_path / ".env.production").write_text("TOKEN=1\n", encoding="utf-8")
    (tmp_path / "Dockerfile").write_text("FROM python\n", encoding="utf-8")

    refs = list(walk(tmp_path))

    assert _relative_paths(refs) == [".env.production", "Dockerfile", "notes.txt"]


def test_walk_applies_exclude_globs(tmp_path):
    (tmp_path / "fixtures").mkdir()
    (tmp_path / "fixtures" / "keys.txt").write_text("k\n", encoding="utf-8")
    (tmp_path / "dist").mkdir()
    (tmp_path / "dist" / "app.min.js").write_text("k\n", encoding="utf-8")
    (tmp_path / "main.py").write_text("k\n", encoding="utf-8")

    refs = list(walk(tmp_path, exclude_paths=["fixtures", "**/*.min.js"]))

    assert _relative_paths(refs) == ["main.py"]


def test_walk_reports_oversize_files(tmp_path):
    (tmp_path / "big.txt").write_text("a" * 64, encoding="utf-8")
    (tmp_path / "small.txt").write_text("a", encoding="utf-8")
    skipped = []

    refs = list(
        walk(tmp_path, max_file_size_bytes=32, on_skip=lambda path, reason, detail: skipped.append((path, reason)))
    )

    assert _relative_paths(refs) == ["small.txt"]
    assert skipped == [("big.txt", "oversize")]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_walk_does_not_follow_symlinks(tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("k\n", encoding="utf-8")
    root = tmp_path / "root"
    root.mkdir()
    (root / "real.txt").write_text("k\n", encoding="utf-8")
    try:
        os.symlink(outside, root / "linked", target_is_directory=True)
        os.symlink(outside / "secret.txt", root / "alias.txt")
    except OSError:
        pytest.skip("cannot create symlinks here")

    refs = list(walk(root))

    assert _relative_paths(refs) == ["real.txt"]


def test_file_ref_read_maps_missing_file(tmp_path):
    ref = FileRef(path=tmp_path / "gone.txt", relative_path="gone.txt", size=0)

    with pytest.raises(FileAccessError) as excinfo:
        ref.read()

    assert excinfo.value.reason == "not-found"


def test_path_matches_globs():
    assert path_matches("fixtures/keys.txt", "fixtures/**")
    assert path_matches("fixtures/deep/keys.txt", "fixtures/**")
    assert not path_matches("src/fixtures.py", "fixtures/**")
    assert path_matches("package-lock.json", "**/package-lock.json")
    assert path_matches("web/package-lock.json", "**/package-lock.json")
    assert path_matches("docs/readme.md", "docs")
    assert not path_matches("docs2/readme.md", "docs")
