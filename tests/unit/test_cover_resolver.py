import os
from pathlib import Path

import cmus_notify as cn


def make_album(tmp_path: Path, *names: str) -> Path:
    album = tmp_path / "music" / "album"
    album.mkdir(parents=True)
    track = album / "track.flac"
    track.write_bytes(b"")
    for name in names:
        (album / name).write_bytes(b"img")
    return track


def test_jpg_found(tmp_path):
    track = make_album(tmp_path, "cover.jpg")
    assert cn.find_cover(track) == track.parent / "cover.jpg"


def test_png_found_when_only_png(tmp_path):
    track = make_album(tmp_path, "cover.png")
    assert cn.find_cover(track) == track.parent / "cover.png"


def test_jpg_preferred_over_png(tmp_path):
    track = make_album(tmp_path, "cover.png", "cover.jpg")
    assert cn.find_cover(track) == track.parent / "cover.jpg"


def test_none_when_no_candidates(tmp_path):
    track = make_album(tmp_path, "folder.jpg", "front.png")
    assert cn.find_cover(track) is None


def test_match_is_case_sensitive(tmp_path):
    track = make_album(tmp_path, "Cover.JPG", "COVER.png")
    assert cn.find_cover(track) is None


def test_track_file_itself_need_not_exist(tmp_path):
    track = make_album(tmp_path, "cover.jpg")
    track.unlink()
    assert cn.find_cover(track) == track.parent / "cover.jpg"


def test_missing_directory_returns_none(tmp_path):
    assert cn.find_cover(tmp_path / "gone" / "track.flac") is None


def test_none_track_path():
    assert cn.find_cover(None) is None


def test_relative_track_path_is_treated_as_no_file():
    assert cn.find_cover(Path("album/track.flac")) is None


def test_directory_named_like_cover_is_skipped(tmp_path):
    track = make_album(tmp_path, "cover.png")
    (track.parent / "cover.jpg").mkdir()
    assert cn.find_cover(track) == track.parent / "cover.png"


def test_unreadable_candidate_is_skipped(tmp_path, monkeypatch):
    track = make_album(tmp_path, "cover.jpg", "cover.png")
    jpg = track.parent / "cover.jpg"

    real_access = os.access

    def fake_access(path, mode):
        if Path(path) == jpg:
            return False
        return real_access(path, mode)

    monkeypatch.setattr(cn.os, "access", fake_access)
    assert cn.find_cover(track) == track.parent / "cover.png"


def test_listing_error_degrades_to_none(tmp_path, monkeypatch):
    track = make_album(tmp_path, "cover.jpg")

    def deny(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(cn.os, "listdir", deny)
    assert cn.find_cover(track) is None


def test_symlinked_cover_is_accepted(tmp_path):
    track = make_album(tmp_path)
    real = tmp_path / "art.jpg"
    real.write_bytes(b"img")
    (track.parent / "cover.jpg").symlink_to(real)
    assert cn.find_cover(track) == track.parent / "cover.jpg"


def test_dangling_symlink_is_skipped(tmp_path):
    track = make_album(tmp_path, "cover.png")
    (track.parent / "cover.jpg").symlink_to(tmp_path / "missing.jpg")
    assert cn.find_cover(track) == track.parent / "cover.png"


class TestFilesystemHelpers:
    def test_is_regular_file(self, tmp_path):
        f = tmp_path / "a.jpg"
        f.write_bytes(b"x")
        assert cn.is_regular_file(f)
        assert not cn.is_regular_file(tmp_path)
        assert not cn.is_regular_file(tmp_path / "missing")

    def test_exists_and_readable(self, tmp_path):
        f = tmp_path / "a.jpg"
        f.write_bytes(b"x")
        assert cn.exists_and_readable(f)
        assert not cn.exists_and_readable(tmp_path / "missing")
