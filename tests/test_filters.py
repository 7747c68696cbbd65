from pathlib import PurePath

import pytest

from tvrenamer.filters import is_blacklisted, is_whitelisted, kept_tags


@pytest.mark.parametrize("extension, expected", [
    ("nfo", True),
    ("NFO", True),
    (".nfo", True),
    ("txt", True),
    ("mkv", False),
    ("nfox", False),
    ("", False),
])
def test_is_blacklisted(extension, expected):
    assert is_blacklisted(extension, {"nfo", ".TXT"}) is expected


def test_empty_blacklist_deletes_nothing():
    assert not is_blacklisted("nfo", set())


def test_whitelisted_folder_anywhere_in_path():
    path = PurePath("Show/Extras/behind.the.scenes.mkv")

    assert is_whitelisted(path, whitelist_folders={"Extras"})
    assert not is_whitelisted(path, whitelist_folders={"Samples"})


def test_whitelisted_folder_does_not_match_filename():
    assert not is_whitelisted(PurePath("Show/Extras"), whitelist_folders={"Extras"})


def test_whitelisted_filename():
    path = PurePath("Show/keep.me.mkv")

    assert is_whitelisted(path, whitelist_filenames={"keep.me.mkv"})
    assert not is_whitelisted(path)


def test_kept_tags_preserves_order_and_case():
    assert kept_tags(("1080p", "PROPER", "GRP", "proper"), ["proper", "1080P"]) == ["1080p", "PROPER"]
    assert kept_tags(("1080p",), []) == []
