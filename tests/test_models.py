"""Tests for commit snapshots."""

from autorevert.models import CommitInfo, short_message

from conftest import write_and_commit


def test_short_message_single_line():
    assert short_message("Fix typo\n") == "Fix typo"


def test_short_message_folds_first_paragraph():
    assert short_message("First line\nsecond line\n\nBody text.\n") == "First line second line"
    assert short_message(b"One\r\ntwo\r\n\r\nBody\r\n") == "One two"


def test_commit_info_uses_folded_subject(local_repo):
    commit = write_and_commit(local_repo, {"a.txt": "a\n"}, "Add a\nand more\n\nWhy.\n", "eve")

    info = CommitInfo.from_git(commit)

    assert info.summary == "Add a and more"
    assert info.author == "eve"
    assert info.author_email == "eve@example.com"
    assert info.parent_count == 1
    assert info.short_id == commit.hexsha[:7]
