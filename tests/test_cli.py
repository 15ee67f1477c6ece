"""Tests for the command line interface."""

import json

from click.testing import CliRunner

from autorevert.cli import EXIT_CONFIG_NOT_FOUND, EXIT_INVALID_CONFIG, main

from conftest import write_and_commit


def _write_config(path, **values):
    path.write_text(json.dumps(values))
    return str(path)


def test_watch_without_config_exits(tmp_path):
    result = CliRunner().invoke(main, ["watch", "--config", str(tmp_path / "config.json")])

    assert result.exit_code == EXIT_CONFIG_NOT_FOUND
    assert "Config not found!" in result.output


def test_watch_with_invalid_config_exits(tmp_path):
    config = _write_config(tmp_path / "config.json", repo="https://example.com/x.git")

    result = CliRunner().invoke(main, ["watch", "--config", config])

    assert result.exit_code == EXIT_INVALID_CONFIG
    assert "name" in result.output


def test_check_reports_decision(tmp_path):
    config = _write_config(tmp_path / "config.json", repo="r", name="Eve")
    runner = CliRunner()

    revert = runner.invoke(main, ["check", "EVE", "--config", config])
    allow = runner.invoke(main, ["check", "Bob", "--config", config])

    assert revert.exit_code == 0
    assert "REVERT" in revert.output
    assert allow.exit_code == 0
    assert "ALLOW" in allow.output


def test_revert_command(local_repo):
    bad = write_and_commit(local_repo, {"bad.txt": "bad\n"}, "Add bad file", author="eve")

    result = CliRunner().invoke(main, ["revert", local_repo.working_tree_dir, bad.hexsha])

    assert result.exit_code == 0, result.output
    assert "New HEAD" in result.output
    assert local_repo.head.commit.summary == 'Revert "Add bad file"'
    assert local_repo.head.commit.tree == bad.parents[0].tree


def test_revert_command_reports_conflict(local_repo):
    write_and_commit(local_repo, {"config.py": "x = 1\n"}, "Add config")
    target = write_and_commit(local_repo, {"config.py": "x = 2\n"}, "Bump x", "eve")
    later = write_and_commit(local_repo, {"config.py": "x = 3\n"}, "Bump x again")

    result = CliRunner().invoke(main, ["revert", local_repo.working_tree_dir, target.hexsha])

    assert result.exit_code == 1
    assert "Revert produced conflicts in: config.py" in result.output
    assert local_repo.head.commit == later


def test_revert_command_rejects_non_repo(tmp_path):
    result = CliRunner().invoke(main, ["revert", str(tmp_path), "HEAD"])

    assert result.exit_code == 2


def test_watch_once_reverts_and_pushes(tmp_path, remote_repo, push_commit):
    before = remote_repo.heads.main.commit
    push_commit({"src/app.py": "x = 0\n"}, "Break app", author="Eve")
    config = _write_config(
        tmp_path / "config.json",
        repo=remote_repo.git_dir,
        name="eve",
        commitTitle="Undo %commit-name%",
    )

    result = CliRunner().invoke(
        main, ["watch", "--config", config, "--once", "--work-dir", str(tmp_path / "guard")]
    )

    assert result.exit_code == 0, result.output
    assert "[reverted]" in result.output
    head = remote_repo.heads.main.commit
    assert head.summary.startswith("Undo ")
    assert head.tree.hexsha == before.tree.hexsha
