from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from git import Actor, Commit, Repo

from autorevert.utils.git_ops import RepoHandle, clone_repository, open_repository


def write_and_commit(
    repo: Repo,
    files: dict[str, str | None],
    message: str,
    author: str = "Alice",
) -> Commit:
    """Write (or delete, for ``None``) files and commit them as ``author``."""
    root = Path(repo.working_tree_dir)
    added, removed = [], []
    for path, content in files.items():
        target = root / path
        if content is None:
            target.unlink()
            removed.append(path)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
            added.append(path)

    index = repo.index
    if added:
        index.add(added)
    if removed:
        index.remove(removed)
    actor = Actor(author, f"{author.lower()}@example.com")
    return index.commit(message, author=actor, committer=actor)


@pytest.fixture
def local_repo(tmp_path: Path) -> Iterator[Repo]:
    """A standalone working copy with one commit."""
    repo = Repo.init(tmp_path / "local", initial_branch="main")
    write_and_commit(repo, {"README.md": "hello\n"}, "Initial commit")
    yield repo
    repo.close()


@pytest.fixture
def local_handle(local_repo: Repo) -> Iterator[RepoHandle]:
    with open_repository(local_repo.working_tree_dir) as handle:
        yield handle


@pytest.fixture
def remote_repo(tmp_path: Path) -> Iterator[Repo]:
    """An empty bare repository acting as the remote."""
    repo = Repo.init(tmp_path / "remote.git", bare=True, initial_branch="main")
    yield repo
    repo.close()


@pytest.fixture
def developer(tmp_path: Path, remote_repo: Repo) -> Iterator[Repo]:
    """A second working copy that pushes commits to the remote."""
    repo = Repo.init(tmp_path / "developer", initial_branch="main")
    repo.create_remote("origin", remote_repo.git_dir)
    write_and_commit(repo, {"README.md": "hello\n", "src/app.py": "x = 1\ny = 2\n"}, "Initial commit")
    repo.remote("origin").push("HEAD:refs/heads/main")
    yield repo
    repo.close()


@pytest.fixture
def push_commit(developer: Repo) -> Callable[..., Commit]:
    """Commit in the developer copy and push it to the remote."""

    def _push(files: dict[str, str | None], message: str, author: str = "Alice") -> Commit:
        developer.remote("origin").pull("main")
        commit = write_and_commit(developer, files, message, author)
        developer.remote("origin").push("HEAD:refs/heads/main")
        return commit

    return _push


@pytest.fixture
def guard_handle(tmp_path: Path, remote_repo: Repo, developer: Repo) -> Iterator[RepoHandle]:
    """The guard's own clone of the remote."""
    with clone_repository(remote_repo.git_dir, directory=tmp_path / "guard") as handle:
        yield handle
