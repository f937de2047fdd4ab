# File: tests/test_git_adapter.py
"""GitAdapter against real temporary repositories."""
import pytest

from conftest import git, requires_git
from seo_autofix.errors import CommandFailed, CommandTimeout
from seo_autofix.vcs.adapter import GitAdapter, VCSAdapter

pytestmark = requires_git


@pytest.fixture()
def repo(git_adapter: GitAdapter) -> GitAdapter:
    git_adapter.init()
    return git_adapter


def write(adapter: GitAdapter, name: str, text: str) -> None:
    path = adapter.repo_path / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_implements_protocol(git_adapter):
    assert isinstance(git_adapter, VCSAdapter)


def test_init_and_identity(repo: GitAdapter, tracking_config):
    assert repo.is_repository()
    assert not repo.has_commits()
    assert repo.log() == []

    write(repo, "index.html", "<title>x</title>")
    repo.stage(["index.html"])
    ref = repo.commit("First", {"batchId": "b1"})

    assert repo.has_commits()
    assert repo.current_branch() == "main"
    assert ref.hash == repo.rev_parse("HEAD")
    (info,) = repo.log(5)
    assert info.subject == "First"
    assert info.metadata == {"batchId": "b1"}
    assert info.author == tracking_config.author_name
    assert info.email == tracking_config.author_email


def test_subdirectory_of_other_repo_is_not_a_repository(repo: GitAdapter):
    nested = GitAdapter(repo.repo_path / "sub", timeout=10)
    (repo.repo_path / "sub").mkdir()
    assert not nested.is_repository()


def test_branches_merge_and_tags(repo: GitAdapter):
    repo.commit("Root", allow_empty=True)
    repo.create_branch("feature", "main")
    assert repo.current_branch() == "feature"
    write(repo, "a.txt", "a")
    repo.stage(["a.txt"])
    repo.commit("Add a")

    repo.checkout("main")
    merge = repo.merge_no_ff("feature", "Merge feature", {"action": "merge"})
    repo.tag("done", "Feature done")

    assert repo.branch_exists("feature")
    assert not repo.branch_exists("nope")
    assert repo.tag_exists("done")
    assert repo.rev_parse("done^{commit}") == merge.hash
    # a real merge commit with two parents
    assert len(git(repo.repo_path, "rev-list", "--parents", "-n1", merge.hash).split()) == 3
    latest = repo.log(1)[0]
    assert latest.subject == "Merge feature"
    assert latest.metadata == {"action": "merge"}
    assert [d.file for d in repo.diff("HEAD~1")] == ["a.txt"]
    assert repo.show_file("feature", "a.txt") == "a"

    repo.delete_branch("feature")
    assert not repo.branch_exists("feature")


def test_revert_merge_commit(repo: GitAdapter):
    repo.commit("Root", allow_empty=True)
    repo.create_branch("feature")
    write(repo, "a.txt", "a")
    repo.stage(["a.txt"])
    repo.commit("Add a")
    repo.checkout("main")
    merge = repo.merge_no_ff("feature", "Merge feature")

    repo.revert_commit(merge.hash, mainline=1, no_commit=True)
    repo.commit("Revert feature")

    assert not (repo.repo_path / "a.txt").exists()


def test_conflicting_revert_is_detected_and_aborted(repo: GitAdapter):
    write(repo, "f.txt", "one\n")
    repo.stage(["f.txt"])
    repo.commit("one")
    write(repo, "f.txt", "two\n")
    repo.stage(["f.txt"])
    repo.commit("two")
    write(repo, "f.txt", "three\n")
    repo.stage(["f.txt"])
    repo.commit("three")

    second = repo.log(2)[1].hash
    with pytest.raises(CommandFailed):
        repo.revert_commit(second, no_commit=True)
    assert repo.has_conflicts()
    assert repo.conflicted_files() == ["f.txt"]

    repo.abort_revert()
    assert not repo.has_conflicts()
    assert (repo.repo_path / "f.txt").read_text() == "three\n"


def test_failures_are_typed(repo: GitAdapter):
    with pytest.raises(CommandFailed) as excinfo:
        repo.checkout("missing-branch")
    assert excinfo.value.exit_code != 0
    assert excinfo.value.command[:2] == ["git", "checkout"]
    assert repo.current_branch() == "main"


def test_timeout_is_typed(repo: GitAdapter):
    slow = GitAdapter(repo.repo_path, timeout=0.000001)
    with pytest.raises(CommandTimeout):
        slow.status()
