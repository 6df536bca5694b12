"""
Config Loader & Target Tests
============================
Layered configuration (defaults < YAML < overrides) and the three target
modes. Git-backed targets build a throwaway repository in tmp_path and are
skipped when git is not installed.
"""
import os
import shutil
import importlib
import subprocess
import pytest

from checkfix.core import config
from checkfix.core.errors import ConfigError, TargetError
from checkfix.models.session_config import SessionConfig
from checkfix.services.config_loader import find_config_file, load_session_config, read_config_file
from checkfix.services.targets import DiffTarget, FileTarget, RepoTarget, build_target
from checkfix.utils.fingerprint import fingerprint

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _git(repo, *args):
    subprocess.run(
        ["git", "-c", "user.email=dev@example.com", "-c", "user.name=Dev", *args],
        cwd=str(repo), check=True, capture_output=True,
    )


def _make_repo(path):
    _git(path, "init", "-q")
    _git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    (path / "app.py").write_text("def f():\n    return 1\n")
    _git(path, "add", "app.py")
    _git(path, "commit", "-q", "-m", "initial")
    return path


@pytest.fixture
def env_config(monkeypatch):
    """Set CHECKFIX_* variables and re-read checkfix.core.config; restored afterwards."""
    def _apply(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        importlib.reload(config)

    yield _apply
    monkeypatch.undo()
    importlib.reload(config)


# ---------------------------------------------------------------------------
# 1. Config loading
# ---------------------------------------------------------------------------
class TestConfigLoader:

    def test_defaults_without_file(self, tmp_path):
        cfg, agent = load_session_config(str(tmp_path))
        assert cfg == SessionConfig()
        assert agent == {}

    def test_yaml_file_in_root(self, tmp_path):
        (tmp_path / ".checkfix.yml").write_text(
            "max-iterations: 7\nconsecutive_passes: 2\ncli: codex\n"
        )
        cfg, agent = load_session_config(str(tmp_path))
        assert cfg.max_iterations == 7
        assert cfg.consecutive_passes == 2
        assert agent == {"cli": "codex"}

    def test_overrides_beat_file_and_none_is_ignored(self, tmp_path):
        (tmp_path / ".checkfix.yml").write_text("max_iterations: 7\nretries: 4\n")
        cfg, _ = load_session_config(
            str(tmp_path), overrides={"max_iterations": 3, "retries": None}
        )
        assert cfg.max_iterations == 3
        assert cfg.retries == 4

    def test_explicit_config_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("timeout_seconds: 60\n")
        cfg, _ = load_session_config(str(tmp_path), config_path=str(path))
        assert cfg.timeout_seconds == 60

    def test_missing_explicit_config(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read config"):
            load_session_config(str(tmp_path), config_path=str(tmp_path / "nope.yml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("max_iterations: [1, 2\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            read_config_file(str(path))

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            read_config_file(str(path))

    def test_empty_file_is_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert read_config_file(str(path)) == {}

    def test_unknown_key_rejected(self, tmp_path):
        (tmp_path / ".checkfix.yml").write_text("max_iteration: 3\n")
        with pytest.raises(ConfigError, match="invalid configuration"):
            load_session_config(str(tmp_path))

    def test_non_positive_rejected(self, tmp_path):
        with pytest.raises(ConfigError, match="consecutive_passes"):
            load_session_config(str(tmp_path), overrides={"consecutive_passes": 0})

    def test_find_config_file(self, tmp_path):
        assert find_config_file(str(tmp_path)) is None
        (tmp_path / ".checkfix.yml").write_text("{}\n")
        assert find_config_file(str(tmp_path)) == str(tmp_path / ".checkfix.yml")

    def test_environment_supplies_defaults(self, tmp_path, env_config):
        env_config(CHECKFIX_MAX_ITERATIONS="7", CHECKFIX_CONSECUTIVE="2")
        cfg, _ = load_session_config(str(tmp_path))
        assert cfg.max_iterations == 7
        assert cfg.consecutive_passes == 2

    def test_non_positive_environment_rejected(self, tmp_path, env_config):
        env_config(CHECKFIX_MAX_ITERATIONS="0")
        with pytest.raises(ConfigError, match="max_iterations"):
            load_session_config(str(tmp_path))

    def test_file_value_masks_bad_environment(self, tmp_path, env_config):
        env_config(CHECKFIX_RETRIES="0")
        (tmp_path / ".checkfix.yml").write_text("retries: 2\n")
        cfg, _ = load_session_config(str(tmp_path))
        assert cfg.retries == 2


# ---------------------------------------------------------------------------
# 2. File targets
# ---------------------------------------------------------------------------
class TestFileTarget:

    def test_describe_measure_and_context(self, tmp_path):
        a = tmp_path / "a.py"
        b = tmp_path / "b.py"
        a.write_text("x = 1\ny = 2\n")
        b.write_text("z = 3\n")

        target = FileTarget([str(a), str(b)], root=str(tmp_path))

        assert target.describe().splitlines() == [os.path.realpath(a), os.path.realpath(b)]
        assert target.measure() == 3
        assert not target.repo_wide
        assert "x = 1" in target.render_context()
        assert target.render_context().startswith("<files>")

    def test_fingerprint_follows_content_and_order(self, tmp_path):
        a = tmp_path / "a.py"
        b = tmp_path / "b.py"
        a.write_text("a\n")
        b.write_text("b\n")

        forward = FileTarget([str(a), str(b)], root=str(tmp_path))
        backward = FileTarget([str(b), str(a)], root=str(tmp_path))
        before = fingerprint(forward)

        assert before != fingerprint(backward)
        a.write_text("a!\n")
        assert fingerprint(forward) != before

    def test_identity_is_per_root(self, tmp_path):
        f = tmp_path / "a.py"
        f.write_text("a\n")
        other = tmp_path / "other"
        other.mkdir()
        assert (
            FileTarget([str(f)], root=str(tmp_path)).identity
            != FileTarget([str(f)], root=str(other)).identity
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(TargetError, match="file not found"):
            FileTarget([str(tmp_path / "nope.py")], root=str(tmp_path))

    def test_directory_is_not_a_file(self, tmp_path):
        with pytest.raises(TargetError, match="not a file"):
            FileTarget([str(tmp_path)], root=str(tmp_path))

    def test_empty_list(self):
        with pytest.raises(TargetError, match="at least one file"):
            FileTarget([])

    def test_repo_and_files_are_exclusive(self, tmp_path):
        with pytest.raises(TargetError, match="cannot use both"):
            build_target(files=["a.py"], repo=True, root=str(tmp_path))


# ---------------------------------------------------------------------------
# 3. Git targets
# ---------------------------------------------------------------------------
@needs_git
class TestGitTargets:

    def test_repo_target_tracks_files(self, tmp_path):
        repo = _make_repo(tmp_path)
        target = RepoTarget(str(repo))

        assert target.repo_wide
        assert target.describe() == ""
        assert target.measure() == 2
        before = fingerprint(target)
        (repo / "app.py").write_text("def f():\n    return 2\n")
        assert fingerprint(target) != before

    def test_repo_target_outside_git(self, tmp_path):
        plain = tmp_path / "plain"
        plain.mkdir()
        if subprocess.run(
            ["git", "rev-parse", "--git-dir"], cwd=str(plain), capture_output=True
        ).returncode == 0:
            pytest.skip("tmp_path is inside a git work tree")
        with pytest.raises(TargetError, match="not a git repository"):
            RepoTarget(str(plain))

    def test_diff_target_on_protected_branch(self, tmp_path):
        repo = _make_repo(tmp_path)
        with pytest.raises(TargetError, match="protected branch"):
            DiffTarget(str(repo))

    def test_diff_target_without_changes(self, tmp_path):
        repo = _make_repo(tmp_path)
        _git(repo, "checkout", "-q", "-b", "feature")
        with pytest.raises(TargetError, match="no changes detected"):
            DiffTarget(str(repo))

    def test_diff_target_sees_committed_and_working_changes(self, tmp_path):
        repo = _make_repo(tmp_path)
        _git(repo, "checkout", "-q", "-b", "feature")
        (repo / "app.py").write_text("def f():\n    return 2\n")
        _git(repo, "commit", "-q", "-am", "change")

        target = DiffTarget(str(repo))
        assert target.base == "main"
        assert target.describe() == "app.py"
        assert target.measure() == 2
        assert target.summary() == "feature → main"
        assert "return 2" in target.render_context()

        before = fingerprint(target)
        (repo / "app.py").write_text("def f():\n    return 3\n")
        assert fingerprint(target) != before
