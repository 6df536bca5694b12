"""
Targets
=======
What a checkfix session reviews, and how the Controller observes it.

A target provides three capabilities and nothing else:
    - iter_content() — the bytes that define the current state, in a fixed
      order (fed to the fingerprint)
    - describe()     — the text handed to prompts (file list, or "" when the
      agent should explore the repository itself)
    - measure()      — a size in lines; the difference between two
      measurements is the magnitude of a fix

Modes:
    - DiffTarget (default): branch changes against main/master (or upstream),
      working tree included so uncommitted fixes are observed
    - FileTarget: an explicit list of files
    - RepoTarget: every file tracked by git
"""
import os
import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Sequence

from checkfix.core.constants import PROTECTED_BRANCHES
from checkfix.core.errors import TargetError
from checkfix.utils.fingerprint import compute_digest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Git helpers
# ---------------------------------------------------------------------------
def _git(args: Sequence[str], cwd: str) -> subprocess.CompletedProcess:
    """Run git and capture raw bytes. Never raises on a nonzero exit."""
    try:
        return subprocess.run(["git", *args], cwd=cwd, capture_output=True)
    except FileNotFoundError:
        logger.debug("git executable not found")
        return subprocess.CompletedProcess(["git", *args], 127, b"", b"")


def _git_text(args: Sequence[str], cwd: str) -> str:
    """Run git and return stripped stdout, or "" on failure."""
    proc = _git(args, cwd)
    if proc.returncode != 0:
        return ""
    return proc.stdout.decode("utf-8", errors="replace").strip()


def is_git_repo(cwd: str) -> bool:
    return _git(["rev-parse", "--git-dir"], cwd).returncode == 0


def _has_changes(cwd: str, *args: str) -> bool:
    # `git diff --quiet` exits 1 when there are differences
    return _git(["diff", "--quiet", *args], cwd).returncode == 1


def resolve_root(cwd: Optional[str] = None) -> str:
    """Git top-level directory if inside a work tree, else cwd."""
    cwd = os.path.abspath(cwd or os.getcwd())
    return _git_text(["rev-parse", "--show-toplevel"], cwd) or cwd


def _count_lines(path: str) -> int:
    try:
        with open(path, "rb") as f:
            return f.read().count(b"\n")
    except OSError:
        return 0


def _read_bytes(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError:
        logger.debug("Unreadable target file skipped: %s", path)
        return b""


# ---------------------------------------------------------------------------
# Target interface
# ---------------------------------------------------------------------------
class Target(ABC):
    """Base class for the three target modes."""

    mode = ""

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = resolve_root(root)

    @property
    def identity(self) -> str:
        """Lock / log-dir key: one session per work tree."""
        return compute_digest(self.root)

    @property
    def repo_wide(self) -> bool:
        return False

    @abstractmethod
    def iter_content(self) -> Iterator[bytes]:
        """Yield the current content in a reproducible order."""

    @abstractmethod
    def describe(self) -> str:
        """Text listing what to review."""

    @abstractmethod
    def measure(self) -> int:
        """Current size in lines."""

    @abstractmethod
    def summary(self) -> str:
        """One-line description for the log."""


class FileTarget(Target):
    """An explicit list of readable files, fingerprinted in the given order."""

    mode = "files"

    def __init__(self, files: Sequence[str], root: Optional[str] = None) -> None:
        if not files:
            raise TargetError("--files requires at least one file")
        resolved: List[str] = []
        for name in files:
            if not os.path.exists(name):
                raise TargetError(f"file not found: {name}")
            if not os.path.isfile(name):
                raise TargetError(f"not a file: {name}")
            if not os.access(name, os.R_OK):
                raise TargetError(f"file not readable: {name}")
            resolved.append(os.path.realpath(name))
        self.files = resolved
        super().__init__(root)

    def iter_content(self) -> Iterator[bytes]:
        for path in self.files:
            yield _read_bytes(path)

    def describe(self) -> str:
        return "\n".join(self.files)

    def measure(self) -> int:
        return sum(_count_lines(path) for path in self.files)

    def summary(self) -> str:
        return f"{len(self.files)} file(s): {' '.join(self.files)}"

    def render_context(self) -> str:
        """Inline file contents for single-shot prompts."""
        parts = ["<files>"]
        for path in self.files:
            parts.append(f"=== {path} ===")
            parts.append(_read_bytes(path).decode("utf-8", errors="replace"))
        parts.append("</files>")
        return "\n".join(parts)


class RepoTarget(Target):
    """Every tracked file; the agent explores the repository on its own."""

    mode = "repo"

    def __init__(self, root: Optional[str] = None) -> None:
        super().__init__(root)
        if not is_git_repo(self.root):
            raise TargetError("not a git repository")

    @property
    def repo_wide(self) -> bool:
        return True

    def tracked_files(self) -> List[str]:
        proc = _git(["ls-files", "-z"], self.root)
        if proc.returncode != 0:
            return []
        names = proc.stdout.decode("utf-8", errors="replace").split("\0")
        return [os.path.join(self.root, n) for n in names if n]

    def iter_content(self) -> Iterator[bytes]:
        for path in self.tracked_files():
            if os.path.isfile(path):
                yield _read_bytes(path)

    def describe(self) -> str:
        return ""

    def measure(self) -> int:
        return sum(_count_lines(p) for p in self.tracked_files() if os.path.isfile(p))

    def summary(self) -> str:
        return "repo-wide"


class DiffTarget(Target):
    """
    Branch changes against a base.

    Base resolution: main, then master; if neither has a diff against HEAD,
    the upstream branch when it does. Content, file list and size are
    computed against the merge base and include the working tree.
    """

    mode = "diff"

    def __init__(self, root: Optional[str] = None, base: Optional[str] = None) -> None:
        super().__init__(root)
        if not is_git_repo(self.root):
            raise TargetError("not a git repository: use --files for standalone files")

        self.branch = _git_text(["rev-parse", "--abbrev-ref", "HEAD"], self.root)
        if self.branch in PROTECTED_BRANCHES:
            raise TargetError(
                f"on protected branch '{self.branch}': checkout a feature branch or use --files"
            )

        self.base = base or self._resolve_base()
        if not self.base:
            raise TargetError("no base branch found: ensure main/master exists or use --files")

        if not (
            _has_changes(self.root, f"{self.base}...HEAD")
            or _has_changes(self.root, "HEAD")
            or _has_changes(self.root, "--cached")
        ):
            raise TargetError("no changes detected: nothing to check")

        self.merge_base = _git_text(["merge-base", self.base, "HEAD"], self.root) or self.base

    def _resolve_base(self) -> str:
        base = ""
        for candidate in PROTECTED_BRANCHES:
            if _git(["rev-parse", "--verify", candidate], self.root).returncode == 0:
                base = candidate
                break
        if not base or not _has_changes(self.root, f"{base}...HEAD"):
            upstream = _git_text(["rev-parse", "--abbrev-ref", "@{upstream}"], self.root)
            if upstream and _has_changes(self.root, f"{upstream}...HEAD"):
                base = upstream
        return base

    def diff(self) -> str:
        return _git(["diff", self.merge_base], self.root).stdout.decode("utf-8", errors="replace")

    def iter_content(self) -> Iterator[bytes]:
        yield _git(["diff", self.merge_base], self.root).stdout

    def describe(self) -> str:
        return _git_text(["diff", "--name-only", self.merge_base], self.root)

    def measure(self) -> int:
        total = 0
        for line in _git_text(["diff", "--numstat", self.merge_base], self.root).splitlines():
            added, deleted = (line.split("\t") + ["", ""])[:2]
            # Binary files report "-"
            total += int(added) if added.isdigit() else 0
            total += int(deleted) if deleted.isdigit() else 0
        return total

    def summary(self) -> str:
        return f"{self.branch} → {self.base}"

    def render_context(self) -> str:
        return f"<diff>\n{self.diff()}\n</diff>"


def build_target(
    files: Optional[Sequence[str]] = None,
    repo: bool = False,
    root: Optional[str] = None,
) -> Target:
    """Pick the target mode from CLI-style options."""
    if repo and files:
        raise TargetError("cannot use both --repo and --files")
    if repo:
        return RepoTarget(root)
    if files:
        return FileTarget(files, root)
    return DiffTarget(root)
