"""Shared test fixtures and configuration."""

import subprocess
import tempfile
from pathlib import Path

import pytest

from hunkplan.plan.models import ChangeKind, Hunk
from hunkplan.plan.prompt import MessageRequest, MessageResponse
from hunkplan.plan.synthesis import TextGenerator


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_repo_root(temp_dir):
    """Create a mock git repository root directory."""
    # Create .git directory to simulate a git repo
    git_dir = temp_dir / ".git"
    git_dir.mkdir()
    return temp_dir


def _git(repo_dir: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(["git", *args], cwd=repo_dir, capture_output=True, text=True)


@pytest.fixture
def git():
    """Run a git command in a directory."""
    return _git


@pytest.fixture
def temp_repo(tmp_path):
    """Create a temporary git repository with one commit."""
    repo_dir = tmp_path / "test_repo"
    repo_dir.mkdir()

    _git(repo_dir, "init")
    _git(repo_dir, "config", "user.email", "test@example.com")
    _git(repo_dir, "config", "user.name", "Test User")
    _git(repo_dir, "config", "commit.gpgsign", "false")

    # Create initial commit
    (repo_dir / "README.md").write_text("# Test Repo\n")
    _git(repo_dir, "add", "README.md")
    _git(repo_dir, "commit", "-m", "Initial commit")

    return repo_dir


# ============================================================================
# Sample diffs
# ============================================================================


@pytest.fixture
def sample_diff():
    """Two related hunks in one file plus an unrelated docs change."""
    return """diff --git a/src/app/main.py b/src/app/main.py
index 1234567..abcdefg 100644
--- a/src/app/main.py
+++ b/src/app/main.py
@@ -10,2 +10,4 @@ def main():
     print("Hello")
+    print("World")
+    print("!")
     return 0
@@ -20,1 +22,3 @@ def helper():
     pass
+    # New comment
+    return True
diff --git a/docs/guide.md b/docs/guide.md
index 1111111..2222222 100644
--- a/docs/guide.md
+++ b/docs/guide.md
@@ -1,3 +1,4 @@
 # Guide
+Install with pip.

 Usage notes.
"""


@pytest.fixture
def dependency_diff():
    """A helper defined in one file and called from another."""
    return """diff --git a/src/utils/strings.py b/src/utils/strings.py
new file mode 100644
index 0000000..1234567
--- /dev/null
+++ b/src/utils/strings.py
@@ -0,0 +1,2 @@
+def slugify_title(text):
+    return text.lower().replace(" ", "-")
diff --git a/web/views.py b/web/views.py
index 1111111..2222222 100644
--- a/web/views.py
+++ b/web/views.py
@@ -40,2 +40,3 @@ def render_page(page):
     header = page.header
+    header.slug = slugify_title(page.title)
     return header
"""


@pytest.fixture
def rename_diff():
    """A file deleted and re-added elsewhere with identical content."""
    body = [
        "def load_settings(path):",
        "    with open(path) as handle:",
        "        return parse_settings(handle.read())",
        "",
        "def parse_settings(text):",
        "    return dict(line.split('=', 1) for line in text.splitlines())",
    ]
    removed = "".join(f"-{line}\n" for line in body)
    added = "".join(f"+{line}\n" for line in body)
    return (
        "diff --git a/old/settings.py b/old/settings.py\n"
        "deleted file mode 100644\n"
        "index 1234567..0000000\n"
        "--- a/old/settings.py\n"
        "+++ /dev/null\n"
        f"@@ -1,{len(body)} +0,0 @@\n"
        f"{removed}"
        "diff --git a/new/settings.py b/new/settings.py\n"
        "new file mode 100644\n"
        "index 0000000..1234567\n"
        "--- /dev/null\n"
        "+++ b/new/settings.py\n"
        f"@@ -0,0 +1,{len(body)} @@\n"
        f"{added}"
    )


@pytest.fixture
def make_hunk():
    """Factory for hand-built hunks with readable defaults."""
    def factory(
        ordinal,
        file_path="src/app.py",
        kind=ChangeKind.MODIFY,
        new_start=None,
        new_len=1,
        added=("x = 1",),
        removed=(),
        defined=(),
        referenced=(),
        old_path=None,
    ):
        start = new_start if new_start is not None else ordinal * 100
        return Hunk(
            id=f"H{ordinal}_{ordinal:08x}",
            ordinal=ordinal,
            file_path=file_path,
            kind=kind,
            old_start=start,
            old_len=len(removed),
            new_start=start,
            new_len=new_len,
            header=f"@@ -{start},{len(removed)} +{start},{new_len} @@",
            added=tuple(added),
            removed=tuple(removed),
            defined=frozenset(defined),
            referenced=frozenset(referenced),
            symbols_defined=frozenset(defined),
            symbols_used=frozenset(referenced),
            old_path=old_path,
        )
    return factory


# ============================================================================
# Text generators
# ============================================================================


class StaticGenerator(TextGenerator):
    """Returns the same response for every group."""

    def __init__(self, summary="describe the change", body=None):
        self.summary = summary
        self.body = body
        self.requests: list[MessageRequest] = []

    def generate(self, request: MessageRequest) -> MessageResponse:
        self.requests.append(request)
        return MessageResponse(summary=self.summary, body=self.body)


class FailingGenerator(TextGenerator):
    """Always fails, like an unreachable service."""

    def generate(self, request: MessageRequest) -> MessageResponse:
        raise ConnectionError("service unavailable")


@pytest.fixture
def static_generator():
    return StaticGenerator()


@pytest.fixture
def failing_generator():
    return FailingGenerator()
