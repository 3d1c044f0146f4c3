"""Path classification and scope inference for hunkplan.

Deterministic, path-only helpers used by the message synthesizer:
- is_docs_file / is_test_file / is_build_file / is_chore_file: classify a
  path by directory and file name patterns
- infer_group_scope: the deepest meaningful directory shared by all of a
  group's files, or None when the files span unrelated areas
"""

from pathlib import PurePosixPath
from typing import Iterable, Optional


# Segments too generic to serve as a commit scope
DEFAULT_STOP_WORDS = {
    "src",
    "lib",
    "libs",
    "source",
    "sources",
    "tests",
    "test",
    "spec",
    "specs",
    "__tests__",
    "__pycache__",
    "node_modules",
    "vendor",
    "dist",
    "build",
    "out",
    "target",
    "bin",
    "obj",
    "pkg",
    "cmd",
    "internal",
    "public",
    "private",
    "static",
    "assets",
    "resources",
    "main",
    "index",
    "app",
    "common",
    "shared",
    "utils",
    "util",
    "helpers",
    "helper",
    # Monorepo roots
    "packages",
    "apps",
    "modules",
    "services",
    "plugins",
    "workspaces",
}

DOC_EXTENSIONS = {".md", ".rst", ".txt", ".adoc", ".asciidoc", ".mdx"}
DOC_DIRS = {"docs", "doc", "documentation", "wiki"}
DOC_NAMES = {"readme", "changelog", "license", "contributing", "authors", "notice"}

TEST_PATTERNS = [
    "test_",
    "_test.",
    ".test.",
    "tests/",
    "test/",
    "spec/",
    "specs/",
    "__tests__/",
    ".spec.",
    "_spec.",
    "conftest.py",
]

BUILD_FILES = {
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "requirements.txt",
    "pipfile",
    "pipfile.lock",
    "poetry.lock",
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "cargo.toml",
    "cargo.lock",
    "go.mod",
    "go.sum",
    "gemfile",
    "gemfile.lock",
    "makefile",
    "cmakelists.txt",
    "dockerfile",
    "build.gradle",
    "pom.xml",
    "tsconfig.json",
}
BUILD_DIRS = {".github", ".gitlab", ".circleci", "ci", "docker"}

CHORE_FILES = {
    ".gitignore",
    ".gitattributes",
    ".editorconfig",
    ".pre-commit-config.yaml",
    ".dockerignore",
    ".env.example",
    "tox.ini",
    ".flake8",
    ".pylintrc",
    ".prettierrc",
    ".eslintrc",
    ".eslintrc.json",
}


def normalize_path(path: str) -> str:
    """Normalize a file path for consistent processing.

    Args:
        path: The file path to normalize.

    Returns:
        Normalized path with forward slashes.
    """
    return path.replace("\\", "/").strip("/")


def is_docs_file(path: str) -> bool:
    """Check if a file is a documentation file."""
    normalized = normalize_path(path).lower()
    if is_build_file(normalized):
        return False
    if any(normalized.endswith(ext) for ext in DOC_EXTENSIONS):
        return True
    name = normalized.rsplit("/", 1)[-1]
    if name.split(".", 1)[0] in DOC_NAMES:
        return True
    return any(part in DOC_DIRS for part in normalized.split("/")[:-1])


def is_test_file(path: str) -> bool:
    """Check if a file is a test file."""
    normalized = normalize_path(path).lower()
    return any(pattern in normalized for pattern in TEST_PATTERNS)


def is_build_file(path: str) -> bool:
    """Check if a file is a build, dependency or CI definition."""
    normalized = normalize_path(path).lower()
    parts = normalized.split("/")
    return parts[-1] in BUILD_FILES or parts[0] in BUILD_DIRS


def is_chore_file(path: str) -> bool:
    """Check if a file is repository housekeeping (ignore files, linters)."""
    name = normalize_path(path).lower().rsplit("/", 1)[-1]
    return name in CHORE_FILES


def infer_group_scope(
    files: Iterable[str],
    stop_words: Optional[set[str]] = None,
) -> Optional[str]:
    """Infer a conventional-commit scope from a group's files.

    The scope is the deepest non-generic directory shared by every file. A
    lone file at the repository root uses its stem. Files that share no
    meaningful directory get no scope.

    Args:
        files: File paths in the group.
        stop_words: Directory names too generic to be a scope.

    Returns:
        The scope, or None.
    """
    if stop_words is None:
        stop_words = DEFAULT_STOP_WORDS

    paths = sorted({normalize_path(f) for f in files if f})
    if not paths:
        return None

    dir_parts = [p.split("/")[:-1] for p in paths]
    common: list[str] = []
    for segments in zip(*dir_parts):
        if len(set(segments)) != 1:
            break
        common.append(segments[0])

    for segment in reversed(common):
        if segment.lower() not in stop_words and len(segment) > 1 and not segment.startswith("."):
            return segment

    if len(paths) == 1 and not common:
        stem = PurePosixPath(paths[0]).stem.lstrip(".")
        if stem and stem.lower() not in stop_words and stem.lower() not in DOC_NAMES:
            return stem

    return None
