"""Data models for the hunkplan planning core.

Contains:
- ChangeKind: How a hunk changes its file (add/modify/delete/rename/copy)
- CommitType: Conventional commit types the planner emits
- Hunk: Immutable atomic unit of change
- FileBlock / DiffSegment / ParsedDiff: Lossless view of the raw diff
- RelationEdge / RelationGraph: Weighted relatedness between hunks
- Group: A candidate commit (mutable during review)
- Plan: Ordered groups plus their dependency relation
- ApprovedPlan: Frozen plan handed to the materializer
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ChangeKind(str, Enum):
    """How a hunk changes its file."""

    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"
    RENAME = "rename"
    COPY = "copy"


class CommitType(str, Enum):
    """Conventional commit types."""

    FEAT = "feat"
    FIX = "fix"
    REFACTOR = "refactor"
    DOCS = "docs"
    TEST = "test"
    CHORE = "chore"
    STYLE = "style"
    PERF = "perf"
    BUILD = "build"


# Relation edge reasons
SAME_FILE_ADJACENT = "same-file-adjacent"
IDENTIFIER_OVERLAP = "identifier-overlap"
RENAME_PAIR = "rename-pair"
TEXTUAL_SIMILARITY = "textual-similarity"


@dataclass(frozen=True)
class Hunk:
    """Atomic unit of change: a contiguous changed region in one file.

    Renames and copies collapse into a single hunk covering the whole file,
    so `old_path` is only set for those kinds.
    """

    id: str
    ordinal: int  # Position in the diff, used for deterministic ordering
    file_path: str
    kind: ChangeKind
    old_start: int
    old_len: int
    new_start: int
    new_len: int
    header: str  # The @@ line, or "" for header-only changes
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    defined: frozenset[str] = frozenset()
    referenced: frozenset[str] = frozenset()
    mentioned: frozenset[str] = frozenset()  # Identifiers on removed lines
    # Unfiltered names for dependency ordering
    symbols_defined: frozenset[str] = frozenset()
    symbols_used: frozenset[str] = frozenset()
    old_path: Optional[str] = None
    similarity: Optional[float] = None  # For rename/copy hunks
    is_binary: bool = False

    @property
    def identifiers(self) -> frozenset[str]:
        """All identifiers this hunk defines, references or removes."""
        return self.defined | self.referenced | self.mentioned

    @property
    def paths(self) -> tuple[str, ...]:
        """Every path this hunk touches (old path first for renames)."""
        if self.old_path and self.old_path != self.file_path:
            return (self.old_path, self.file_path)
        return (self.file_path,)

    def line_span(self) -> tuple[int, int]:
        """Line range used for adjacency, on the side that still exists."""
        if self.kind == ChangeKind.DELETE:
            return self.old_start, self.old_start + max(self.old_len, 1) - 1
        return self.new_start, self.new_start + max(self.new_len, 1) - 1

    def snippet(self, max_lines: int = 5) -> str:
        """Get a snippet of the hunk content for display."""
        content_lines = [f"-{ln}" for ln in self.removed] + [f"+{ln}" for ln in self.added]
        content_lines = [ln.rstrip("\r") for ln in content_lines]
        if len(content_lines) <= max_lines:
            return "\n".join(content_lines)
        return "\n".join(content_lines[:max_lines]) + f"\n... ({len(content_lines) - max_lines} more lines)"


@dataclass(frozen=True)
class DiffSegment:
    """A contiguous piece of the raw diff text.

    Header segments belong to a file block and are shared by its hunks;
    hunk segments belong to exactly one hunk; segments with neither are
    inter-block filler (blank lines) that no patch needs.
    """

    text: str
    block: Optional[int] = None
    hunk_id: Optional[str] = None
    is_header: bool = False


@dataclass
class FileBlock:
    """One 'diff --git' block of the raw diff."""

    index: int
    path: str
    old_path: str
    kind: ChangeKind
    is_binary: bool = False
    owner: Optional[str] = None  # Set when one hunk owns the whole block
    hunk_ids: list[str] = field(default_factory=list)


@dataclass
class ParsedDiff:
    """The extractor's output: hunks plus a lossless segment list."""

    hunks: list[Hunk] = field(default_factory=list)
    blocks: list[FileBlock] = field(default_factory=list)
    segments: list[DiffSegment] = field(default_factory=list)

    def by_id(self) -> dict[str, Hunk]:
        """Build a mapping of hunk ID to Hunk."""
        return {hunk.id: hunk for hunk in self.hunks}

    def reconstruct(self) -> str:
        """Re-concatenate every segment; equals the original diff text."""
        return "".join(segment.text for segment in self.segments)

    def hunk_text(self, hunk_id: str) -> str:
        """Raw diff text owned by one hunk (without shared file headers)."""
        owned = []
        for segment in self.segments:
            if segment.hunk_id == hunk_id:
                owned.append(segment.text)
            elif segment.is_header and self.blocks[segment.block].owner == hunk_id:
                owned.append(segment.text)
        return "".join(owned)


@dataclass(frozen=True)
class RelationEdge:
    """Undirected weighted link between two hunks (a sorts before b)."""

    a: str
    b: str
    weight: float
    reasons: frozenset[str] = frozenset()


@dataclass
class RelationGraph:
    """Weighted undirected graph over hunk ids."""

    nodes: tuple[str, ...] = ()
    edges: dict[tuple[str, str], RelationEdge] = field(default_factory=dict)

    def weight(self, a: str, b: str) -> float:
        """Weight of the edge between two hunks, 0.0 when absent."""
        edge = self.edges.get((a, b)) or self.edges.get((b, a))
        return edge.weight if edge else 0.0

    def neighbors(self, hunk_id: str) -> dict[str, float]:
        """Adjacent hunks with edge weights."""
        result: dict[str, float] = {}
        for (a, b), edge in self.edges.items():
            if a == hunk_id:
                result[b] = edge.weight
            elif b == hunk_id:
                result[a] = edge.weight
        return result

    def edge_list(self) -> list[RelationEdge]:
        """Edges in insertion order (sorted by hunk ordinal pair)."""
        return list(self.edges.values())


class Group(BaseModel):
    """A candidate commit: a set of hunk ids plus its message."""

    id: str  # e.g., "G1", "G2"
    hunk_ids: list[str]
    type: Optional[CommitType] = None
    scope: Optional[str] = None
    summary: str = ""
    body: Optional[str] = None
    message_source: str = "template"  # template | generated | user


class Plan(BaseModel):
    """Ordered groups plus the dependency relation between them."""

    groups: list[Group] = []
    dependencies: list[tuple[str, str]] = []  # (before, after)
    cycle_groups: list[str] = []  # Groups ordered by file-order fallback
    warnings: list[str] = []

    def group(self, group_id: str) -> Optional[Group]:
        """Look up a group by id."""
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def group_ids(self) -> list[str]:
        """Group ids in sequence order."""
        return [group.id for group in self.groups]

    def owner_of(self, hunk_id: str) -> Optional[str]:
        """Id of the group containing a hunk."""
        for group in self.groups:
            if hunk_id in group.hunk_ids:
                return group.id
        return None

    def next_group_id(self) -> str:
        """A fresh group id not used in the plan."""
        used = {group.id for group in self.groups}
        n = len(self.groups) + 1
        while f"G{n}" in used:
            n += 1
        return f"G{n}"


class ApprovedPlan(BaseModel):
    """A plan frozen by explicit approval."""

    model_config = ConfigDict(frozen=True)

    groups: tuple[Group, ...]
    dependencies: tuple[tuple[str, str], ...] = ()
    warnings: tuple[str, ...] = ()
