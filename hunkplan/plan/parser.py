"""Hunk Extractor: unified diff text -> ParsedDiff.

Contains:
- parse_diff: Parse a unified diff into hunks plus a lossless segment list
- _parse_block: Parse one file block (headers and hunks)
- _parse_hunk: Parse one @@ hunk, checking its line counts
- _pair_renames: Collapse a deleted file and a near-identical added file
  into a single rename hunk
- _build_hunks: Assign ordinals and stable ids, extract identifiers

Every byte of the input ends up in exactly one DiffSegment, so
ParsedDiff.reconstruct() returns the original text.
"""

import difflib
import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from hunkplan.plan.exceptions import ParseError
from hunkplan.plan.identifiers import extract_identifiers, extract_symbols
from hunkplan.plan.models import (
    ChangeKind,
    DiffSegment,
    FileBlock,
    Hunk,
    ParsedDiff,
)
from hunkplan.plan.settings import PlannerConfig

logger = logging.getLogger(__name__)

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_GIT_HEADER_RE = re.compile(r"^diff --git (\"?a/.*?\"?) (\"?b/.*\"?)$")
_SIMILARITY_RE = re.compile(r"^similarity index (\d+)%")


@dataclass
class _RawHunk:
    key: int
    header: str
    old_start: int
    old_len: int
    new_start: int
    new_len: int
    lines: list[str]

    @property
    def added(self) -> list[str]:
        return [_content(line) for line in self.lines[1:] if line.startswith("+")]

    @property
    def removed(self) -> list[str]:
        return [_content(line) for line in self.lines[1:] if line.startswith("-")]


@dataclass
class _RawBlock:
    index: int
    path: str = ""
    old_path: str = ""
    kind: ChangeKind = ChangeKind.MODIFY
    is_binary: bool = False
    similarity: Optional[float] = None
    hunks: list[_RawHunk] = field(default_factory=list)
    partner: Optional[int] = None  # Paired delete/add block index
    paired_similarity: Optional[float] = None

    @property
    def owned(self) -> bool:
        """Whether a single hunk represents the whole block."""
        return (
            self.kind != ChangeKind.MODIFY
            or self.is_binary
            or not self.hunks
            or self.partner is not None
        )


@dataclass
class _Piece:
    text: str
    block: Optional[int] = None
    hunk_key: Optional[int] = None
    is_header: bool = False


def parse_diff(diff_text: str, config: Optional[PlannerConfig] = None) -> ParsedDiff:
    """Parse unified diff text (as produced by 'git diff --patch').

    Args:
        diff_text: Raw unified diff
        config: Planner configuration (rename pairing threshold,
            identifier length)

    Returns:
        ParsedDiff with hunks in diff order

    Raises:
        ParseError: If the diff is malformed
    """
    config = config or PlannerConfig()
    lines = _split_lines(diff_text)
    blocks: list[_RawBlock] = []
    pieces: list[_Piece] = []
    hunk_counter = [0]

    i = 0
    while i < len(lines):
        line = lines[i]
        if _is_block_start(lines, i):
            block = _RawBlock(index=len(blocks))
            blocks.append(block)
            i = _parse_block(lines, i, block, pieces, hunk_counter)
        elif not line.strip():
            pieces.append(_Piece(line))
            i += 1
        elif line[:1] in ("+", "-", " "):
            raise ParseError("hunk body is longer than its header declares", i + 1)
        else:
            raise ParseError(f"unexpected text outside a file block: {line.rstrip()!r}", i + 1)

    _pair_renames(blocks, config.rename_similarity)
    return _build_hunks(blocks, pieces, config)


def _split_lines(text: str) -> list[str]:
    """Split on '\\n' only, keeping line endings (\\r stays in content)."""
    parts = text.split("\n")
    tail = parts.pop()
    lines = [part + "\n" for part in parts]
    if tail:
        lines.append(tail)
    return lines


def _content(line: str) -> str:
    """Strip the diff prefix and the trailing newline."""
    return line[1:-1] if line.endswith("\n") else line[1:]


def _is_block_start(lines: list[str], i: int) -> bool:
    line = lines[i]
    if line.startswith("diff --git "):
        return True
    return (
        line.startswith("--- ")
        and i + 1 < len(lines)
        and lines[i + 1].startswith("+++ ")
    )


def _strip_path(raw: str) -> str:
    """Remove quoting, a/ b/ prefixes and trailing timestamps from a path."""
    path = raw.rstrip("\r\n")
    if "\t" in path:
        path = path.split("\t", 1)[0]
    if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
        path = path[1:-1]
    if path.startswith(("a/", "b/")):
        path = path[2:]
    return path


def _parse_block(
    lines: list[str],
    i: int,
    block: _RawBlock,
    pieces: list[_Piece],
    hunk_counter: list[int],
) -> int:
    """Parse one file block starting at line index i.

    Returns:
        Index of the first line after the block
    """
    start = i
    header: list[str] = []

    if lines[i].startswith("diff --git "):
        match = _GIT_HEADER_RE.match(lines[i].rstrip("\r\n"))
        if not match:
            raise ParseError(f"malformed file header: {lines[i].rstrip()!r}", i + 1)
        block.old_path = _strip_path(match.group(1))
        block.path = _strip_path(match.group(2))
        header.append(lines[i])
        i += 1

    while i < len(lines):
        line = lines[i]
        if line.startswith(("@@", "diff --git ")) or not line.strip():
            break
        if header and line.startswith("--- ") and any(h.startswith("+++ ") for h in header):
            # A second ---/+++ pair starts a new plain-diff block
            break
        header.append(line)
        i += 1
        text = line.rstrip("\r\n")

        if text.startswith("new file mode"):
            block.kind = ChangeKind.ADD
        elif text.startswith("deleted file mode"):
            block.kind = ChangeKind.DELETE
        elif text.startswith("rename from "):
            block.old_path = text[len("rename from "):]
            block.kind = ChangeKind.RENAME
        elif text.startswith("rename to "):
            block.path = text[len("rename to "):]
            block.kind = ChangeKind.RENAME
        elif text.startswith("copy from "):
            block.old_path = text[len("copy from "):]
            block.kind = ChangeKind.COPY
        elif text.startswith("copy to "):
            block.path = text[len("copy to "):]
            block.kind = ChangeKind.COPY
        elif _SIMILARITY_RE.match(text):
            block.similarity = int(_SIMILARITY_RE.match(text).group(1)) / 100
        elif text.startswith("--- "):
            if text[4:].startswith("/dev/null"):
                if block.kind == ChangeKind.MODIFY:
                    block.kind = ChangeKind.ADD
            else:
                block.old_path = _strip_path(text[4:])
        elif text.startswith("+++ "):
            if text[4:].startswith("/dev/null"):
                if block.kind == ChangeKind.MODIFY:
                    block.kind = ChangeKind.DELETE
            else:
                block.path = _strip_path(text[4:])
        elif text.startswith("Binary files ") or text.startswith("GIT binary patch"):
            block.is_binary = True
            # The binary payload (including blank separators) runs to the next block
            while i < len(lines) and not lines[i].startswith("diff --git "):
                header.append(lines[i])
                i += 1
            break

    if not block.path:
        block.path = block.old_path
    if not block.old_path:
        block.old_path = block.path
    if not block.path:
        raise ParseError("file block without a path", start + 1)

    pieces.append(_Piece("".join(header), block=block.index, is_header=True))

    while i < len(lines) and lines[i].startswith("@@"):
        raw, i = _parse_hunk(lines, i, hunk_counter)
        _check_ranges(block, raw, i)
        block.hunks.append(raw)
        pieces.append(_Piece("".join(raw.lines), block=block.index, hunk_key=raw.key))

    return i


def _parse_hunk(lines: list[str], i: int, hunk_counter: list[int]) -> tuple[_RawHunk, int]:
    """Parse an @@ hunk and its body, enforcing the header's line counts."""
    header = lines[i]
    match = _HUNK_HEADER_RE.match(header)
    if not match:
        raise ParseError(f"malformed hunk header: {header.rstrip()!r}", i + 1)

    old_start = int(match.group(1))
    old_len = int(match.group(2)) if match.group(2) is not None else 1
    new_start = int(match.group(3))
    new_len = int(match.group(4)) if match.group(4) is not None else 1

    body = [header]
    old_left, new_left = old_len, new_len
    j = i + 1

    while old_left > 0 or new_left > 0:
        if j >= len(lines):
            raise ParseError(
                f"hunk ends early: {old_left} old and {new_left} new lines missing",
                j,
            )
        line = lines[j]
        tag = line[:1]
        if tag == " " or line in ("\n", "\r\n"):
            old_left -= 1
            new_left -= 1
        elif tag == "-":
            old_left -= 1
        elif tag == "+":
            new_left -= 1
        elif tag != "\\":
            raise ParseError(
                f"hunk ends early: unexpected line {line.rstrip()!r}", j + 1
            )
        if old_left < 0 or new_left < 0:
            raise ParseError("hunk body does not match its header line counts", j + 1)
        body.append(line)
        j += 1

    # "\ No newline at end of file" markers after the last line
    while j < len(lines) and lines[j].startswith("\\"):
        body.append(lines[j])
        j += 1

    hunk_counter[0] += 1
    raw = _RawHunk(
        key=hunk_counter[0],
        header=header.rstrip("\r\n"),
        old_start=old_start,
        old_len=old_len,
        new_start=new_start,
        new_len=new_len,
        lines=body,
    )
    return raw, j


def _check_ranges(block: _RawBlock, raw: _RawHunk, line_number: int) -> None:
    """Hunks within a file must be in order and must not overlap."""
    if not block.hunks:
        return
    prev = block.hunks[-1]
    if raw.old_start < prev.old_start + prev.old_len or raw.new_start < prev.new_start + prev.new_len:
        raise ParseError(
            f"overlapping or out-of-order hunks in {block.path}: "
            f"{prev.header!r} then {raw.header!r}",
            line_number,
        )


def _pair_renames(blocks: list[_RawBlock], threshold: float) -> None:
    """Pair deleted files with near-identical added files.

    Each deleted block is paired with the most similar unpaired added block
    whose line similarity is strictly above the threshold (earliest block
    wins ties).
    """
    deletes = [b for b in blocks if b.kind == ChangeKind.DELETE and not b.is_binary and b.hunks]
    adds = [b for b in blocks if b.kind == ChangeKind.ADD and not b.is_binary and b.hunks]
    if not deletes or not adds:
        return

    for deleted in deletes:
        removed = [line for h in deleted.hunks for line in h.removed]
        best: Optional[_RawBlock] = None
        best_ratio = 0.0
        for added_block in adds:
            if added_block.partner is not None:
                continue
            added = [line for h in added_block.hunks for line in h.added]
            ratio = difflib.SequenceMatcher(None, removed, added, autojunk=False).ratio()
            if ratio > threshold and ratio > best_ratio:
                best, best_ratio = added_block, ratio
        if best is not None:
            deleted.partner = best.index
            best.partner = deleted.index
            deleted.paired_similarity = best.paired_similarity = round(best_ratio, 4)
            logger.debug(
                "Paired %s -> %s as rename (similarity %.2f)",
                deleted.path, best.path, best_ratio,
            )


def _hunk_id(ordinal: int, old_path: str, path: str, ranges: tuple, text: str) -> str:
    payload = f"{old_path}\0{path}\0{ranges}\0{text}".encode("utf-8", "surrogatepass")
    digest = hashlib.md5(payload, usedforsecurity=False).hexdigest()[:8]
    return f"H{ordinal}_{digest}"


def _build_hunks(
    blocks: list[_RawBlock], pieces: list[_Piece], config: PlannerConfig
) -> ParsedDiff:
    """Turn raw blocks into Hunks with stable ids and identifier sets."""
    hunks: list[Hunk] = []
    key_to_id: dict[int, str] = {}
    owner_of_block: dict[int, str] = {}

    def add_hunk(kind, path, old_path, raws, block_indices, similarity, is_binary):
        ordinal = len(hunks) + 1
        added = tuple(line for raw in raws for line in raw.added)
        removed = tuple(line for raw in raws for line in raw.removed)
        if raws:
            first, last = raws[0], raws[-1]
            old_start, new_start = first.old_start, first.new_start
            old_len = last.old_start + last.old_len - first.old_start
            new_len = last.new_start + last.new_len - first.new_start
            header = first.header
        else:
            old_start = old_len = new_start = new_len = 0
            header = ""
        ranges = (old_start, old_len, new_start, new_len)
        keys = {raw.key for raw in raws}
        text = "".join(
            p.text for p in pieces
            if p.block in block_indices and (p.is_header or p.hunk_key in keys)
        )
        hunk_id = _hunk_id(ordinal, old_path or "", path, ranges, text)
        symbols = extract_symbols(path, added)
        defined, referenced, mentioned = extract_identifiers(
            path, added, removed, config.min_identifier_length, symbols=symbols
        )
        hunks.append(Hunk(
            id=hunk_id,
            ordinal=ordinal,
            file_path=path,
            kind=kind,
            old_start=old_start,
            old_len=old_len,
            new_start=new_start,
            new_len=new_len,
            header=header,
            added=added,
            removed=removed,
            defined=defined,
            referenced=referenced,
            mentioned=mentioned,
            symbols_defined=symbols[0],
            symbols_used=symbols[1],
            old_path=old_path,
            similarity=similarity,
            is_binary=is_binary,
        ))
        for raw in raws:
            key_to_id[raw.key] = hunk_id
        for index in block_indices:
            owner_of_block[index] = hunk_id

    for block in blocks:
        if block.partner is not None:
            if block.partner < block.index:
                continue  # Emitted with its earlier partner
            partner = blocks[block.partner]
            deleted, added_block = (block, partner) if block.kind == ChangeKind.DELETE else (partner, block)
            add_hunk(
                ChangeKind.RENAME,
                added_block.path,
                deleted.path,
                deleted.hunks + added_block.hunks,
                {block.index, partner.index},
                block.paired_similarity,
                False,
            )
        elif block.owned:
            is_move = block.kind in (ChangeKind.RENAME, ChangeKind.COPY)
            add_hunk(
                block.kind,
                block.path,
                block.old_path if is_move else None,
                block.hunks,
                {block.index},
                block.similarity if is_move else None,
                block.is_binary,
            )
        else:
            for raw in block.hunks:
                add_hunk(block.kind, block.path, None, [raw], {block.index}, None, False)
            # Modified files share their header between hunks
            owner_of_block.pop(block.index, None)

    file_blocks = [
        FileBlock(
            index=block.index,
            path=block.path,
            old_path=block.old_path,
            kind=block.kind,
            is_binary=block.is_binary,
            owner=owner_of_block.get(block.index),
            hunk_ids=[key_to_id[raw.key] for raw in block.hunks],
        )
        for block in blocks
    ]
    segments = [
        DiffSegment(
            text=p.text,
            block=p.block,
            hunk_id=key_to_id.get(p.hunk_key) if p.hunk_key is not None else None,
            is_header=p.is_header,
        )
        for p in pieces
    ]
    for file_block in file_blocks:
        if file_block.owner and not file_block.hunk_ids:
            file_block.hunk_ids = [file_block.owner]

    logger.debug("Parsed %d hunks from %d file blocks", len(hunks), len(blocks))
    return ParsedDiff(hunks=hunks, blocks=file_blocks, segments=segments)
