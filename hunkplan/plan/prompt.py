"""Prompt/response contract for the text-generation collaborator.

Contains:
- FileChange / MessageRequest / MessageResponse: the narrow contract
- build_message_request: Assemble a request for one group
- build_user_prompt: Render a request (file list, change tree, patch excerpts)
- parse_message_response: Validate and normalize a raw response
"""

import re
from typing import Callable, Optional

from pydantic import BaseModel, Field, field_validator

from hunkplan.llm.exceptions import JSONParseError
from hunkplan.llm.parsing import parse_json_response
from hunkplan.plan.models import ChangeKind, CommitType, Group, ParsedDiff
from hunkplan.plan.settings import PlannerConfig

TRUNCATION_MARKER = "\n...[truncated]"
MAX_LISTED_FILES = 30
MAX_PATH_HISTORY = 3

# Looks up recent commit subjects for a path
PathHistory = Callable[[str], list[str]]

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_CONVENTIONAL_PREFIX_RE = re.compile(
    r"^\s*(?:feat|fix|refactor|docs|test|chore|style|perf|build|ci|revert)"
    r"(?:\([^)]*\)|\[[^\]]*\])?!?:\s*",
    re.IGNORECASE,
)

_KIND_MARKERS = {
    ChangeKind.ADD: "A",
    ChangeKind.MODIFY: "M",
    ChangeKind.DELETE: "D",
    ChangeKind.RENAME: "R",
    ChangeKind.COPY: "C",
}

_KIND_LABELS = {
    ChangeKind.ADD: "added",
    ChangeKind.MODIFY: "modified",
    ChangeKind.DELETE: "deleted",
    ChangeKind.RENAME: "renamed",
    ChangeKind.COPY: "copied",
}


class FileChange(BaseModel):
    """One file touched by a group."""

    path: str
    kind: ChangeKind
    old_path: Optional[str] = None
    additions: int = 0
    deletions: int = 0


class MessageRequest(BaseModel):
    """What the collaborator is told about a group."""

    group_id: str
    type: CommitType
    scope: Optional[str] = None
    files: list[FileChange]
    change_summary: str
    truncated_patch: str = ""
    branch: Optional[str] = None
    recent_commits: list[str] = Field(default_factory=list)
    # Old path of a renamed or copied file -> commits that touched it
    path_history: dict[str, list[str]] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    """What the collaborator returns: a summary line and an optional body."""

    summary: str
    body: Optional[str] = None

    @field_validator("summary")
    @classmethod
    def summary_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("summary must not be empty")
        return v


SYSTEM_PROMPT = """You are an expert software engineer writing git commit messages.
Be precise: only describe changes actually shown in the patch excerpts.
The commit type and scope are already decided; write only the summary and body."""

USER_PROMPT_TEMPLATE = """Write the message for one commit of a multi-commit plan.

Commit type: {type}
Scope: {scope}
{branch_line}
Files changed ({file_count}):
{file_list}

Change tree:
{change_tree}

Summary of changes: {change_summary}
{history_section}
Produce a JSON object with exactly these keys:
- "summary": string (imperative mood, lowercase start, no period, <= {max_length} chars,
  WITHOUT the "type(scope):" prefix)
- "body": string or null (one short paragraph explaining what changed and why)

Rules:
- Output ONLY valid JSON. No markdown fences. No extra keys. No commentary.
- Only describe changes shown below. Do not infer or assume other changes.
{patch_section}"""


def _group_files(group: Group, parsed: ParsedDiff) -> list[FileChange]:
    hunks = parsed.by_id()
    files: dict[str, FileChange] = {}
    for hid in group.hunk_ids:
        hunk = hunks[hid]
        change = files.get(hunk.file_path)
        if change is None:
            change = files[hunk.file_path] = FileChange(
                path=hunk.file_path, kind=hunk.kind, old_path=hunk.old_path
            )
        change.additions += len(hunk.added)
        change.deletions += len(hunk.removed)
    return list(files.values())


def describe_changes(files: list[FileChange]) -> str:
    """One-line change summary, e.g. '2 files (1 modified, 1 added), +12/-3 lines'."""
    counts: dict[str, int] = {}
    for change in files:
        label = _KIND_LABELS[change.kind]
        counts[label] = counts.get(label, 0) + 1
    kinds = ", ".join(f"{n} {label}" for label, n in counts.items())
    added = sum(f.additions for f in files)
    removed = sum(f.deletions for f in files)
    noun = "file" if len(files) == 1 else "files"
    return f"{len(files)} {noun} ({kinds}), +{added}/-{removed} lines"


def build_change_tree(files: list[FileChange]) -> str:
    """Directory tree with [A]/[M]/[D]/[R] markers and '<- old' rename notes."""
    if not files:
        return "(none)"

    lines = []
    seen_dirs: set[str] = set()
    for change in sorted(files, key=lambda f: f.path):
        parts = change.path.split("/")
        for depth in range(len(parts) - 1):
            current = "/".join(parts[:depth + 1])
            if current not in seen_dirs:
                seen_dirs.add(current)
                lines.append(f"{'  ' * depth}{parts[depth]}/")
        rename_note = f" <- {change.old_path}" if change.old_path else ""
        lines.append(
            f"{'  ' * (len(parts) - 1)}- [{_KIND_MARKERS[change.kind]}] {parts[-1]}{rename_note}"
        )
    return "\n".join(lines)


def truncate_patches(
    entries: list[tuple[str, str]], max_file_chars: int, max_total_chars: int
) -> str:
    """Join per-file patch excerpts under per-file and total character limits.

    Args:
        entries: (title, patch body) pairs in file order
        max_file_chars: Limit for a single file's body
        max_total_chars: Limit for all entries together

    Returns:
        The joined excerpts ('' when there are none)
    """
    used = 0
    patches = []
    for title, body in entries:
        if not body:
            continue
        if len(body) > max_file_chars:
            body = body[:max_file_chars] + TRUNCATION_MARKER
        entry = f"{title}\n{body}"
        if used + len(entry) > max_total_chars:
            remaining = max_total_chars - used
            if remaining > 0:
                patches.append(entry[:remaining] + TRUNCATION_MARKER)
            break
        used += len(entry)
        patches.append(entry)
    return "\n\n".join(patches)


def build_message_request(
    group: Group,
    parsed: ParsedDiff,
    commit_type: CommitType,
    scope: Optional[str],
    config: Optional[PlannerConfig] = None,
    branch: Optional[str] = None,
    recent_commits: Optional[list[str]] = None,
    path_history: Optional[PathHistory] = None,
) -> MessageRequest:
    """Assemble the collaborator request for one group.

    path_history is only consulted for renamed and copied files.
    """
    config = config or PlannerConfig()
    files = _group_files(group, parsed)
    hunks = parsed.by_id()

    bodies: dict[str, list[str]] = {}
    for hid in group.hunk_ids:
        hunk = hunks[hid]
        bodies.setdefault(hunk.file_path, []).append(parsed.hunk_text(hid))

    entries = []
    for change in files:
        title = f"--- {change.path}"
        if change.old_path:
            title += f" (renamed from {change.old_path})"
        entries.append((title, "".join(bodies.get(change.path, []))))

    history: dict[str, list[str]] = {}
    if path_history is not None:
        for change in files:
            if change.old_path and change.old_path not in history:
                subjects = path_history(change.old_path)[:MAX_PATH_HISTORY]
                if subjects:
                    history[change.old_path] = subjects

    return MessageRequest(
        group_id=group.id,
        type=commit_type,
        scope=scope,
        files=files,
        change_summary=describe_changes(files),
        truncated_patch=truncate_patches(
            entries, config.max_file_patch_chars, config.max_patch_chars
        ),
        branch=branch,
        recent_commits=list(recent_commits or []),
        path_history=history,
    )


def _history_section(request: MessageRequest) -> str:
    lines = []
    if request.recent_commits:
        lines.append("Recent commits (match their style):")
        lines.extend(f"- {subject}" for subject in request.recent_commits)
    for old_path, subjects in request.path_history.items():
        lines.append(f"Earlier commits touching {old_path}:")
        lines.extend(f"- {subject}" for subject in subjects)
    return "\n" + "\n".join(lines) + "\n" if lines else ""


def build_user_prompt(request: MessageRequest, max_summary_length: int = 72) -> str:
    """Render a MessageRequest as the user prompt."""
    listed = request.files[:MAX_LISTED_FILES]
    file_lines = []
    for change in listed:
        rename = f" (from {change.old_path})" if change.old_path else ""
        file_lines.append(
            f"- {change.path}{rename} ({_KIND_LABELS[change.kind]}: "
            f"+{change.additions}/-{change.deletions})"
        )
    if len(request.files) > MAX_LISTED_FILES:
        file_lines.append(f"... and {len(request.files) - MAX_LISTED_FILES} more files")

    patch_section = ""
    if request.truncated_patch:
        patch_section = f"\nPatch excerpts:\n{request.truncated_patch}"

    prefix_len = len(request.type.value) + (len(request.scope) + 2 if request.scope else 0) + 2
    return USER_PROMPT_TEMPLATE.format(
        type=request.type.value,
        scope=request.scope or "(none)",
        branch_line=f"Branch: {request.branch}\n" if request.branch else "",
        file_count=len(request.files),
        file_list="\n".join(file_lines),
        change_tree=build_change_tree(request.files),
        change_summary=request.change_summary,
        history_section=_history_section(request),
        max_length=max(max_summary_length - prefix_len, 20),
        patch_section=patch_section,
    )


def clean_text(text: str) -> str:
    """Remove control characters (newlines and tabs are kept)."""
    return _CONTROL_RE.sub("", text)


def truncate_summary(summary: str, max_length: int) -> str:
    """Truncate at a word boundary so the summary fits max_length."""
    summary = " ".join(summary.split())
    if len(summary) <= max_length:
        return summary
    cut = summary[:max_length + 1].rsplit(" ", 1)[0]
    if not cut or len(cut) > max_length:
        cut = summary[:max_length]
    return cut.rstrip(" .,;:-")


def _from_plain_text(raw: str) -> dict:
    """Read a plain 'summary\\n\\nbody' answer, skipping comments and fences."""
    lines = [
        line.strip() for line in raw.splitlines()
        if line.strip() and not line.strip().startswith(("#", "```"))
    ]
    if not lines:
        return {}
    body = " ".join(lines[1:]) or None
    return {"summary": lines[0], "body": body}


def parse_message_response(raw: str, max_summary_length: int = 72) -> MessageResponse:
    """Validate a raw collaborator answer.

    JSON ({"summary", "body"}) is preferred; fenced or prefixed JSON is
    tolerated and a plain-text answer is read line by line. A repeated
    conventional prefix is stripped and control characters are removed.

    Raises:
        JSONParseError: If no usable summary can be extracted
    """
    text = clean_text(raw or "")
    try:
        data = parse_json_response(text)
    except JSONParseError:
        if "{" in text:
            raise
        data = _from_plain_text(text)

    summary = data.get("summary") or data.get("subject") or data.get("title") or ""
    body = data.get("body")
    if not isinstance(summary, str):
        raise JSONParseError(f"summary must be a string, got {type(summary).__name__}")
    if isinstance(body, list):
        body = "\n".join(str(item) for item in body)
    if body is not None and not isinstance(body, str):
        body = str(body)

    summary = _CONVENTIONAL_PREFIX_RE.sub("", summary.strip().splitlines()[0] if summary.strip() else "")
    summary = truncate_summary(summary, max_summary_length).rstrip(".")
    body = body.strip() if body and body.strip() else None

    try:
        return MessageResponse(summary=summary, body=body)
    except ValueError as e:
        raise JSONParseError(f"Invalid message response: {e}")
