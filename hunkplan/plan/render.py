"""Message rendering and plan display.

Contains:
- header_prefix / render_header / render_message: conventional-commit text
- parse_message: Read 'type(scope): summary' plus body back into fields
- format_plan / format_plan_json: the human and machine views of a plan
"""

import json
import re
import textwrap
from typing import Mapping, Optional, Union

from hunkplan.plan.models import ApprovedPlan, CommitType, Group, Hunk, Plan

_HEADER_RE = re.compile(r"^(?P<type>[a-z]+)(?:\((?P<scope>[^)]*)\))?!?:\s*(?P<summary>.*)$")


def wrap_text(text: str, width: int = 72) -> str:
    """Wrap each paragraph of text to the given width."""
    paragraphs = [p for p in re.split(r"\n\s*\n", text.strip()) if p.strip()]
    wrapped = []
    for paragraph in paragraphs:
        if any(line.lstrip().startswith(("-", "*")) for line in paragraph.splitlines()):
            # Bullet lists keep their line structure
            wrapped.append("\n".join(
                textwrap.fill(
                    line.strip(),
                    width=width,
                    subsequent_indent="  ",
                    break_long_words=False,
                    break_on_hyphens=False,
                )
                for line in paragraph.splitlines() if line.strip()
            ))
        else:
            wrapped.append(textwrap.fill(
                " ".join(paragraph.split()),
                width=width,
                break_long_words=False,
                break_on_hyphens=False,
            ))
    return "\n\n".join(wrapped)


def header_prefix(commit_type: Optional[Union[CommitType, str]], scope: Optional[str]) -> str:
    """The 'type(scope): ' prefix of a conventional-commit header."""
    type_value = commit_type.value if isinstance(commit_type, CommitType) else (commit_type or "chore")
    return f"{type_value}({scope}): " if scope else f"{type_value}: "


def render_header(group: Group) -> str:
    """Render 'type(scope): summary'."""
    return header_prefix(group.type, group.scope) + (group.summary or "update files")


def render_message(group: Group, width: int = 72) -> str:
    """Render the full commit message for a group.

    Format:
        type(scope): summary

        Body paragraph wrapped at `width` columns.
    """
    header = render_header(group)
    if not group.body or not group.body.strip():
        return header
    return f"{header}\n\n{wrap_text(group.body, width)}"


def parse_message(text: str) -> tuple[Optional[CommitType], Optional[str], str, Optional[str]]:
    """Parse an edited message back into (type, scope, summary, body).

    Comment lines (starting with '#') are ignored.

    Raises:
        ValueError: If the header is empty or the type is unknown
    """
    lines = [line for line in text.splitlines() if not line.startswith("#")]
    while lines and not lines[0].strip():
        lines.pop(0)
    if not lines:
        raise ValueError("message is empty")

    header = lines[0].strip()
    body = "\n".join(lines[1:]).strip() or None

    match = _HEADER_RE.match(header)
    if not match:
        return None, None, header, body

    type_text = match.group("type")
    try:
        commit_type = CommitType(type_text)
    except ValueError:
        valid = ", ".join(t.value for t in CommitType)
        raise ValueError(f"unknown commit type {type_text!r} (expected one of: {valid})")

    summary = match.group("summary").strip()
    if not summary:
        raise ValueError("summary is empty")
    scope = (match.group("scope") or "").strip() or None
    return commit_type, scope, summary, body


def _files(group: Group, hunks_by_id: Mapping[str, Hunk]) -> list[str]:
    files = []
    for hid in group.hunk_ids:
        hunk = hunks_by_id[hid]
        label = f"{hunk.old_path} -> {hunk.file_path}" if hunk.old_path else hunk.file_path
        if label not in files:
            files.append(label)
    return files


def format_plan(
    plan: Union[Plan, ApprovedPlan],
    hunks_by_id: Mapping[str, Hunk],
    show_hunks: bool = False,
) -> str:
    """Format the plan for terminal display.

    Each group shows its index, header line, files, hunk count and the
    groups it depends on; plan warnings follow at the end.
    """
    lines = []
    depends_on: dict[str, list[str]] = {}
    for before, after in plan.dependencies:
        depends_on.setdefault(after, []).append(before)
    cycle_groups = set(getattr(plan, "cycle_groups", []) or [])

    total = len(plan.groups)
    for index, group in enumerate(plan.groups, 1):
        count = len(group.hunk_ids)
        marker = " [cycle]" if group.id in cycle_groups else ""
        lines.append(f"[{index}/{total}] {group.id}: {render_header(group)}{marker}")
        lines.append(f"    {count} hunk{'s' if count != 1 else ''}, source: {group.message_source}")
        for path in _files(group, hunks_by_id):
            lines.append(f"    - {path}")
        if group.id in depends_on:
            lines.append(f"    after: {', '.join(sorted(depends_on[group.id]))}")
        if show_hunks:
            for hid in group.hunk_ids:
                hunk = hunks_by_id[hid]
                where = hunk.header or hunk.kind.value
                lines.append(f"      {hid}  {hunk.file_path}  {where}")
        lines.append("")

    if plan.warnings:
        lines.append("Warnings:")
        for warning in plan.warnings:
            lines.append(f"  ! {warning}")

    return "\n".join(lines).rstrip() + "\n"


def format_plan_json(plan: Union[Plan, ApprovedPlan], hunks_by_id: Mapping[str, Hunk]) -> str:
    """Serialize the plan (with rendered messages and file lists) as JSON."""
    payload = {
        "groups": [
            {
                "id": group.id,
                "type": group.type.value if group.type else None,
                "scope": group.scope,
                "summary": group.summary,
                "body": group.body,
                "message": render_message(group),
                "message_source": group.message_source,
                "hunks": list(group.hunk_ids),
                "files": _files(group, hunks_by_id),
            }
            for group in plan.groups
        ],
        "dependencies": [list(dep) for dep in plan.dependencies],
        "cycle_groups": list(getattr(plan, "cycle_groups", []) or []),
        "warnings": list(plan.warnings),
    }
    return json.dumps(payload, indent=2)
