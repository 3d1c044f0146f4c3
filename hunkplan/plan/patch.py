"""Patch builder for hunkplan.

Contains:
- build_group_patch: Build the patch for a single group from the parsed diff
"""

from typing import Iterable

from hunkplan.plan.models import ParsedDiff


def build_group_patch(hunk_ids: Iterable[str], parsed: ParsedDiff) -> str:
    """Build a patch file for a single group.

    File headers of every touched block are kept; hunks of other groups are
    left out. Segments are emitted in their original diff order.

    Args:
        hunk_ids: Hunks of the group
        parsed: Parsed diff owning the hunks

    Returns:
        Patch content as string ('' for an empty group)
    """
    wanted = set(hunk_ids)
    touched = {
        block.index for block in parsed.blocks
        if block.owner in wanted or wanted.intersection(block.hunk_ids)
    }

    patch_parts: list[str] = []
    for segment in parsed.segments:
        if segment.hunk_id is not None:
            if segment.hunk_id in wanted:
                patch_parts.append(segment.text)
        elif segment.is_header and segment.block in touched:
            patch_parts.append(segment.text)

    patch = "".join(patch_parts)
    # git apply requires the patch to end with a newline
    if patch and not patch.endswith("\n"):
        patch += "\n"
    return patch
