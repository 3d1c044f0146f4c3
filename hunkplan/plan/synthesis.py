"""Message Synthesizer: conventional-commit type, scope and summary per group.

Contains:
- infer_commit_type / infer_commit_scope: deterministic heuristics
- template_summary: the deterministic fallback summary
- TextGenerator / LLMTextGenerator: the injected text-generation strategy
- synthesize_messages: annotate every group of a plan, calling the
  generator concurrently with a per-call timeout

Generation failures never fail the run: the group keeps its template
summary and a SynthesisDegraded warning is logged and added to the plan.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from pathlib import PurePosixPath
from typing import Optional, Union

from hunkplan.llm.base import BaseLLMProvider
from hunkplan.plan.exceptions import SynthesisDegraded
from hunkplan.plan.models import ChangeKind, CommitType, Hunk, ParsedDiff, Plan
from hunkplan.plan.prompt import (
    SYSTEM_PROMPT,
    MessageRequest,
    MessageResponse,
    PathHistory,
    build_message_request,
    build_user_prompt,
    parse_message_response,
    truncate_summary,
)
from hunkplan.plan.render import header_prefix
from hunkplan.plan.settings import PlannerConfig
from hunkplan.scope import (
    infer_group_scope,
    is_build_file,
    is_chore_file,
    is_docs_file,
    is_test_file,
)

logger = logging.getLogger(__name__)

# Tokens typical of error-path, condition and off-by-one corrections
_FIX_RE = re.compile(
    r"\b(?:fix|fixes|bug|error|err|exception|except|catch|raise|throw|fail|"
    r"failed|invalid|null|None|nil|guard|assert|if|elif|else|retry|timeout)\b"
    r"|[<>]=?|[!=]==?|[+-]\s*1\b"
)
_PERF_RE = re.compile(
    r"\b(?:cache|cached|lru_cache|memoi[sz]e|optimi[sz]e|faster|performance|"
    r"prealloc\w*|lazy|batch(?:ed)?)\b",
    re.IGNORECASE,
)

_POLL_INTERVAL = 0.05


# ============================================================
# Heuristics
# ============================================================

def _squash(lines) -> str:
    return "".join("".join(line.split()) for line in lines)


def infer_commit_type(hunks: list[Hunk]) -> CommitType:
    """Infer the conventional-commit type of a group from its hunks.

    Path rules come first (docs, test, build/chore); then content rules:
    renames without content delta -> refactor, whitespace-only -> style,
    performance wording -> perf, condition/error-path edits -> fix, new
    files or definitions -> feat, anything else -> refactor.
    """
    if not hunks:
        return CommitType.CHORE

    paths = [p for h in hunks for p in h.paths]
    if all(is_docs_file(p) for p in paths):
        return CommitType.DOCS
    if all(is_test_file(p) for p in paths):
        return CommitType.TEST
    if all(is_build_file(p) or is_chore_file(p) for p in paths):
        if any(is_chore_file(p) for p in paths):
            return CommitType.CHORE
        return CommitType.BUILD

    added = [line for h in hunks for line in h.added]
    removed = [line for h in hunks for line in h.removed]

    if all(h.kind in (ChangeKind.RENAME, ChangeKind.COPY) for h in hunks):
        if sorted(added) == sorted(removed):
            return CommitType.REFACTOR

    if added and removed and _squash(added) == _squash(removed):
        return CommitType.STYLE

    new_definitions = any(h.defined - h.mentioned for h in hunks)
    new_files = any(h.kind == ChangeKind.ADD for h in hunks)

    added_text = "\n".join(added)
    removed_text = "\n".join(removed)

    if _PERF_RE.search(added_text) and not _PERF_RE.search(removed_text) and not new_files:
        return CommitType.PERF
    if removed and not new_definitions and _FIX_RE.search(added_text + "\n" + removed_text):
        return CommitType.FIX
    if new_files or new_definitions or (added and not removed):
        return CommitType.FEAT
    return CommitType.REFACTOR


def infer_commit_scope(hunks: list[Hunk]) -> Optional[str]:
    """Scope from the deepest meaningful directory shared by the group's files."""
    return infer_group_scope(p for h in hunks for p in h.paths)


def _common_directory(paths: list[str]) -> Optional[str]:
    parts = [p.split("/")[:-1] for p in paths]
    common = []
    for segments in zip(*parts):
        if len(set(segments)) != 1:
            break
        common.append(segments[0])
    return "/".join(common) or None


def template_summary(
    commit_type: CommitType,
    scope: Optional[str],
    hunks: list[Hunk],
    max_length: int = 72,
) -> str:
    """Deterministic summary, e.g. 'update 3 files in src/api'.

    Always non-empty; sized so that 'type(scope): summary' fits max_length.
    """
    paths = list(dict.fromkeys(h.file_path for h in hunks))
    kinds = {h.kind for h in hunks}

    if kinds == {ChangeKind.ADD}:
        verb = "add"
    elif kinds == {ChangeKind.DELETE}:
        verb = "remove"
    elif kinds == {ChangeKind.RENAME}:
        verb = "rename"
    elif kinds == {ChangeKind.COPY}:
        verb = "copy"
    else:
        verb = "update"

    if not paths:
        text = "update files"
    elif len(paths) == 1:
        name = PurePosixPath(paths[0]).name
        old_path = hunks[0].old_path
        if verb in ("rename", "copy") and old_path:
            text = f"{verb} {PurePosixPath(old_path).name} to {name}"
        else:
            text = f"{verb} {name}"
    else:
        directory = _common_directory(paths)
        if directory:
            text = f"{verb} {len(paths)} files in {directory}"
        else:
            tops = sorted({p.split("/")[0] if "/" in p else "root" for p in paths})
            where = ", ".join(tops[:3]) + (" and more" if len(tops) > 3 else "")
            text = f"{verb} {len(paths)} files across {where}"

    room = max(max_length - len(header_prefix(commit_type, scope)), 10)
    return truncate_summary(text, room) or "update files"


# ============================================================
# Text generation strategy
# ============================================================

class TextGenerator(ABC):
    """Strategy producing a summary/body for a MessageRequest."""

    @abstractmethod
    def generate(self, request: MessageRequest) -> MessageResponse:
        """Produce a message or raise any exception on failure."""
        pass


class LLMTextGenerator(TextGenerator):
    """TextGenerator backed by an LLM provider."""

    def __init__(self, provider: BaseLLMProvider, max_summary_length: int = 72):
        self.provider = provider
        self.max_summary_length = max_summary_length

    def generate(self, request: MessageRequest) -> MessageResponse:
        room = self.max_summary_length - len(header_prefix(request.type, request.scope))
        user_prompt = build_user_prompt(request, self.max_summary_length)
        result = self.provider.generate_raw(SYSTEM_PROMPT, user_prompt)
        logger.debug(
            "Generated message for %s with %s (%d in / %d out tokens)",
            request.group_id, result.model, result.input_tokens, result.output_tokens,
        )
        return parse_message_response(result.raw_response, max(room, 10))


def _reason(exc: BaseException) -> str:
    text = str(exc).strip().splitlines()
    return f"{type(exc).__name__}: {text[0]}" if text else type(exc).__name__


def _generate_all(
    generator: TextGenerator,
    requests: dict[str, MessageRequest],
    workers: int,
    timeout: float,
) -> dict[str, Union[MessageResponse, str]]:
    """Run the generator for every request on a bounded pool.

    Returns:
        Mapping of group id to a MessageResponse or a failure reason
    """
    outcomes: dict[str, Union[MessageResponse, str]] = {}
    start_times: dict[str, float] = {}
    future_map = {}

    pool_size = max(1, min(workers, len(requests)))
    rounds = -(-len(requests) // pool_size)
    # Queued calls cannot start while hung calls hold every worker
    deadline = time.monotonic() + timeout * (rounds + 1)
    executor = ThreadPoolExecutor(max_workers=pool_size)

    def submit(group_id: str, request: MessageRequest):
        def task():
            start_times[group_id] = time.monotonic()
            return generator.generate(request)
        future_map[executor.submit(task)] = group_id

    try:
        for group_id, request in requests.items():
            submit(group_id, request)

        remaining = set(future_map)
        while remaining:
            done, _ = wait(remaining, timeout=min(_POLL_INTERVAL, timeout), return_when=FIRST_COMPLETED)
            for future in done:
                remaining.discard(future)
                group_id = future_map[future]
                try:
                    outcomes[group_id] = future.result()
                except Exception as e:
                    outcomes[group_id] = _reason(e)

            now = time.monotonic()
            for future in list(remaining):
                group_id = future_map[future]
                started = start_times.get(group_id)
                if (started is not None and now - started > timeout) or now > deadline:
                    future.cancel()
                    remaining.discard(future)
                    outcomes[group_id] = f"timed out after {timeout:g}s"
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return outcomes


# ============================================================
# Public API
# ============================================================

def synthesize_messages(
    plan: Plan,
    parsed: ParsedDiff,
    generator: Optional[TextGenerator] = None,
    config: Optional[PlannerConfig] = None,
    branch: Optional[str] = None,
    recent_commits: Optional[list[str]] = None,
    path_history: Optional[PathHistory] = None,
) -> Plan:
    """Annotate every group with type, scope, summary and body.

    Args:
        plan: Sequenced plan (left untouched; a copy is returned)
        parsed: Parsed diff owning the hunks
        generator: Optional text-generation strategy
        config: Planner configuration (workers, timeout, lengths)
        branch: Current branch name, passed to the generator as context
        recent_commits: Recent commit subjects, passed to the generator
        path_history: Commit-subject lookup for the old path of renamed files

    Returns:
        A new Plan with messages filled in
    """
    config = config or PlannerConfig()
    hunks = parsed.by_id()
    plan = plan.model_copy(deep=True)
    requests: dict[str, MessageRequest] = {}

    for group in plan.groups:
        group_hunks = [hunks[hid] for hid in group.hunk_ids]
        group.type = infer_commit_type(group_hunks)
        group.scope = infer_commit_scope(group_hunks)
        group.summary = template_summary(
            group.type, group.scope, group_hunks, config.max_summary_length
        )
        group.body = None
        group.message_source = "template"
        if generator is not None:
            requests[group.id] = build_message_request(
                group, parsed, group.type, group.scope, config, branch,
                recent_commits=recent_commits, path_history=path_history,
            )

    if not requests:
        return plan

    outcomes = _generate_all(
        generator, requests, config.synthesis_workers, config.synthesis_timeout
    )

    for group in plan.groups:
        outcome = outcomes.get(group.id, "no result")
        if isinstance(outcome, MessageResponse):
            room = config.max_summary_length - len(header_prefix(group.type, group.scope))
            summary = truncate_summary(outcome.summary, max(room, 10))
            if summary:
                group.summary = summary
                group.body = outcome.body
                group.message_source = "generated"
                continue
            outcome = "empty summary"

        degraded = SynthesisDegraded(group.id, outcome)
        logger.warning("%s", degraded)
        plan.warnings.append(str(degraded))

    return plan
