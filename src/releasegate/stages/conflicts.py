"""
conflicts.py

Merge-conflict pre-check between the checked-out HEAD and the target branch.

Uses `git merge-tree` so nothing in the working tree is touched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping, Optional

from releasegate.logger import get_logger
from releasegate.pipeline.model import (
    PipelineParameters,
    StageName,
    StageOutcome,
)
from releasegate.stages.tooling import ToolResult, run_tool

log = get_logger(__name__)

CONFLICT_MARKER = "<<<<<"
CONTEXT_LINES = 10


def conflict_excerpt(merge_output: str, *, context: int = CONTEXT_LINES) -> Optional[str]:
    """
    Lines around every conflict marker in `merge_output`, or None when the
    merge is clean. Marker matching is case-insensitive.
    """
    lines = merge_output.splitlines()
    hits = [i for i, line in enumerate(lines) if CONFLICT_MARKER in line.lower()]
    if not hits:
        return None

    blocks: list[str] = []
    for i in hits:
        lo = max(0, i - context)
        hi = min(len(lines), i + context + 1)
        blocks.append("\n".join(lines[lo:hi]))
    return "\n--\n".join(blocks)


class ConflictChecker:
    stage = StageName.CHECK_CONFLICTS

    def __init__(
        self,
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        git_bin: str = "git",
        runner: Callable[..., ToolResult] = run_tool,
    ) -> None:
        self.cwd = cwd
        self.timeout = timeout or None
        self.git_bin = git_bin
        self._run = runner

    def _git(self, *args: str) -> ToolResult:
        return self._run(
            [self.git_bin, *args], cwd=self.cwd, timeout=self.timeout, echo=False
        )

    def execute(
        self,
        params: PipelineParameters,
        prior: Mapping[StageName, StageOutcome],
    ) -> StageOutcome:
        target = params.target_branch
        remote_ref = f"origin/{target}"

        log.info(f"Checking {params.source_branch or 'HEAD'} against {remote_ref}")

        self._git("fetch", "origin", target).require_ok(f"git fetch origin {target} failed")

        base = self._git("merge-base", "HEAD", remote_ref).require_ok(
            f"no merge base between HEAD and {remote_ref}"
        )
        merge_base = base.stdout.strip().splitlines()[0] if base.stdout.strip() else ""
        if not merge_base:
            return StageOutcome.failure(
                self.stage, f"no merge base between HEAD and {remote_ref}"
            )

        merged = self._git("merge-tree", merge_base, remote_ref, "HEAD").require_ok(
            "git merge-tree failed"
        )

        excerpt = conflict_excerpt(merged.stdout)
        if excerpt is not None:
            log.error(f"Merge conflicts detected against {remote_ref}")
            return StageOutcome.failure(
                self.stage, "merge conflicts detected", detail=excerpt
            )

        log.info(f"No merge conflicts with {remote_ref}")
        return StageOutcome.success(self.stage, merge_base=merge_base)
