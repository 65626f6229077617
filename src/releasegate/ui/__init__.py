from releasegate.ui.summary import (
    build_summary,
    render_summary,
    step_summary_markdown,
    summary_dict,
    write_run_summary,
)

__all__ = [
    "build_summary",
    "render_summary",
    "step_summary_markdown",
    "summary_dict",
    "write_run_summary",
]
