"""Console breadcrumbs and the batch-level failed/succeeded status."""
from __future__ import annotations

import os
from typing import List, Optional


def debug(msg: str) -> None:
    print(msg, flush=True)


class BatchReport:
    """Accumulates every reported error; the batch fails if any was reported."""

    def __init__(self) -> None:
        self.errors: List[str] = []
        self.published: List[str] = []
        self.skipped: List[str] = []

    def fail(self, message: str) -> None:
        # Workflow command: annotates the step and marks it failed in the UI.
        print(f"::error::{_escape_command(message)}", flush=True)
        self.errors.append(message)

    def record_published(self, name: str) -> None:
        self.published.append(name)

    def record_skipped(self, name: str) -> None:
        self.skipped.append(name)

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def write_step_summary(self, path: Optional[str] = None) -> None:
        """Append a compact relay summary to the GitHub job summary when available."""

        summary_path = path or os.environ.get("GITHUB_STEP_SUMMARY")
        if not summary_path:
            return

        lines: List[str] = ["\n### Package relay summary\n"]
        lines.append(f"* Status: `{'failed' if self.failed else 'succeeded'}`\n")
        lines.append(f"* Published: {len(self.published)}\n")
        lines.append(f"* Already present: {len(self.skipped)}\n")
        lines.append(f"* Errors: {len(self.errors)}\n")
        for name in self.published:
            lines.append(f"  * published `{name}`\n")
        if self.errors:
            lines.append("\n<details>\n<summary>Errors</summary>\n\n")
            lines.extend(f"- {error}\n" for error in self.errors)
            lines.append("</details>\n")

        try:
            with open(summary_path, "a", encoding="utf-8") as handle:
                handle.writelines(lines)
        except OSError as exc:
            debug(f"summary_write_error={exc}")

    def write_outputs(self, path: Optional[str] = None) -> None:
        outputs_path = path or os.environ.get("GITHUB_OUTPUT")
        if not outputs_path:
            return
        with open(outputs_path, "a", encoding="utf-8") as fh:
            fh.write(f"published={len(self.published)}\n")
            fh.write(f"skipped={len(self.skipped)}\n")
            fh.write(f"failed={str(self.failed).lower()}\n")


def _escape_command(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
