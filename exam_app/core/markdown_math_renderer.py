"""Markdown + LaTeX rendering of question text for the student page.

Stimulus and prompt text are authored as markdown with inline ``$...$``
math. The server renders them to HTML fragments here and MathJax typesets
the math in the browser.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from exam_app.core.models import WorkingQuestion


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str | None) -> str:
        """Render a markdown string into an HTML fragment."""
        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return ""
        return self._markdown.render(sanitized)

    def render_question(self, question: WorkingQuestion) -> dict[str, str]:
        """Render the stimulus and prompt of a question."""
        prompt_html = self.render_fragment(question.question.prompt)
        return {
            "stimulus_html": self.render_fragment(question.question.stimulus),
            "prompt_html": prompt_html or "<p><em>No content provided.</em></p>",
        }


renderer = MarkdownMathRenderer()
# Shared instance; MarkdownIt is safe for concurrent read-only renders.
