"""Split generated plan text into markdown sections."""

import re
from dataclasses import dataclass, field

HEADING_LINE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)\s*#*\s*$")
FENCE_LINE = re.compile(r"^\s{0,3}(```|~~~)\s*([\w-]*)")
MARKDOWN_FENCES = frozenset({"markdown", "md"})


def normalize_heading(heading: str) -> str:
    """Lowercase heading text with markup and surrounding punctuation removed."""
    text = heading.strip().lstrip("#").strip()
    text = text.replace("*", "").replace("_", " ").replace("`", "")
    return " ".join(text.lower().rstrip(":").split())


@dataclass
class Section:
    """One headed block of a markdown document."""

    heading: str
    level: int
    lines: list[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return normalize_heading(self.heading)

    @property
    def body(self) -> str:
        return "\n".join(self.lines).strip()


@dataclass
class PlanSections:
    """Headed blocks of a plan, looked up by normalised heading text.

    A block runs from its heading line to the next heading line of any level
    outside fenced code. Text before the first heading is the preamble.
    """

    preamble: str = ""
    sections: list[Section] = field(default_factory=list)

    def keys(self) -> list[str]:
        return [section.key for section in self.sections]

    def find(self, name: str) -> Section | None:
        """First section whose key equals ``name`` or starts with it."""
        wanted = normalize_heading(name)
        for section in self.sections:
            if section.key == wanted:
                return section
        for section in self.sections:
            if section.key.startswith(wanted):
                return section
        return None

    def get(self, name: str) -> str:
        section = self.find(name)
        return section.body if section else ""

    @property
    def why(self) -> str:
        return self.get("why")

    @property
    def what(self) -> str:
        return self.get("what")

    @property
    def impact(self) -> str:
        return self.get("impact")

    @property
    def tasks(self) -> str:
        return self.get("tasks")

    def has_proposal(self) -> bool:
        return bool(self.why or self.what)

    def render_proposal(self, title: str) -> str:
        parts = [f"# Change: {title}"]
        for heading, body in (
            ("Why", self.why),
            ("What Changes", self.what),
            ("Impact", self.impact),
        ):
            if body:
                parts.append(f"## {heading}\n\n{body}")
        return "\n\n".join(parts) + "\n"


def parse_plan_sections(text: str) -> PlanSections:
    """Parse markdown text into headed blocks.

    Headings inside fenced code blocks are treated as body text, except in
    ``markdown`` fences, which generators commonly wrap proposals in.
    """
    result = PlanSections()
    preamble: list[str] = []
    current: Section | None = None
    fence: str | None = None

    for line in text.splitlines():
        fence_match = FENCE_LINE.match(line)
        if fence_match:
            if fence is None:
                fence = fence_match.group(2).lower() or "text"
                if fence in MARKDOWN_FENCES:
                    continue
            elif not fence_match.group(2):
                closed, fence = fence, None
                if closed in MARKDOWN_FENCES:
                    continue
        elif fence is None or fence in MARKDOWN_FENCES:
            match = HEADING_LINE.match(line)
            if match:
                current = Section(heading=match.group(2), level=len(match.group(1)))
                result.sections.append(current)
                continue

        if current is None:
            preamble.append(line)
        else:
            current.lines.append(line)

    result.preamble = "\n".join(preamble).strip()
    return result
