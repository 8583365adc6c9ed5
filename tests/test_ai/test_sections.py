"""Tests for plan section parsing."""

from bakery.ai.sections import normalize_heading, parse_plan_sections

PLAN = """Intro line

## Why
Because.

## What Changes
- Add a thing

### Details
Nested heading text

## Impact
Everything

## Tasks
1. Do it
"""


class TestNormalizeHeading:
    """Test heading normalisation."""

    def test_markup_and_case(self) -> None:
        assert normalize_heading("**What Changes:**") == "what changes"
        assert normalize_heading("## `Tasks`") == "tasks"


class TestParsePlanSections:
    """Test parse_plan_sections function."""

    def test_preamble_and_keys(self) -> None:
        sections = parse_plan_sections(PLAN)

        assert sections.preamble == "Intro line"
        assert sections.keys() == ["why", "what changes", "details", "impact", "tasks"]

    def test_block_ends_at_next_heading_of_any_level(self) -> None:
        sections = parse_plan_sections(PLAN)

        assert sections.what == "- Add a thing"
        assert sections.get("details") == "Nested heading text"

    def test_named_properties(self) -> None:
        sections = parse_plan_sections(PLAN)

        assert sections.why == "Because."
        assert sections.impact == "Everything"
        assert sections.tasks == "1. Do it"
        assert sections.has_proposal()

    def test_missing_section(self) -> None:
        sections = parse_plan_sections("just text")

        assert sections.sections == []
        assert sections.get("why") == ""
        assert not sections.has_proposal()

    def test_headings_in_code_fences_are_body(self) -> None:
        text = "## Tasks\n```bash\n# not a heading\n```\n"

        sections = parse_plan_sections(text)

        assert sections.keys() == ["tasks"]
        assert "# not a heading" in sections.tasks

    def test_markdown_fences_are_transparent(self) -> None:
        text = "Here you go:\n```markdown\n## Why\nReason\n## Tasks\n- one\n```\n"

        sections = parse_plan_sections(text)

        assert sections.why == "Reason"
        assert sections.tasks == "- one"
        assert "```" not in sections.tasks

    def test_render_proposal_skips_empty_sections(self) -> None:
        sections = parse_plan_sections("## Why\nReason\n")

        assert sections.render_proposal("Title") == (
            "# Change: Title\n\n## Why\n\nReason\n"
        )
