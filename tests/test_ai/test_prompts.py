"""Tests for plan data and prompt rendering."""

import pytest

from bakery.ai.prompts import (
    NO_CRITERIA_TEXT,
    PlanData,
    build_plan_data,
    estimate_complexity,
    extract_dependencies,
    extract_priority,
    generate_prompt,
    plan_filename,
    plan_slug,
)
from bakery.devops_client.models import Comment, User, WorkItem


class TestHeuristics:
    """Test priority, complexity and dependency heuristics."""

    @pytest.mark.parametrize(
        "area_path,expected",
        [
            ("Project\\Critical", "High"),
            ("Project\\Urgent Fixes", "High"),
            ("Project\\Normal", "Medium"),
            ("Project\\Low Priority", "Low"),
            ("Project\\Backend", "Medium"),
        ],
    )
    def test_extract_priority(self, area_path: str, expected: str) -> None:
        assert extract_priority(area_path) == expected

    def test_complexity_low(self) -> None:
        assert estimate_complexity(WorkItem(id=1, description="short")) == "Low"

    def test_complexity_grows_with_activity(self) -> None:
        comment = Comment(
            id=1, author=User.unknown(), created_date="2024-01-01T00:00:00Z"
        )
        work_item = WorkItem(
            id=1,
            description="x" * 2000,
            acceptance_criteria=["a"] * 10,
            comments=[comment] * 5,
        )
        # 20 + 20 + 5
        assert estimate_complexity(work_item) == "Medium"

    def test_complexity_very_high(self) -> None:
        assert estimate_complexity(WorkItem(id=1, description="x" * 20000)) == (
            "Very High"
        )

    def test_extract_dependencies(self) -> None:
        assert extract_dependencies("Blocked by #12 and #345") == [
            "Work Item #12",
            "Work Item #345",
        ]
        assert extract_dependencies("nothing here") == []


class TestPrompt:
    """Test prompt building."""

    def test_build_plan_data(self, sample_work_item: WorkItem) -> None:
        plan_data = build_plan_data(sample_work_item)

        assert plan_data.ticket_number == 42
        assert plan_data.ticket_description == (
            "Do X\nAcceptance Criteria:\nmust do X\nmust log Y"
        )
        assert plan_data.acceptance_criteria == ["must do X", "must log Y"]
        assert plan_data.priority == "High"
        assert plan_data.comments_count == 1
        assert plan_data.has_images is False

    def test_generate_prompt(self, sample_work_item: WorkItem) -> None:
        prompt = generate_prompt(build_plan_data(sample_work_item))

        assert "**Ticket #42: Add login audit trail for admin users**" in prompt
        assert "1. must do X\n2. must log Y" in prompt
        assert "priority High" in prompt
        assert "proposal.md" in prompt
        assert "{" not in prompt.split("## OpenSpec")[0]

    def test_generate_prompt_without_criteria(self) -> None:
        prompt = generate_prompt(PlanData(ticket_number=1, ticket_title="T"))

        assert NO_CRITERIA_TEXT in prompt
        assert "(no description)" in prompt

    def test_generate_prompt_dependencies(self) -> None:
        prompt = generate_prompt(
            PlanData(ticket_number=1, ticket_title="T", dependencies=["Work Item #9"])
        )
        assert "related: Work Item #9" in prompt


class TestPlanFilename:
    """Test plan naming."""

    def test_first_eight_words(self) -> None:
        title = "One two three four five six seven eight nine ten"
        assert plan_filename(7, title) == (
            "7-one-two-three-four-five-six-seven-eight.md"
        )

    def test_punctuation_removed(self) -> None:
        assert plan_slug(3, "Fix: crash (on login)!") == "3-fix-crash-on-login"

    def test_empty_title(self) -> None:
        assert plan_filename(3, "") == "3.md"
