"""
Prompt template and plan data for OpenSpec plan generation.
Edit OPENSPEC_PLAN_PROMPT below to change what the AI command is asked for.
"""

# ruff: noqa: E501

import logging
import re

from pydantic import BaseModel, Field

from ..devops_client.models import WorkItem
from ..utils.content import clean_html, clean_html_list

logger = logging.getLogger(__name__)

NO_CRITERIA_TEXT = "No explicit acceptance criteria specified"
WORK_ITEM_REFERENCE = re.compile(r"#(\d+)")

OPENSPEC_PLAN_PROMPT = """You are creating a comprehensive OpenSpec implementation plan for the following Azure DevOps work item.
Follow the complete OpenSpec methodology with proper three-stage workflow, directory structures, and spec formatting.

**Ticket #{ticket_number}: {ticket_title}**

**Description:**
{ticket_description}

**Acceptance Criteria:**
{acceptance_criteria}

**Context:** priority {priority}, estimated complexity {complexity}, {attachments_count} attachment(s), {comments_count} comment(s){dependencies_line}

## OpenSpec Implementation Plan Requirements

Create a complete OpenSpec change proposal with these components:

### 1. Change Analysis and Setup
- **Change ID**: Propose a unique kebab-case, verb-led identifier (e.g., "add-", "update-", "remove-", "refactor-")
- **Scope Decision**: Is this a new capability or modifying existing capability?
- **Directory Structure**: Plan the openspec/changes/[change-id]/ layout

### 2. Proposal Structure (proposal.md)
Create a comprehensive proposal with:
```markdown
# Change: [Brief description]

## Why
[1-2 sentences on problem/opportunity]

## What Changes
- [Bullet list of changes]
- [Mark breaking changes with **BREAKING**]

## Impact
- Affected specs: [list capabilities]
- Affected code: [key files/systems]
```

### 3. Delta Specifications (specs/[capability]/spec.md)
Create proper delta changes using OpenSpec format:

## ADDED Requirements
### Requirement: [New Feature Name]
The system SHALL provide [detailed requirement description]

#### Scenario: [Success Case Name]
- **WHEN** [user performs action]
- **THEN** [expected result]

## MODIFIED Requirements
### Requirement: [Existing Feature Name]
[Complete modified requirement with full scenarios]

## REMOVED Requirements (if applicable)
### Requirement: [Old Feature Name]
**Reason**: [Why removing]
**Migration**: [How to handle]

### 4. Implementation Tasks (tasks.md)
Create a detailed implementation checklist under a `## Tasks` heading:
```markdown
## Tasks
- [ ] 1.1 Review existing specs in specs/[capability]/spec.md
- [ ] 2.1 [Specific implementation task]
- [ ] 2.2 Write tests for new functionality
- [ ] 3.1 Run openspec validate [change-id] --strict
```

### 5. Design Documentation (design.md) - ONLY if needed
Include design.md only if ANY of these apply:
- Cross-cutting change (multiple services/modules)
- New external dependency or significant data model changes
- Security, performance, or migration complexity

## Critical Formatting Requirements

**Scenario Format (MUST use #### headers):**
```markdown
#### Scenario: User login success
- **WHEN** valid credentials provided
- **THEN** return JWT token
```

**Requirement Wording:**
- Use SHALL/MUST for normative requirements
- Every requirement MUST have at least one scenario
- Use proper delta operation headers: ## ADDED|MODIFIED|REMOVED|RENAMED Requirements

Generate a complete, practical OpenSpec plan following this methodology. Focus on what needs to be built, how it will be tested, and how the change will be managed through the full OpenSpec workflow."""


class PlanData(BaseModel):
    """Work item facts handed to the plan prompt."""

    ticket_number: int
    ticket_title: str
    ticket_description: str = Field("", description="Cleaned description text")
    acceptance_criteria: list[str] = Field(default_factory=list)
    priority: str = "Medium"
    complexity: str = "Low"
    dependencies: list[str] = Field(default_factory=list)
    estimated_effort: str | None = None
    attachments_count: int = 0
    comments_count: int = 0
    has_images: bool = False


def extract_priority(area_path: str) -> str:
    """Guess a priority from keywords in the area path."""
    lowered = area_path.lower()
    if "critical" in lowered or "urgent" in lowered:
        return "High"
    if "normal" in lowered:
        return "Medium"
    if "low" in lowered:
        return "Low"
    return "Medium"


def estimate_complexity(work_item: WorkItem) -> str:
    """Heuristic complexity bucket from description size and activity."""
    score = (
        len(work_item.description) // 100
        + len(work_item.acceptance_criteria) * 2
        + len(work_item.attachments)
        + len(work_item.comments)
    )
    if score <= 10:
        return "Low"
    if score <= 50:
        return "Medium"
    if score <= 100:
        return "High"
    return "Very High"


def extract_dependencies(description: str) -> list[str]:
    """Collect ``#123`` work item references from a description."""
    return [
        f"Work Item #{number}" for number in WORK_ITEM_REFERENCE.findall(description)
    ]


def build_plan_data(work_item: WorkItem) -> PlanData:
    cleaned_description = clean_html(work_item.description)
    logger.debug(
        "Cleaned description from %d to %d chars",
        len(work_item.description),
        len(cleaned_description),
    )

    return PlanData(
        ticket_number=work_item.id,
        ticket_title=work_item.title,
        ticket_description=cleaned_description,
        acceptance_criteria=list(work_item.acceptance_criteria),
        priority=extract_priority(work_item.area_path),
        complexity=estimate_complexity(work_item),
        dependencies=extract_dependencies(work_item.description),
        attachments_count=len(work_item.attachments),
        comments_count=len(work_item.comments),
        has_images=bool(work_item.images),
    )


def generate_prompt(plan_data: PlanData) -> str:
    """Render the OpenSpec plan prompt for a work item."""
    criteria = clean_html_list(plan_data.acceptance_criteria)
    if criteria:
        criteria_text = "\n".join(
            f"{index}. {criterion}" for index, criterion in enumerate(criteria, 1)
        )
    else:
        criteria_text = NO_CRITERIA_TEXT

    dependencies_line = ""
    if plan_data.dependencies:
        dependencies_line = f", related: {', '.join(plan_data.dependencies)}"

    return OPENSPEC_PLAN_PROMPT.format(
        ticket_number=plan_data.ticket_number,
        ticket_title=plan_data.ticket_title,
        ticket_description=plan_data.ticket_description or "(no description)",
        acceptance_criteria=criteria_text,
        priority=plan_data.priority,
        complexity=plan_data.complexity,
        attachments_count=plan_data.attachments_count,
        comments_count=plan_data.comments_count,
        dependencies_line=dependencies_line,
    )


def plan_slug(ticket_number: int, title: str) -> str:
    """``<id>-<first eight title words>`` in lowercase kebab case."""
    kept = "".join(c for c in title if c.isalnum() or c.isspace() or c == "-")
    words = [word.lower() for word in kept.split()[:8]]
    return "-".join([str(ticket_number), *words])


def plan_filename(ticket_number: int, title: str) -> str:
    return f"{plan_slug(ticket_number, title)}.md"
