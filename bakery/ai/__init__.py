"""OpenSpec plan generation: prompt building, external generator, parsing."""

from .generator import ExternalGenerator, GeneratorError, ensure_openspec_initialized
from .prompts import PlanData, build_plan_data, generate_prompt, plan_filename
from .sections import PlanSections, parse_plan_sections

__all__ = [
    "ExternalGenerator",
    "GeneratorError",
    "ensure_openspec_initialized",
    "PlanData",
    "build_plan_data",
    "generate_prompt",
    "plan_filename",
    "PlanSections",
    "parse_plan_sections",
]
