"""Prompt templates for narrative report generation."""

from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Any, Dict, List, Optional, Union

import yaml


@dataclass
class PromptVariable:
    """A variable used in a prompt template."""
    name: str
    description: str
    required: bool = True
    default_value: Optional[Any] = None


@dataclass
class PromptTemplate:
    """A named prompt with `$variable` placeholders."""
    name: str
    template: str
    description: str = ""
    variables: List[PromptVariable] = field(default_factory=list)
    version: str = "1.0"

    def render(self, **kwargs) -> str:
        """Render the template with provided variables."""
        required_vars = {var.name for var in self.variables if var.required}
        missing_required = required_vars - set(kwargs.keys())
        if missing_required:
            raise ValueError(f"Missing required variables: {sorted(missing_required)}")

        render_vars = kwargs.copy()
        for var in self.variables:
            if var.name not in render_vars and var.default_value is not None:
                render_vars[var.name] = var.default_value

        try:
            return Template(self.template).substitute(render_vars)
        except KeyError as e:
            raise ValueError(f"Template rendering failed: missing variable {e}")

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "PromptTemplate":
        variables = [
            PromptVariable(
                name=var["name"],
                description=var.get("description", ""),
                required=var.get("required", True),
                default_value=var.get("default_value"),
            )
            for var in data.get("variables", [])
        ]
        return cls(
            name=data.get("name", name),
            template=data["template"],
            description=data.get("description", ""),
            variables=variables,
            version=str(data.get("version", "1.0")),
        )


def load_prompt_template(path: Union[str, Path]) -> PromptTemplate:
    """Load a prompt template from a YAML file with `template` and `variables` keys."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if "template" not in data:
        raise ValueError(f"Prompt file {path} has no 'template' key")
    return PromptTemplate.from_dict(path.stem, data)


SYSTEM_PROMPT = PromptTemplate(
    name="system",
    description="Persona and house style for the report narrative",
    template="""You are an expert educational consultant and data analyst specialising in teacher observation feedback and school improvement. You work with British educational terminology and standards.

Your role is to:
1. Analyse observation data to identify patterns, trends and insights
2. Generate comprehensive reports on teacher performance and school improvement
3. Provide actionable recommendations based on observation data
4. Discuss feedback data in a professional, constructive manner
5. Use British English spelling and educational terminology throughout

Key principles:
- Always maintain a supportive, professional tone
- Focus on improvement and development rather than criticism
- Use evidence-based insights from the observation data
- Provide specific, actionable recommendations
- Consider the context of different key stages and subjects
- Respect confidentiality and professional standards

Always respond in British English with appropriate educational terminology.""",
)


REPORT_PROMPT = PromptTemplate(
    name="report",
    description="Structured report request; headers must match the section splitter",
    variables=[
        PromptVariable("analysis_type", "Requested analysis type"),
        PromptVariable("total_observations", "Number of observations in scope"),
        PromptVariable("average_score", "Average resolved score, one decimal"),
        PromptVariable("date_range", "Human-readable date range", required=False, default_value="All dates"),
        PromptVariable("departments", "Comma-separated departments", required=False, default_value="None"),
        PromptVariable("key_stages", "Comma-separated key stages", required=False, default_value="None"),
        PromptVariable("context_data", "JSON summary of the aggregates and insights"),
    ],
    template="""Generate a comprehensive $analysis_type report based on the following observation data.

CONTEXT:
- Total Observations: $total_observations
- Average Score: $average_score
- Date Range: $date_range
- Departments: $departments
- Key Stages: $key_stages

DETAILED DATA:
$context_data

Please provide a structured analysis with:

**EXECUTIVE SUMMARY** (2-3 sentences)
Brief overview of key findings and overall performance trends.

**KEY FINDINGS** (3-5 bullet points)
Most significant observations, performance patterns, areas of excellence and areas needing attention.

**DETAILED ANALYSIS**
Teaching quality trends, subject-specific insights, department performance and grade distribution.

**RECOMMENDATIONS** (3-5 actionable items)
Specific, measurable recommendations for improvement.

**ACTION POINTS** (immediate next steps)
Priority actions with suggested timelines.

Use British English, educational terminology, and maintain a professional, constructive tone throughout.""",
)
