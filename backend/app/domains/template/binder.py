"""
Context/template binder.

Turns a template skeleton, the applicant's data, the referee's free-text
context and the letter preferences into the prompt sent to the provider.

Placeholders are ``{identifier}``; any other brace is literal text. Only the
names in KNOWN_PLACEHOLDERS can be resolved. Every placeholder the skeleton
uses must resolve to a value, otherwise all unresolved names are reported at
once in a single BindingError. Binding is a pure function of its inputs.
"""

import json
import re
from typing import Any, Mapping, Optional, Protocol

from backend.app.domains.letter.schemas import RefereeProfile, ReviewerContext
from backend.app.infrastructure.errors import BindingError

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

KNOWN_PLACEHOLDERS = frozenset(
    {
        "applicantName",
        "position",
        "goal",
        "achievements",
        "relationship",
        "duration",
        "strengths",
        "examples",
        "additionalContext",
        "tone",
        "length",
        "detailLevel",
        "refereeName",
        "refereeTitle",
        "refereeInstitution",
        "refereeDepartment",
        "refereeEmail",
    }
)

# May legitimately bind to an empty string
OPTIONAL_PLACEHOLDERS = frozenset({"examples", "additionalContext"})


class BindableTemplate(Protocol):
    category: Any
    prompt_template: str
    default_parameters: dict[str, Any]


def extract_placeholders(skeleton: str) -> list[str]:
    """Placeholder names in order of first appearance, without duplicates."""
    seen: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(skeleton):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return seen


def validate_template_placeholders(skeleton: str) -> list[str]:
    placeholders = extract_placeholders(skeleton)
    unknown = [name for name in placeholders if name not in KNOWN_PLACEHOLDERS]
    if unknown:
        raise BindingError(unknown, reason="unknown placeholders")
    return placeholders


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _applicant_name(applicant_data: Mapping[str, Any]) -> Optional[str]:
    if _text(applicant_data.get("name")):
        return _text(applicant_data.get("name"))
    parts = [_text(applicant_data.get("first_name")), _text(applicant_data.get("last_name"))]
    return _text(" ".join(p for p in parts if p))


def _achievements(applicant_data: Mapping[str, Any]) -> Optional[str]:
    items = applicant_data.get("achievements") or []
    if isinstance(items, str):
        return _text(items)
    return _text(", ".join(str(item).strip() for item in items if str(item).strip()))


def _parameter(
    key: str, preferences: Mapping[str, Any], defaults: Mapping[str, Any]
) -> Optional[str]:
    return _text(preferences.get(key)) or _text(defaults.get(key))


def resolve_values(
    template: BindableTemplate,
    applicant_data: Mapping[str, Any],
    context: ReviewerContext,
    preferences: Mapping[str, Any],
    referee: Optional[RefereeProfile] = None,
) -> dict[str, Optional[str]]:
    """Value for every known placeholder; None means unresolved."""
    defaults = template.default_parameters or {}
    achievements = _achievements(applicant_data)
    referee = referee or RefereeProfile()

    return {
        "applicantName": _applicant_name(applicant_data),
        "position": _text(applicant_data.get("program")) or _text(applicant_data.get("position")),
        "goal": _text(applicant_data.get("goal")),
        "achievements": achievements,
        "relationship": _text(context.relationship),
        "duration": _text(context.duration),
        "strengths": _text(context.strengths) or achievements,
        "examples": context.specific_examples.strip(),
        "additionalContext": context.additional_context.strip(),
        "tone": _parameter("tone", preferences, defaults),
        "length": _parameter("length", preferences, defaults),
        "detailLevel": _parameter("detail_level", preferences, defaults),
        "refereeName": _text(referee.name),
        "refereeTitle": _text(referee.title),
        "refereeInstitution": _text(referee.institution),
        "refereeDepartment": _text(referee.department),
        "refereeEmail": _text(referee.email),
    }


def fill_skeleton(skeleton: str, values: Mapping[str, Optional[str]]) -> str:
    missing = [
        name
        for name in extract_placeholders(skeleton)
        if values.get(name) is None and name not in OPTIONAL_PLACEHOLDERS
    ]
    if missing:
        raise BindingError(missing)
    return PLACEHOLDER_PATTERN.sub(lambda m: values.get(m.group(1)) or "", skeleton)


def _prompt_header(
    category: str,
    applicant_data: Mapping[str, Any],
    context: ReviewerContext,
    referee: Optional[RefereeProfile],
) -> str:
    lines = [f"You are writing a {category} recommendation letter."]
    if referee is not None and _text(referee.name):
        role = ", ".join(
            p for p in (_text(referee.title), _text(referee.institution)) if p
        )
        lines.append(f"Referee Info: {referee.name}" + (f", {role}" if role else ""))
    lines.append(
        "Applicant Info: " + json.dumps(dict(applicant_data), indent=2, sort_keys=True)
    )
    lines.append(
        "Additional Context: " + json.dumps(context.model_dump(), indent=2, sort_keys=True)
    )
    return "\n".join(lines)


def bind_prompt(
    template: BindableTemplate,
    applicant_data: Mapping[str, Any],
    context: ReviewerContext,
    preferences: Optional[Mapping[str, Any]] = None,
    referee: Optional[RefereeProfile] = None,
) -> str:
    values = resolve_values(template, applicant_data, context, preferences or {}, referee)
    filled = fill_skeleton(template.prompt_template, values)
    category = getattr(template.category, "value", template.category)
    header = _prompt_header(str(category), applicant_data, context, referee)
    return f"{header}\n\n{filled}"
