# prompt.py
# Prompt template engine: {{name}}, {{name:description}}, {{name::default}}
# and {{name:description:default}} placeholders.
#
# Pure functions, no I/O.

import re
from typing import Iterable

from pydantic import BaseModel

from agent_runner.models import AgentStep

OUTPUT_PREFIX = "output."
RUN_OUTPUT = "run.output"
FACTS = "facts"

_INPUT_RE = re.compile(r"\{\{\s*([^:}]+)(?::([^:]*?)(?::([^}]*))?)?\s*\}\}")


class PromptInput(BaseModel):
    name: str
    description: str | None = None
    default_value: str | None = None


def is_system_input(name: str) -> bool:
    """Inputs filled by the executor itself rather than by the caller."""
    return name in (RUN_OUTPUT, FACTS) or name.startswith(OUTPUT_PREFIX)


def output_variable(index: int) -> str:
    """Variable name for the output of step `index` (0-based)."""
    return f"{OUTPUT_PREFIX}{index + 1}"


def _scan(template: str, remove_system_inputs: bool, seen: set[str]) -> list[PromptInput]:
    inputs: list[PromptInput] = []
    for match in _INPUT_RE.finditer(template):
        name = match.group(1).strip()
        if remove_system_inputs and is_system_input(name):
            continue
        if name in seen:
            continue
        seen.add(name)
        description = (match.group(2) or "").strip()
        default_value = (match.group(3) or "").strip()
        inputs.append(
            PromptInput(
                name=name,
                description=description or None,
                default_value=default_value or None,
            )
        )
    return inputs


def extract_prompt_inputs(template: str, remove_system_inputs: bool = False) -> list[PromptInput]:
    """
    Return the placeholders of `template` in document order.

    A name that appears several times is reported once, with the
    description and default of its first occurrence.
    """
    return _scan(template or "", remove_system_inputs, set())


def extract_all_workflow_inputs(steps: Iterable[AgentStep]) -> list[PromptInput]:
    """Caller-facing inputs across every step of a workflow."""
    seen: set[str] = set()
    inputs: list[PromptInput] = []
    for step in steps:
        if step.prompt:
            inputs.extend(_scan(step.prompt, True, seen))
    return inputs


def replace_prompt_inputs(template: str, values: dict) -> str:
    """
    Substitute every occurrence of each name in `values`.

    Lists are joined with ", ". Placeholders without a value are left as-is.
    """
    for name, value in values.items():
        text = ", ".join(str(v) for v in value) if isinstance(value, (list, tuple)) else str(value)
        pattern = r"\{\{\s*" + re.escape(name) + r"\s*(?::[^:}]*?)?(?::[^}]*)?\s*\}\}"
        template = re.sub(pattern, lambda _m: text, template)
    return template


def get_missing_inputs(template: str, values: dict) -> list[PromptInput]:
    """Caller inputs of `template` with no key in `values` (empty strings count as given)."""
    return [i for i in extract_prompt_inputs(template, remove_system_inputs=True) if i.name not in values]
