"""
Skill lookup tools: let the model list skills and fetch a full protocol body
after seeing the summary in its system prompt.
"""

from ..errors import ToolExecutionError
from ..skills import load_catalog


def apply_parameter_defaults(provided: dict, definitions: dict | None) -> dict:
    """Check required parameters and fill in declared defaults."""
    merged = dict(provided)
    if not definitions:
        return merged

    for name, definition in definitions.items():
        definition = definition if isinstance(definition, dict) else {}
        if name in provided:
            continue
        if definition.get("required"):
            raise ValueError(f'Required parameter "{name}" is missing')
        if "default" in definition:
            merged[name] = definition["default"]
    return merged


async def list_skills(*, skills_dir: str) -> dict:
    catalog = load_catalog(skills_dir)
    return {
        "skills": [
            {
                "name": s.name,
                "description": s.description,
                "type": s.type,
                "version": s.version,
                "tags": list(s.tags),
            }
            for s in catalog
        ]
    }


async def get_skill(skill_name: str, parameters: dict | None = None, *, skills_dir: str) -> dict:
    """Return the full definition of a skill, top-level or auxiliary."""
    if not skill_name or not isinstance(skill_name, str):
        raise ValueError("skill_name is required and must be a string")
    if parameters is not None and not isinstance(parameters, dict):
        raise ValueError("parameters must be an object")

    skill = load_catalog(skills_dir).get(skill_name)
    if skill is None:
        raise ToolExecutionError(f'Skill "{skill_name}" not found')

    result = skill.to_dict(include_body=True)
    result["resolved_parameters"] = apply_parameter_defaults(parameters or {}, skill.parameters)
    return result
