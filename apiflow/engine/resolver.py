"""
Variable resolution

Two halves:
- compile time: rewrite_templates() turns {{name}} placeholders into
  canonical variable paths (input.name for declared inputs)
- run time: resolve() walks a dotted path through the variable environment,
  resolve_value() applies it to a whole field tree
"""

import copy
import json
import re
from typing import Any, Collection, Dict, Mapping, Optional

# {{ path }} anywhere in a string; braces may not nest
TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
FULL_TEMPLATE_PATTERN = re.compile(r"^\s*\{\{\s*([^{}]+?)\s*\}\}\s*$")


def resolve(env: Mapping[str, Any], path: str) -> Optional[Any]:
    """
    Look up a dot-separated path in the environment.

    Missing keys and null intermediates yield None instead of raising; steps
    that need a value (validation, email) decide whether None is an error.
    """
    if not path:
        return None

    current: Any = env
    for segment in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def canonical_path(path: str, input_vars: Collection[str]) -> str:
    """Prefix declared input variables with the input namespace."""
    root = path.split(".", 1)[0]
    if root in input_vars:
        return f"input.{path}"
    # Prior step output, or an unknown root that is passed through as is
    return path


def rewrite_templates(value: Any, input_vars: Collection[str]) -> Any:
    """
    Rewrite every template in a JSON-like tree.

    "{{email}}"            -> "input.email"
    "Hello {{name}}!"      -> "Hello {{input.name}}!"
    "{{foundData.email}}"  -> "foundData.email"
    """
    if isinstance(value, str):
        full = FULL_TEMPLATE_PATTERN.match(value)
        if full:
            return canonical_path(full.group(1).strip(), input_vars)

        return TEMPLATE_PATTERN.sub(
            lambda match: "{{" + canonical_path(match.group(1).strip(), input_vars) + "}}",
            value
        )

    if isinstance(value, list):
        return [rewrite_templates(item, input_vars) for item in value]

    if isinstance(value, dict):
        return {key: rewrite_templates(item, input_vars) for key, item in value.items()}

    return value


def stringify(value: Any) -> str:
    """Render a resolved value inside a partial template."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, bool)):
        return json.dumps(value, default=str)
    return str(value)


def interpolate(env: Mapping[str, Any], text: str) -> str:
    return TEMPLATE_PATTERN.sub(
        lambda match: stringify(resolve(env, match.group(1).strip())),
        text
    )


def resolve_value(env: Mapping[str, Any], value: Any) -> Any:
    """
    Resolve a compiled field tree against the environment at run time.

    A string whose root segment names an environment key is a variable
    reference; any other string is a literal. Strings with {{...}} are
    interpolated, except a lone placeholder which keeps the value's type.
    Referenced values are copies; a step may change what it receives
    without touching the environment.
    """
    if isinstance(value, str):
        full = FULL_TEMPLATE_PATTERN.match(value)
        if full:
            return copy.deepcopy(resolve(env, full.group(1).strip()))
        if TEMPLATE_PATTERN.search(value):
            return interpolate(env, value)

        root = value.split(".", 1)[0]
        if root in env:
            return copy.deepcopy(resolve(env, value))
        return value

    if isinstance(value, list):
        return [resolve_value(env, item) for item in value]

    if isinstance(value, dict):
        return {key: resolve_value(env, item) for key, item in value.items()}

    return value


def resolve_fields(env: Mapping[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Resolve a mapping of fields, treating a missing mapping as empty."""
    return resolve_value(env, fields or {})
