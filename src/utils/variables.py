"""
Run Variables
=============
Placeholder substitution and value stashing for chained endpoints.

An endpoint may declare `stash: {userId: id}`; after it passes, the top-level
`id` of its response is kept under `userId`, and any later endpoint in the
same run can reference `{{userId}}` in its path, query fixture or body fixture.
"""

import re
import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from core.config import EndpointConfig

logger = logging.getLogger("baseline_monitor")

PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")


class VariableTable:
    """Run-scoped name → value table, shared by every endpoint of one run."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial or {})

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"VariableTable({self._values!r})"


def stringify_value(value: Any) -> str:
    """String form used in URLs and placeholders (JSON spelling for null/bools/containers)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def replace_variables(target: Any, variables: VariableTable) -> Any:
    """Returns a copy of `target` with every known {{name}} replaced; unknown names stay as-is."""
    if isinstance(target, str):
        def _sub(match):
            name = match.group(1)
            return stringify_value(variables.get(name)) if name in variables else match.group(0)
        return PLACEHOLDER_RE.sub(_sub, target)

    if isinstance(target, list):
        return [replace_variables(item, variables) for item in target]

    if isinstance(target, dict):
        return {key: replace_variables(value, variables) for key, value in target.items()}

    return target


def resolve_endpoint(endpoint: EndpointConfig, variables: VariableTable) -> EndpointConfig:
    """
    Returns a fresh endpoint config with variables resolved in the path, query
    fixture and body fixture.  Neither `endpoint` nor `variables` is modified.
    """
    resolved = endpoint.model_copy(deep=True)
    resolved.path = replace_variables(resolved.path, variables)

    if resolved.request is not None:
        fixture = resolved.request.fixture
        if fixture.body is not None:
            fixture.body = replace_variables(fixture.body, variables)
        if fixture.query is not None:
            fixture.query = replace_variables(fixture.query, variables)

    return resolved


def stash_variables(variables: VariableTable, data: Any, stash: Dict[str, str]) -> List[str]:
    """
    Copies top-level response fields into the table.

    Only a top-level key equal to the declared field name is looked up; a
    missing field (or a non-object response) leaves any earlier value alone.
    Returns the names that were stashed.
    """
    stashed: List[str] = []
    for var_name, field_name in stash.items():
        if isinstance(data, dict) and field_name in data:
            variables.set(var_name, data[field_name])
            stashed.append(var_name)
            logger.debug(f"📌 Stashed {var_name} = {data[field_name]!r}")
        else:
            logger.warning(f"⚠️ Failed to stash {var_name}: field '{field_name}' not found in response")
    return stashed
