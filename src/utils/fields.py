from typing import Any, List


def extract_field_set(value: Any) -> List[str]:
    """
    Returns the top-level keys of a parsed JSON value.

    - Object:  its keys, in document order
    - Array:   union of the keys of every object element, in first-seen order
    - Anything else (scalars, null, arrays of scalars): empty
    """
    if isinstance(value, dict):
        return list(value.keys())

    if isinstance(value, list):
        fields: List[str] = []
        seen = set()
        for item in value:
            if not isinstance(item, dict):
                continue
            for key in item.keys():
                if key not in seen:
                    seen.add(key)
                    fields.append(key)
        return fields

    return []


def diff_fields(observed: List[str], expected: List[str]):
    """(new_fields, removed_fields): true set differences, order preserved."""
    expected_set = set(expected)
    observed_set = set(observed)
    new_fields = [f for f in dict.fromkeys(observed) if f not in expected_set]
    removed_fields = [f for f in dict.fromkeys(expected) if f not in observed_set]
    return new_fields, removed_fields
