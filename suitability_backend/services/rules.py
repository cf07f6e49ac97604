from typing import Any, Mapping, Optional


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def describe_conditions(conditions: Optional[Mapping[str, Any]]) -> str:
    """Render ``{"A": {"operator": ">", "value": 5}}`` as ``"A > 5"``.

    Entries without both an operator and a value are skipped; the rest are
    joined with " AND ".
    """
    if not isinstance(conditions, Mapping):
        return ""

    parts = []
    for field_name, condition in conditions.items():
        if not isinstance(condition, Mapping):
            continue
        operator = condition.get("operator")
        if not operator or "value" not in condition or condition["value"] is None:
            continue
        parts.append(f"{field_name} {operator} {_format_value(condition['value'])}")
    return " AND ".join(parts)


def describe_actions(actions: Optional[Mapping[str, Any]]) -> str:
    if not isinstance(actions, Mapping):
        return ""
    alert_level = actions.get("alertLevel") or "Unknown"
    message = actions.get("message") or "No message"
    return f"{alert_level} Alert: {message}"


def describe_rule(conditions: Optional[Mapping[str, Any]], actions: Optional[Mapping[str, Any]]) -> str:
    return f"IF {describe_conditions(conditions)} THEN {describe_actions(actions)}"
