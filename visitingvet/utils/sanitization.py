from typing import Any, Optional

import bleach


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Strip every HTML tag from free text (notes, bios, review comments)"""
    if not isinstance(value, str):
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


def sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {key: sanitize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_value(item) for item in value]
    return value


def sanitize_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize every string in a model dump, including nested lists and dicts"""
    return sanitize_value(data) if data else data
