"""Field rules for course, module and lesson records in app content files."""

import re

_ID = re.compile(r"^[a-z0-9-]+$")
_SOURCE_APP = re.compile(r"^learn-[a-z-]+$")
_URL = re.compile(r"^https?://.+")

LEVELS = ("beginner", "intermediate", "advanced")

_COMMON_FIELDS = {
    "id": {"type": str, "pattern": _ID},
    "title": {"type": str, "min_length": 3, "max_length": 200},
    "description": {"type": str, "min_length": 10, "max_length": 2000},
    "sourceApp": {"type": str, "pattern": _SOURCE_APP},
}

SCHEMAS = {
    "course": {
        "required": ["id", "title", "description", "sourceApp"],
        "fields": {
            **_COMMON_FIELDS,
            "instructor": {"type": str, "max_length": 100},
            "duration": {"type": str, "max_length": 50},
            "level": {"type": str, "enum": LEVELS},
            "tags": {"type": list},
        },
    },
    "module": {
        "required": ["id", "title", "description", "sourceApp", "course_id"],
        "fields": {
            **_COMMON_FIELDS,
            "course_id": {"type": str, "pattern": _ID},
            "order": {"type": (int, float), "min": 1},
            "duration": {"type": str, "max_length": 50},
        },
    },
    "lesson": {
        "required": ["id", "title", "description", "sourceApp", "module_id"],
        "fields": {
            **_COMMON_FIELDS,
            "module_id": {"type": str, "pattern": _ID},
            "course_id": {"type": str, "pattern": _ID},
            "order": {"type": (int, float), "min": 1},
            "content": {"type": str},
            "duration": {"type": str, "max_length": 50},
            "video_url": {"type": str, "pattern": _URL},
        },
    },
}

_TYPE_NAMES = {str: "a string", list: "an array", (int, float): "a number"}


def get_schema(kind: str) -> dict:
    if kind not in SCHEMAS:
        raise ValueError(f"Unknown content type: {kind}")
    return SCHEMAS[kind]


def validate_content(data: dict, kind: str) -> dict:
    """Validate one record. Returns {valid, errors}."""
    schema = get_schema(kind)
    errors = []

    for field in schema["required"]:
        if data.get(field) in (None, ""):
            errors.append(f"Missing required field: {field}")

    for name, rule in schema["fields"].items():
        value = data.get(name)
        if value is None:
            continue
        expected = rule["type"]
        # bool is an int subclass but never a valid number here
        if not isinstance(value, expected) or isinstance(value, bool):
            errors.append(f"Field {name} must be {_TYPE_NAMES[expected]}")
            continue
        if isinstance(value, str):
            if "min_length" in rule and len(value) < rule["min_length"]:
                errors.append(f"Field {name} must be at least {rule['min_length']} characters")
            if "max_length" in rule and len(value) > rule["max_length"]:
                errors.append(f"Field {name} must be at most {rule['max_length']} characters")
            if "pattern" in rule and not rule["pattern"].match(value):
                errors.append(f"Field {name} does not match required pattern")
            if "enum" in rule and value not in rule["enum"]:
                errors.append(f"Field {name} must be one of: {', '.join(rule['enum'])}")
        elif "min" in rule and value < rule["min"]:
            errors.append(f"Field {name} must be at least {rule['min']}")

    return {"valid": not errors, "errors": errors}


def validate_many(items: list[dict], kind: str) -> list[dict]:
    """Invalid records only, as [{id, errors}]."""
    failures = []
    for item in items:
        result = validate_content(item, kind)
        if not result["valid"]:
            failures.append({"id": item.get("id"), "errors": result["errors"]})
    return failures
