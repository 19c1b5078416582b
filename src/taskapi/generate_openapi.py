"""
Utility script to generate and write the OpenAPI schema for the task API.

Usage:
    python -m src.taskapi.generate_openapi [OUTPUT_PATH]

The default output is interfaces/openapi.json at the repository root.
Importing the app reads the environment, so PERSISTENCE_BACKEND=memory is
enough to export the schema without a database.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List, Optional

from .main import app, openapi_tags


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Make sure every tag from openapi_tags is present in the schema metadata
    without overriding tags FastAPI already emitted.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


def _default_path() -> str:
    # <repo_root>/src/taskapi/generate_openapi.py -> <repo_root>/interfaces/openapi.json
    repo_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.path.join(repo_root, "interfaces", "openapi.json")


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Write the OpenAPI schema and return the path it was written to."""
    schema = app.openapi()
    _ensure_tags(schema)

    out_path = out_path or _default_path()
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    return out_path


def main() -> None:
    path = generate_openapi(sys.argv[1] if len(sys.argv) > 1 else None)
    print(f"Wrote OpenAPI schema to: {path}")


if __name__ == "__main__":
    main()
