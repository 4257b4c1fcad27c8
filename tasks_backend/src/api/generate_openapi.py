"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

This script builds the FastAPI application and serializes its OpenAPI schema
to the interfaces/openapi.json file so that API clients and documentation
tools can consume a stable spec without running the server.

Usage:
    python -m src.api.generate_openapi

Notes:
- The script ensures the 'auth' and 'tasks' tags are present in the OpenAPI tags metadata.
- Output file path is relative to the container root: interfaces/openapi.json
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

from .main import create_app, openapi_tags


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the expected tags metadata. This does
    not override existing tag definitions unless missing.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


def _default_output_path() -> str:
    # <container_root>/interfaces/openapi.json
    script_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))  # points to .../src
    container_root = os.path.dirname(script_dir)
    return os.path.join(container_root, "interfaces", "openapi.json")


# PUBLIC_INTERFACE
def build_schema() -> Dict[str, Any]:
    """Return the application's OpenAPI schema with tag metadata filled in."""
    schema = create_app().openapi()
    _ensure_tags(schema)
    return schema


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Write the OpenAPI schema to ``out_path`` (default interfaces/openapi.json) and return the path."""
    out_path = out_path or _default_output_path()
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)

    # Write the schema with pretty formatting for readability
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(build_schema(), f, indent=2, ensure_ascii=False)
    return out_path


def main() -> None:
    path = generate_openapi()
    print(f"Wrote OpenAPI schema to: {path}")


if __name__ == "__main__":
    main()
