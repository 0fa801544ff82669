import json
from typing import Any, Dict


def load_json(file_path: str) -> Dict[str, Any]:
    """Load and parse a JSON file"""
    with open(file_path, "r") as file:
        return json.load(file)


def load_text(file_path: str) -> str:
    """Read a text file verbatim (no newline translation)"""
    with open(file_path, "r", encoding="utf-8", newline="") as file:
        return file.read()
