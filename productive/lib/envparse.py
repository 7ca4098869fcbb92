"""
Safe .env file parser.

Parses KEY=value config files without shell execution and overlays the
process environment on top. Values that look like shell constructs are
rejected so a config file can never smuggle in command substitution.
"""

import os
import re
from pathlib import Path
from typing import Mapping

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
    r';',           # command chaining
    r'&&',          # AND chaining
    r'\|\|',        # OR chaining
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_env(text: str) -> dict[str, str]:
    """
    Parse env-file text into a dict.

    Raises:
        ValueError: if a line has invalid syntax or a forbidden pattern
    """
    result = {}

    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()

        if not line or line.startswith('#'):
            continue

        if '=' not in line:
            raise ValueError(f"Line {lineno}: Invalid syntax (no '=')")

        key, _, value = line.partition('=')
        key = key.strip()
        value = _strip_quotes(value.strip())

        if not KEY_PATTERN.match(key):
            raise ValueError(f"Line {lineno}: Invalid key '{key}'")

        for pattern in FORBIDDEN_PATTERNS:
            if re.search(pattern, value):
                raise ValueError(f"Line {lineno}: Forbidden pattern in value for {key}")

        result[key] = value

    return result


def load_env(filepath: str | Path, required: bool = True) -> dict[str, str]:
    """
    Parse env file safely, return dict.

    Args:
        filepath: Path to the env file
        required: When False a missing file yields an empty dict

    Raises:
        FileNotFoundError: if file doesn't exist and required is True
        ValueError: if syntax invalid or forbidden pattern found
    """
    path = Path(filepath)
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Env file not found: {filepath}")
        return {}
    return parse_env(path.read_text())


def load_layered(
    filepath: str | Path | None,
    keys: list[str],
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Load an optional env file, then let process environment win for known keys."""
    env = load_env(filepath, required=False) if filepath else {}
    source = os.environ if environ is None else environ
    for key in keys:
        if key in source:
            env[key] = source[key]
    return env
