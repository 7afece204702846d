"""Prompt template loading for markdown files in this directory."""

import re
from functools import lru_cache
from pathlib import Path
from typing import Any

PROMPT_DIR = Path(__file__).parent

_VARIABLE_RE = re.compile(r"\{\{(\w+)\}\}")


@lru_cache(maxsize=None)
def load_prompt(prompt_name: str) -> str:
    """Load a prompt template by name (file name without ``.md``).

    The leading ``# Title`` line is documentation for humans and is not part
    of the prompt.

    Raises:
        FileNotFoundError: If the prompt file doesn't exist
    """
    prompt_file = PROMPT_DIR / f"{prompt_name}.md"
    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

    content = prompt_file.read_text(encoding="utf-8")
    lines = content.split("\n")
    if lines and lines[0].startswith("#"):
        content = "\n".join(lines[1:]).strip()
    return content


def extract_variables(prompt_template: str) -> set[str]:
    """Return the names of all ``{{variable}}`` placeholders in a template."""
    return set(_VARIABLE_RE.findall(prompt_template))


def format_prompt(prompt_template: str, variables: dict[str, Any]) -> str:
    """Fill a template's placeholders.

    The contract is strict in both directions: every provided variable must
    appear in the template and every placeholder must be provided.

    Raises:
        ValueError: If provided variables don't exist in the template
        KeyError: If template variables are missing from provided values
    """
    template_variables = extract_variables(prompt_template)
    provided_variables = set(variables)

    unused_variables = provided_variables - template_variables
    if unused_variables:
        raise ValueError(
            f"Variables provided but not in template: {sorted(unused_variables)}. "
            f"Template expects: {sorted(template_variables)}"
        )

    missing_variables = template_variables - provided_variables
    if missing_variables:
        raise KeyError(f"Missing required variables: {sorted(missing_variables)}")

    # Single pass so that values containing "{{...}}" (n8n expressions) are left alone
    return _VARIABLE_RE.sub(lambda m: str(variables[m.group(1)]), prompt_template)
