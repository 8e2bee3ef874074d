"""
Parsing utility functions for the chat proxy.

This module contains stateless helpers for reading the system prompt file,
a markdown file with optional YAML front matter.
"""

import re

import yaml

from ..logging_config import get_loggers

# Get loggers for this module
app_logger, _, _ = get_loggers()


class SystemPrompt:
    """A system instruction and the providers it is sent to."""

    def __init__(self, text: str = "", providers=None):
        self.text = text
        self.providers = set(p.lower() for p in (providers or []))

    def applies_to(self, provider: str) -> bool:
        return bool(self.text) and provider.lower() in self.providers


def parse_prompt_file(file_path):
    """
    Parse a markdown file with YAML front matter.
    Returns a tuple of (yaml_data, markdown_content).
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = f.read()

        if content.startswith("---\n"):
            match = re.match(r"^---\n(.*?)\n---\n(.*)$", content, re.DOTALL)
            if match:
                yaml_content = match.group(1)
                markdown_content = match.group(2)
                yaml_data = yaml.safe_load(yaml_content) if yaml_content.strip() else {}
                return yaml_data or {}, markdown_content.strip()

            app_logger.warning(f"Invalid YAML front matter format in {file_path}")
            return {}, content.strip()

        # No front matter, treat as plain markdown/text
        return {}, content.strip()

    except yaml.YAMLError as e:
        app_logger.error(f"YAML parsing error in {file_path}: {e}")
        return {}, ""
    except OSError as e:
        app_logger.error(f"Error reading system prompt file {file_path}: {e}")
        return {}, ""


def load_system_prompt(file_path) -> SystemPrompt:
    """
    Loads the system prompt. The front matter key 'providers' lists the
    provider kinds that receive it; without it the prompt is sent to all.
    """
    metadata, text = parse_prompt_file(file_path)
    providers = metadata.get("providers")
    if providers is None:
        providers = ["anthropic", "deepseek"]
    elif isinstance(providers, str):
        providers = [providers]
    app_logger.debug(
        "System prompt loaded",
        extra={"path": file_path, "length": len(text), "providers": providers},
    )
    return SystemPrompt(text=text, providers=providers)
