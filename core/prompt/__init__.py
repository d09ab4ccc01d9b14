"""
# core/prompt/__init__.py

Module Contract
- Purpose: Single import point for prompt assembly.
- Outputs:
  - PromptBuilder (assembly) and the static template tables it draws from.
- Side effects:
  - None; pure module organization.

Package Structure:
- builder: PromptBuilder, section helpers
- templates: persona, topic, mode and demographic text (th/en)
"""

from .builder import PromptBuilder
from .templates import BASE_SYSTEM_PROMPT, MODE_PROMPTS, TOPIC_PROMPTS

__all__ = [
    "PromptBuilder",
    "BASE_SYSTEM_PROMPT",
    "MODE_PROMPTS",
    "TOPIC_PROMPTS",
]
