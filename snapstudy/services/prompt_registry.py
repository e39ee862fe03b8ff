"""Prompt templates for flashcard generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


PROMPT_REGISTRY_VERSION = "2026-10-01"


PROMPT_FLASHCARDS = """You are an expert educator creating flashcards. Generate {card_count} high-quality flashcards from the {source_label}.

Requirements:
- Create exactly {card_count} flashcards
- Difficulty level: {difficulty}
- Each flashcard should have a clear question and a comprehensive answer
- Focus on key concepts, definitions, and important facts
- Make questions specific and answers informative
- Avoid overly simple yes/no questions
- Include diverse question types (what, how, why, when, etc.){extra_requirements}

Respond ONLY with a valid JSON array, without markdown or extra text, in exactly this format:
[
  {{
    "question": "Your question here",
    "answer": "Your detailed answer here",
    "difficulty": "{difficulty}",
    "tags": ["tag1", "tag2"]
  }}
]
{content_section}"""


@dataclass(frozen=True)
class PromptRecord:
    prompt_id: str
    name: str
    template: str


PROMPT_RECORDS: List[PromptRecord] = [
    PromptRecord("flashcards", "Flashcard generation", PROMPT_FLASHCARDS),
]


def get_prompt_template(prompt_id: str) -> str:
    safe_id = str(prompt_id or "").strip()
    for record in PROMPT_RECORDS:
        if record.prompt_id == safe_id:
            return record.template
    raise KeyError(f"Unknown prompt id: {safe_id}")


def get_prompt_metadata() -> Dict[str, object]:
    return {
        "version": PROMPT_REGISTRY_VERSION,
        "count": len(PROMPT_RECORDS),
        "ids": [record.prompt_id for record in PROMPT_RECORDS],
    }


def build_flashcard_prompt(settings: Dict[str, object], content: str = "") -> str:
    """Render the flashcard prompt. With no ``content`` the source is an attached document."""
    extra = []
    if settings.get("subject"):
        extra.append(f"- Subject focus: {settings['subject']}")
    if settings.get("custom_prompt"):
        extra.append(f"- Additional instructions: {settings['custom_prompt']}")
    if content:
        source_label = "following content"
        content_section = f"\nContent to study:\n{content}\n"
    else:
        source_label = "attached document"
        content_section = ""
    return get_prompt_template("flashcards").format(
        card_count=int(settings.get("card_count") or 10),
        difficulty=settings.get("difficulty") or "medium",
        source_label=source_label,
        extra_requirements=("\n" + "\n".join(extra)) if extra else "",
        content_section=content_section,
    )
