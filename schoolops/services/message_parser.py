"""Turn a free-form staff message into an activity draft.

AI parsing is used when a provider is available; otherwise, or when the
provider fails, a keyword-based parser produces the draft.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from schoolops.integrations.ai_providers import AIProviderError
from schoolops.models import Category
from schoolops.services.ai_factory import Available, Resolution
from schoolops.services.prompts import MESSAGE_PARSER_PROMPT, render

logger = structlog.get_logger()

MAINTENANCE_KEYWORDS = ("broken", "repair", "fix", "maintenance", "leak", "damage", "install")
DISCIPLINE_KEYWORDS = ("misbehav", "fight", "bullying", "discipline", "behavior")
SPORTS_KEYWORDS = ("sport", "game", "match", "tournament", "training")

PREFIXES = (
    "please ", "can you ", "need to ", "help with ", "urgent ", "asap ",
    "hello ", "hi ", "hey ", "excuse me ", "sorry ", "thanks ",
)
SUFFIXES = (" please", " thanks", " thank you", " asap", " urgently", " now")


@dataclass
class ParsedMessage:
    category_id: str
    subcategory: str
    location: str
    notes: str
    provider: str = "fallback"
    fallback_used: bool = True


def _find_category(categories: Sequence[Category], *needles: str) -> Optional[Category]:
    for category in categories:
        name = category.name.lower()
        if any(needle in name for needle in needles):
            return category
    return None


def smart_subcategory(message: str) -> str:
    """Short task title, e.g. "please clean classroom 3" -> "Clean Classroom"."""
    cleaned = message.strip()

    for prefix in PREFIXES:
        if cleaned.lower().startswith(prefix):
            cleaned = cleaned[len(prefix):].strip()
    for suffix in SUFFIXES:
        if cleaned.lower().endswith(suffix):
            cleaned = cleaned[: len(cleaned) - len(suffix)].strip()

    lower = cleaned.lower()

    if "clean" in lower or "washing" in lower:
        if "toilet" in lower or "bathroom" in lower:
            return "Clean Toilet"
        if "classroom" in lower or "class" in lower:
            return "Clean Classroom"
        if "window" in lower:
            return "Clean Windows"
        if "floor" in lower:
            return "Clean Floor"
        return "Cleaning Task"

    if "broken" in lower or "fix" in lower or "repair" in lower:
        if "door" in lower:
            return "Fix Door"
        if "window" in lower:
            return "Fix Window"
        if "desk" in lower or "table" in lower:
            return "Fix Furniture"
        if "light" in lower or "bulb" in lower:
            return "Fix Lighting"
        if "tap" in lower or "water" in lower or "leak" in lower:
            return "Fix Plumbing"
        return "Repair Task"

    if "install" in lower or "setup" in lower or "mount" in lower:
        return "Installation Task"

    if len(cleaned) > 35:
        words = cleaned.split(" ")
        if len(words) > 5:
            cleaned = " ".join(words[:5]) + "..."

    title = " ".join(word[:1].upper() + word[1:].lower() for word in cleaned.split(" "))
    return title if len(title) > 3 else "General Task"


def extract_location(message: str) -> str:
    lower = message.lower()
    if "classroom" in lower:
        match = re.search(r"classroom\s*([a-z0-9]+)", lower)
        return f"Classroom {match.group(1).upper()}" if match else "Classroom"
    if "room" in lower:
        match = re.search(r"room\s*([a-z0-9]+)", lower)
        return f"Room {match.group(1).upper()}" if match else "Room"
    if "lab" in lower:
        return "Laboratory"
    if "playground" in lower or "field" in lower:
        return "Playground"
    if "office" in lower:
        return "Office"
    if "corridor" in lower or "hallway" in lower:
        return "Corridor"
    return "Unknown Location"


def parse_message_simple(message: str, categories: Sequence[Category]) -> ParsedMessage:
    """Keyword-based parsing used when no AI provider can help."""
    lower = message.lower()
    category_id = categories[0].id if categories else "unplanned"
    subcategory = smart_subcategory(message)

    if any(keyword in lower for keyword in MAINTENANCE_KEYWORDS):
        category = _find_category(categories, "maintenance", "repair")
        if category:
            category_id = category.id
            if "desk" in lower or "chair" in lower:
                if "Desk" not in subcategory and "Chair" not in subcategory:
                    subcategory = f"{subcategory} (Furniture)"
            elif "window" in lower or "door" in lower:
                if "Window" not in subcategory and "Door" not in subcategory:
                    subcategory = f"{subcategory} (Building)"
            elif "light" in lower or "electrical" in lower:
                if "Light" not in subcategory and "Electric" not in subcategory:
                    subcategory = f"{subcategory} (Electrical)"
    elif any(keyword in lower for keyword in DISCIPLINE_KEYWORDS):
        category = _find_category(categories, "discipline", "behavior")
        if category:
            category_id = category.id
    elif any(keyword in lower for keyword in SPORTS_KEYWORDS):
        category = _find_category(categories, "sport", "athletic")
        if category:
            category_id = category.id

    return ParsedMessage(
        category_id=category_id,
        subcategory=subcategory,
        location=extract_location(message),
        notes=f"Fallback parsing: {message}",
    )


def sanitize_parsed(data: dict, categories: Sequence[Category], provider: str) -> ParsedMessage:
    """Coerce an AI answer into a valid draft."""
    valid_ids = [c.id for c in categories]
    category_id = data.get("category_id")
    if category_id not in valid_ids:
        logger.warning("AI returned unknown category, using fallback", category_id=category_id)
        fallback = _find_category(categories, "maintenance", "repair") or _find_category(
            categories, "general", "other"
        )
        category_id = fallback.id if fallback else valid_ids[0]

    subcategory = str(data.get("subcategory") or "General Issue")
    location = str(data.get("location") or "Unknown Location")
    notes = str(data.get("notes") or "No additional details provided")

    return ParsedMessage(
        category_id=category_id,
        subcategory=subcategory.strip()[:100],
        location=location.strip()[:100],
        notes=notes.strip()[:500],
        provider=provider,
        fallback_used=False,
    )


def parser_schema(categories: Sequence[Category]) -> dict:
    return {
        "type": "object",
        "properties": {
            "category_id": {
                "type": "string",
                "enum": [c.id for c in categories],
                "description": "Must be one of the valid category IDs",
            },
            "subcategory": {"type": "string"},
            "location": {"type": "string"},
            "notes": {"type": "string"},
        },
        "required": ["category_id", "subcategory", "location", "notes"],
    }


async def parse_message(
    message: str,
    categories: Sequence[Category],
    resolution: Resolution,
) -> ParsedMessage:
    """Parse with the resolved provider, degrading to keyword parsing."""
    if not categories:
        raise ValueError("At least one category is required")

    if not isinstance(resolution, Available):
        logger.info("No AI provider, using keyword parsing")
        return parse_message_simple(message, categories)

    provider = resolution.provider
    prompt = render(
        MESSAGE_PARSER_PROMPT,
        message=message,
        categories=", ".join(f"{c.id} ({c.name})" for c in categories),
    )
    try:
        data = await provider.generate_structured_content(
            prompt,
            parser_schema(categories),
            max_tokens=500,
            temperature=0.3,
        )
    except AIProviderError as e:
        logger.warning("AI parsing failed, using keyword parsing", provider=provider.name, error=str(e))
        return parse_message_simple(message, categories)

    if not isinstance(data, dict):
        logger.warning("AI parsing returned non-object JSON, using keyword parsing", provider=provider.name)
        return parse_message_simple(message, categories)

    return sanitize_parsed(data, categories, provider.name)
