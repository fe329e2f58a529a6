"""Dashboard chat: dataset summaries and follow-up conversation.

Both paths degrade to templated, data-derived text when no AI provider is
usable or the provider call fails.
"""

import json
from collections import Counter
from typing import Any, AsyncIterator, Optional

import structlog
from sqlalchemy.orm import Session, joinedload

from schoolops.integrations.ai_providers import AIProviderError
from schoolops.models import Activity
from schoolops.services.ai_factory import Available, Resolution
from schoolops.services.prompts import CHAT_SYSTEM_INSTRUCTION, INITIAL_ANALYSIS_PROMPT, SUMMARY_SCHEMA

logger = structlog.get_logger()

MAX_ACTIVITIES = 75
NOTES_LIMIT = 150

FALLBACK_SUGGESTIONS = [
    "Which categories have the most open activities?",
    "Which locations report incidents most often?",
    "Which activities have been unassigned the longest?",
    "How many activities were resolved this week?",
]


def records_from_context(context: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten the dashboard's {activities, users, allCategories} payload."""
    activities = context.get("activities") or []
    users = {u.get("id"): u.get("name") for u in context.get("users") or [] if isinstance(u, dict)}
    categories = {
        c.get("id"): c.get("name") for c in context.get("allCategories") or [] if isinstance(c, dict)
    }

    records = []
    for act in activities[:MAX_ACTIVITIES]:
        if not isinstance(act, dict):
            continue
        category_id = act.get("category_id") or act.get("categoryId")
        record = {
            "id": act.get("id"),
            "staff": users.get(act.get("user_id") or act.get("userId"), "Unknown"),
            "category": categories.get(category_id, category_id),
            "details": act.get("subcategory"),
            "location": act.get("location"),
            "status": act.get("status"),
            "has_photo": bool(act.get("photo_url") or act.get("photoUrl")),
        }
        if act.get("notes"):
            record["notes"] = act["notes"][:NOTES_LIMIT]
        records.append(record)
    return records


def records_from_db(db: Session) -> list[dict[str, Any]]:
    """Most recent activities when the client sent no dataset."""
    activities = (
        db.query(Activity)
        .options(joinedload(Activity.reporter), joinedload(Activity.category))
        .order_by(Activity.timestamp.desc())
        .limit(MAX_ACTIVITIES)
        .all()
    )
    records = []
    for act in activities:
        record = {
            "id": act.id,
            "staff": act.reporter.name if act.reporter else "Unknown",
            "category": act.category.name if act.category else act.category_id,
            "details": act.subcategory,
            "location": act.location,
            "status": act.status,
            "has_photo": bool(act.photo_url),
        }
        if act.notes:
            record["notes"] = act.notes[:NOTES_LIMIT]
        records.append(record)
    return records


def fallback_summary(records: list[dict[str, Any]]) -> dict[str, Any]:
    """Rule-based Markdown overview of the dataset."""
    if not records:
        return {
            "analysis": "## Activity Overview\n\nNo activities have been logged yet.",
            "suggestions": FALLBACK_SUGGESTIONS[:3],
        }

    categories = Counter(r.get("category") or "Unknown" for r in records)
    statuses = Counter(r.get("status") or "Unknown" for r in records)
    locations = Counter(r.get("location") or "Unknown" for r in records)

    lines = [
        "## Activity Overview",
        "",
        f"**{len(records)}** recent activities analysed (AI analysis unavailable, showing counts).",
        "",
        "**Top categories:**",
    ]
    for name, count in categories.most_common(3):
        lines.append(f"- [{name}](ai-action://dashboard?category={name.replace(' ', '%20')}): {count}")
    lines += ["", "**By status:**"]
    lines += [f"- {name}: {count}" for name, count in statuses.most_common()]
    lines += ["", "**Most frequent locations:**"]
    for name, count in locations.most_common(3):
        lines.append(f"- [{name}](ai-action://dashboard?search={name.replace(' ', '%20')}): {count}")

    return {"analysis": "\n".join(lines), "suggestions": FALLBACK_SUGGESTIONS}


def build_summary_prompt(records: list[dict[str, Any]]) -> str:
    prompt = INITIAL_ANALYSIS_PROMPT
    if records:
        prompt += f"\n\nData:\n{json.dumps(records, indent=2)}"
    return prompt


async def generate_summary(resolution: Resolution, records: list[dict[str, Any]]) -> dict[str, Any]:
    """Structured analysis plus the history that seeds the chat."""
    prompt = build_summary_prompt(records)

    result: Optional[dict[str, Any]] = None
    provider_name = "fallback"
    if isinstance(resolution, Available):
        try:
            data = await resolution.provider.generate_structured_content(prompt, SUMMARY_SCHEMA)
            if isinstance(data, dict) and isinstance(data.get("analysis"), str):
                suggestions = data.get("suggestions") or []
                result = {
                    "analysis": data["analysis"],
                    "suggestions": [str(s) for s in suggestions if s][:5],
                }
                provider_name = resolution.provider_name
        except AIProviderError as e:
            logger.warning("AI summary failed, using templated summary", error=str(e))

    fallback_used = result is None
    if result is None:
        result = fallback_summary(records)

    return {
        **result,
        "history": [
            {"role": "user", "content": prompt},
            {"role": "assistant", "content": result["analysis"]},
        ],
        "provider": provider_name,
        "fallback_used": fallback_used,
    }


async def stream_chat(
    resolution: Resolution,
    history: list[dict[str, str]],
    message: str,
) -> AsyncIterator[str]:
    """Stream the assistant's reply as plain text chunks."""
    if not isinstance(resolution, Available):
        yield (
            "The AI assistant is not available right now because no AI provider is configured. "
            "You can still filter the dashboard by category, status or location."
        )
        return

    messages = [*history, {"role": "user", "content": message}]
    sent_any = False
    try:
        async for chunk in resolution.provider.generate_content_stream(
            messages, system_instruction=CHAT_SYSTEM_INSTRUCTION
        ):
            sent_any = True
            yield chunk
    except AIProviderError as e:
        logger.warning("AI chat stream failed", provider=resolution.provider_name, error=str(e))
        prefix = "\n\n" if sent_any else ""
        yield f"{prefix}Sorry, the AI assistant could not complete this answer. Please try again."
