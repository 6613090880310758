"""LLM investment scoring of an assembled launch description."""

import json
import logging
import re

import anthropic
from pydantic import ValidationError as PydanticValidationError

from launch_scanner.config import settings
from launch_scanner.scoring.models import LaunchScore

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

PROMPT_TEMPLATE = (
    'Analyze if the following {platform} launch is a good investment, then rate it as an '
    'investment from 0 to 10 and summarize it. Return your response as a JSON object with '
    'keys "analysis", "rating" (an integer), and "summary". Return only the JSON object.\n\n'
    "Description:\n{description}"
)


def parse_score(text: str) -> LaunchScore:
    """Parse a model reply into a LaunchScore.

    Raises ValueError on non-JSON or out-of-range replies.
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ValueError(f"No JSON object in reply: {text[:100]!r}")
    try:
        data = json.loads(cleaned[start:end + 1])
        return LaunchScore.model_validate(data)
    except (json.JSONDecodeError, PydanticValidationError) as exc:
        raise ValueError(f"Invalid score reply: {exc}") from exc


async def score_launch(description: str, platform_name: str) -> LaunchScore | None:
    """Score a launch with the first configured model that answers validly.

    Returns None when no API key is configured or every model fails; the
    caller keeps placeholder values in that case.
    """
    if not settings.anthropic_api_key:
        logger.debug("Anthropic key not configured, skipping scoring")
        return None

    client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    prompt = PROMPT_TEMPLATE.format(platform=platform_name, description=description)

    for model in settings.llm_models:
        try:
            message = await client.messages.create(
                model=model,
                max_tokens=settings.llm_max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
            text = "".join(
                block.text for block in message.content if getattr(block, "type", "") == "text"
            )
            score = parse_score(text)
            logger.info("Scored launch with %s: rating=%d", model, score.rating)
            return score
        except anthropic.APIError as exc:
            logger.warning("LLM %s failed: %s", model, exc)
        except ValueError as exc:
            logger.warning("LLM %s returned an unusable reply: %s", model, exc)

    logger.error("All LLM models failed for %s launch", platform_name)
    return None
