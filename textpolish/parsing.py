"""Normalization of raw model output into an AgentResponse."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List

from .models import AgentOption, AgentResponse

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _coerce_options(raw: Any) -> List[AgentOption]:
    """Keep well-formed option objects, stringifying scalar ids."""
    if not isinstance(raw, list):
        return []
    options: List[AgentOption] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        option_id = item.get("id")
        if isinstance(option_id, bool) or not isinstance(option_id, (str, int, float)):
            continue
        options.append(
            AgentOption(
                id=str(option_id),
                label=_text(item.get("label")),
                description=_text(item.get("description")),
            )
        )
    return options


def _from_payload(parsed: dict) -> AgentResponse:
    optimized_text = _text(parsed.get("optimized_text"))
    need_more_info = parsed.get("need_more_info")
    if not isinstance(need_more_info, bool):
        need_more_info = not optimized_text.strip()

    no_change_reason = _text(parsed.get("no_change_reason")).strip()
    no_change = parsed.get("no_change")
    if not isinstance(no_change, bool):
        no_change = bool(no_change_reason)

    return AgentResponse(
        analysis=_text(parsed.get("analysis")),
        optimized_text=optimized_text,
        options=_coerce_options(parsed.get("options")),
        need_more_info=need_more_info,
        no_change=no_change,
        no_change_reason=no_change_reason,
    )


def parse_agent_response(content: str) -> AgentResponse:
    """
    Turn model output into a fully populated AgentResponse. Never raises.

    Markdown code fences are stripped, then the span from the first `{` to the
    last `}` is parsed as JSON. Anything unparsable is treated as final text.
    """
    normalized = content.strip()
    fenced = _FENCE_RE.match(normalized)
    json_content = fenced.group(1) if fenced else normalized
    match = _OBJECT_RE.search(json_content)

    if match:
        try:
            parsed = json.loads(match.group(0))
        except (ValueError, RecursionError) as exc:
            logger.debug("agent response is not valid json: %s", exc)
        else:
            if isinstance(parsed, dict):
                return _from_payload(parsed)

    return AgentResponse(
        analysis="",
        optimized_text=content,
        options=[],
        need_more_info=False,
        no_change=False,
        no_change_reason="",
    )
