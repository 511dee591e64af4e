from __future__ import annotations

from collections.abc import Sequence

from .errors import BadRequest
from .models import FORWARDED_ROLES, ConversationTurn, UserContext

MISSING_MESSAGES_ERROR = "Messages array is required"
NONE_RECORDED = "None recorded"


def _or_default(value: str | None, default: str) -> str:
    cleaned = (value or "").strip()
    return cleaned or default


def _joined(values: Sequence[str]) -> str:
    items = [str(value).strip() for value in values if str(value).strip()]
    return ", ".join(items) or NONE_RECORDED


def render_user_context(user_context: UserContext | None) -> str:
    ctx = user_context or UserContext()
    return (
        "User Context:\n"
        f"- Name: {_or_default(ctx.name, 'Unknown')}\n"
        f"- Role: {_or_default(ctx.role, 'layperson')}\n"
        f"- Known conditions: {_joined(ctx.conditions)}\n"
        f"- Known allergies: {_joined(ctx.allergies)}"
    )


def compose_system_prompt(system_prompt: str | None, user_context: UserContext | None) -> str:
    return f"{system_prompt or ''}\n\n{render_user_context(user_context)}"


def compose(
    conversation: Sequence[ConversationTurn],
    system_prompt: str | None,
    user_context: UserContext | None = None,
) -> list[ConversationTurn]:
    """Build the turn list sent upstream.

    The caller's first turn is a greeting placeholder and is replaced by the
    composed system turn; the remaining user/assistant turns follow in order.
    """
    if isinstance(conversation, (str, bytes)) or not isinstance(conversation, Sequence) or not conversation:
        raise BadRequest(MISSING_MESSAGES_ERROR)

    outbound = [ConversationTurn(role="system", content=compose_system_prompt(system_prompt, user_context))]
    for turn in conversation[1:]:
        if turn.role not in FORWARDED_ROLES:
            continue
        outbound.append(ConversationTurn(role=turn.role, content=turn.content))
    return outbound
