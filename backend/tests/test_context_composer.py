from __future__ import annotations

import pytest

from arya_relay import BadRequest, ConversationTurn, UserContext, compose, render_user_context

GREETING = ConversationTurn(role="assistant", content="Hi, I'm ARYA. How can I help today?")


def test_compose_without_user_context_uses_defaults():
    turns = compose([ConversationTurn(role="user", content="I have a mild headache")], "be concise", None)

    assert turns[0] == ConversationTurn(
        role="system",
        content=(
            "be concise\n\nUser Context:\n- Name: Unknown\n- Role: layperson\n"
            "- Known conditions: None recorded\n- Known allergies: None recorded"
        ),
    )
    # the caller's first turn is the greeting slot and is replaced
    assert len(turns) == 1


def test_compose_renders_all_user_context_fields():
    context = UserContext(
        name="Priya",
        role="doctor",
        conditions=("Asthma", "Hypertension"),
        allergies=("Penicillin",),
    )
    system_turn = compose([GREETING], "You are ARYA.", context)[0]

    assert system_turn.role == "system"
    assert system_turn.content.startswith("You are ARYA.\n\nUser Context:\n")
    assert "- Name: Priya\n" in system_turn.content
    assert "- Role: doctor\n" in system_turn.content
    assert "- Known conditions: Asthma, Hypertension\n" in system_turn.content
    assert system_turn.content.endswith("- Known allergies: Penicillin")


def test_blank_user_context_values_fall_back_to_defaults():
    rendered = render_user_context(UserContext(name="  ", role="", conditions=(), allergies=("", " ")))

    assert "- Name: Unknown" in rendered
    assert "- Role: layperson" in rendered
    assert "- Known conditions: None recorded" in rendered
    assert "- Known allergies: None recorded" in rendered


def test_missing_system_prompt_still_gets_context_block():
    system_turn = compose([GREETING], None)[0]
    assert system_turn.content.startswith("\n\nUser Context:\n- Name: Unknown")


def test_compose_forwards_later_turns_in_order():
    conversation = [
        GREETING,
        ConversationTurn(role="user", content="My chest feels tight"),
        ConversationTurn(role="assistant", content="How long has this been going on?"),
        ConversationTurn(role="system", content="stray instruction"),
        ConversationTurn(role="user", content="About an hour"),
    ]
    turns = compose(conversation, "be concise")

    assert [turn.as_message() for turn in turns[1:]] == [
        {"role": "user", "content": "My chest feels tight"},
        {"role": "assistant", "content": "How long has this been going on?"},
        {"role": "user", "content": "About an hour"},
    ]


def test_compose_does_not_mutate_input():
    conversation = [GREETING, ConversationTurn(role="user", content="hello")]
    snapshot = list(conversation)
    compose(conversation, "be concise", UserContext(name="Sam"))
    assert conversation == snapshot


@pytest.mark.parametrize("conversation", [[], None, "hello", {"role": "user"}])
def test_compose_rejects_missing_or_non_sequence_conversation(conversation):
    with pytest.raises(BadRequest, match="Messages array is required"):
        compose(conversation, "be concise")
