# example_builder.py
# Description: Turns recorded chat sessions into optimizer training examples.
from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from promptopt_Server_API.app.core.Optimization.models import ChatSession, Pair, TrainingExample


NEW_CONVERSATION = "New conversation"


def render_turn(pair: Pair, turn_number: int) -> str:
    text = f"Turn {turn_number}:\nUser: {pair.question}\nAssistant: {pair.answer}"
    if pair.tool:
        text += f" [Tool: {pair.tool}]"
    return text


def build_example(session: ChatSession) -> Optional[TrainingExample]:
    """Build the example for one session, or None when the session has no pairs.

    The last pair is the expected response; every earlier pair becomes context.
    """
    pairs = session.pairs
    if not pairs:
        return None
    if len(pairs) == 1:
        only = pairs[0]
        return TrainingExample(
            conversation_context=NEW_CONVERSATION,
            expected_turn_response=render_turn(only, 1),
            tools_used=[only.tool] if only.tool else None,
        )
    context_pairs, last = pairs[:-1], pairs[-1]
    context = "\n\n".join(render_turn(p, i) for i, p in enumerate(context_pairs, start=1))
    tools = [p.tool for p in pairs if p.tool]
    return TrainingExample(
        conversation_context=context or NEW_CONVERSATION,
        expected_turn_response=render_turn(last, len(context_pairs) + 1),
        tools_used=tools or None,
    )


def build_examples(sessions: Iterable[ChatSession]) -> List[TrainingExample]:
    examples: List[TrainingExample] = []
    for session in sessions:
        example = build_example(session)
        if example is not None:
            examples.append(example)
    return examples


def partition_by_tool_usage(
    examples: Iterable[TrainingExample],
) -> Tuple[List[TrainingExample], List[TrainingExample]]:
    """Split into (tool-using, non-tool) examples. Used for logging only."""
    with_tools: List[TrainingExample] = []
    without_tools: List[TrainingExample] = []
    for ex in examples:
        (with_tools if ex.uses_tools else without_tools).append(ex)
    return with_tools, without_tools


def unique_tools(examples: Iterable[TrainingExample]) -> List[str]:
    seen: List[str] = []
    for ex in examples:
        for tool in ex.tools_used or []:
            if tool not in seen:
                seen.append(tool)
    return seen
