"""Flatten chat messages into a single instruct-formatted prompt string."""

from __future__ import annotations

from chatcore.llm.types import InstructTemplate, Message, NamesBehavior

_NAMED = (NamesBehavior.INCLUDE, NamesBehavior.FORCE, NamesBehavior.ALWAYS)


def is_prefill(messages: list[Message]) -> bool:
    """
    Return ``True`` when the last message is an assistant prefill.

    Heuristic: the trimmed text ends with ``:``.  A message that legitimately
    ends in a colon is indistinguishable from a prefill.
    """
    if not messages:
        return False
    last = messages[-1]
    return last.role == "assistant" and last.text.rstrip().endswith(":")


def _replace_macros(text: str, name: str, user: str, char: str) -> str:
    return (
        text.replace("{{name}}", name)
        .replace("{{user}}", user)
        .replace("{{char}}", char)
    )


def convert_messages_to_instruct_string(
    messages: list[Message],
    template: InstructTemplate,
    user: str,
    char: str,
    is_continuation: bool = False,
) -> str:
    """
    Render *messages* with the role sequences of *template*.

    The suffix of the final assistant message is omitted on continuation so
    the model resumes inside that message.  When the conversation does not end
    with the assistant, the output sequence is appended to start its turn.
    """
    parts: list[str] = []
    last_index = len(messages) - 1

    for i, message in enumerate(messages):
        content = message.text
        if not content:
            continue

        if message.role == "system":
            sequence, suffix = template.system_sequence, template.system_suffix
        elif message.role == "user":
            sequence, suffix = template.input_sequence, template.input_suffix
        elif message.role == "assistant":
            sequence, suffix = template.output_sequence, template.output_suffix
        else:
            sequence, suffix = "", ""

        if template.names_behavior in _NAMED and message.role in ("user", "assistant"):
            speaker = user if message.role == "user" else char
            content = f"{speaker}: {content}"

        name = user if message.role == "user" else char
        sequence = _replace_macros(sequence, name, user, char)
        suffix = _replace_macros(suffix, name, user, char)

        skip_suffix = is_continuation and i == last_index and message.role == "assistant"
        parts.append(f"{sequence}{content}{'' if skip_suffix else suffix}")

    prompt = "".join(parts)

    if messages and messages[-1].role != "assistant":
        output_sequence = template.last_output_sequence or template.output_sequence
        prompt += _replace_macros(output_sequence, char, user, char)
        if template.names_behavior in _NAMED:
            prompt += f"{char}: "

    return prompt


def trim_instruct_response(text: str, template: InstructTemplate | None = None) -> str:
    """Strip trailing horizontal whitespace and leaked template sequences."""
    lines = [line.rstrip(" \t") for line in text.split("\n")]
    result = "\n".join(lines)
    if template is None:
        return result

    for seq in (template.stop_sequence, template.input_sequence, template.system_sequence):
        if not seq or not seq.strip():
            continue
        index = result.find(seq)
        if index != -1:
            result = result[:index]

    for seq in (template.output_sequence, template.last_output_sequence):
        if not seq:
            continue
        for line in seq.split("\n"):
            if line.strip():
                result = result.replace(line, "")

    return result
