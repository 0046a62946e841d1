"""Chat and tool-use templates built from the special token literals."""

import json


def format_chat_messages(
    system: str, user: str, use_new_format: bool = False
) -> str:
    """
    Wrap a system and a user message in chat boundary tokens, leaving the
    assistant turn open.

    The default is the ``<|im_start|>role ... <|im_end|>`` layout; with
    ``use_new_format`` the dedicated start/end tokens per role are used instead.
    """
    if use_new_format:
        return (
            f"<|startofsystem|>{system}<|endofsystem|>\n"
            f"<|startofuser|>{user}<|endofuser|>\n"
            "<|startofassistant|>"
        )
    return (
        f"<|im_start|>system\n{system}<|im_end|>\n"
        f"<|im_start|>user\n{user}<|im_end|>\n"
        "<|im_start|>assistant\n"
    )


def format_function_call(name: str, arguments: str) -> str:
    """``arguments`` must already be a JSON document; it is embedded verbatim."""
    return (
        f'<|function_call|>\n{{"name": {json.dumps(name)}, "arguments": {arguments}}}\n'
        "<|function_response|>"
    )


def format_tool_call(tool: str, tool_input: str) -> str:
    payload = json.dumps({"tool": tool, "input": tool_input}, ensure_ascii=False)
    return f"<|tool_call|>\n{payload}\n<|tool_response|>"


def format_code_block(code: str) -> str:
    return f"<|code|>\n{code}\n<|/code|>"


def format_thought(thought: str) -> str:
    return f"<|thought|>\n{thought}\n<|/thought|>"


__all__ = [
    "format_chat_messages",
    "format_function_call",
    "format_tool_call",
    "format_code_block",
    "format_thought",
]
