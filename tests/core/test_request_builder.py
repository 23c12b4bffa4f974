from __future__ import annotations

from llmrelay.request_builder import (
    build_chat_request,
    build_prompt_request,
    split_system_messages,
)
from llmrelay.tool_names import ToolNameCodec
from llmrelay.types import ChatMessage, ProviderMessage, ToolDefinition


def test_split_joins_system_messages_and_keeps_turn_order():
    messages = [
        ChatMessage(role="system", content="You are helpful."),
        ChatMessage(role="user", content="hi"),
        ChatMessage(role="system", content="Be brief."),
        ChatMessage(role="assistant", content="hello"),
        ChatMessage(role="user", content="bye"),
    ]

    system, turns = split_system_messages(messages)

    assert system == "You are helpful.\n\nBe brief."
    assert turns == [
        ProviderMessage(role="user", content="hi"),
        ProviderMessage(role="assistant", content="hello"),
        ProviderMessage(role="user", content="bye"),
    ]


def test_split_without_system_messages():
    system, turns = split_system_messages([ChatMessage(role="user", content="x")])
    assert system is None
    assert len(turns) == 1


def test_build_chat_request_uses_sanitized_tool_names():
    tools = [
        ToolDefinition(
            name="github:create_issue",
            description="Create an issue",
            input_schema={"type": "object", "properties": {"title": {"type": "string"}}},
        ),
        ToolDefinition(name="fs:list"),
    ]
    mapping = ToolNameCodec().build_mapping(tools)

    req = build_chat_request(
        [ChatMessage(role="user", content="go")],
        model="m",
        tools=tools,
        mapping=mapping,
        timeout_s=12.0,
    )

    assert req.model == "m"
    assert req.timeout_s == 12.0
    assert req.system is None
    assert [t.name for t in req.tools] == ["github__COLON__create_issue", "fs__COLON__list"]
    assert req.tools[0].description == "Create an issue"
    assert req.tools[0].parameters["properties"]["title"] == {"type": "string"}
    assert req.tools[1].description == "Tool: fs:list"
    assert req.tools[1].parameters == {"type": "object", "properties": {}}


def test_build_chat_request_without_tools():
    req = build_chat_request([ChatMessage(role="user", content="go")], model="m")
    assert req.tools is None


def test_build_prompt_request_is_single_user_turn():
    req = build_prompt_request("Summarize this", model="small")

    assert req.model == "small"
    assert req.system is None
    assert req.tools is None
    assert req.messages == [ProviderMessage(role="user", content="Summarize this")]
