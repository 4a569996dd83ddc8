"""Tests for the tool catalog block."""

from agent_coordinator.orchestration.tool_defs import TOOLS_HEADER, build_tools_prompt_block
from agent_coordinator.tools import FunctionTool, ToolRegistry


class TestBuildToolsPromptBlock:
    """Tests for build_tools_prompt_block."""

    def test_empty_registry(self):
        """No tools, no catalog."""
        assert build_tools_prompt_block(ToolRegistry()) == ""

    def test_tools_and_parameters(self):
        """Each tool lists its parameters on indented lines."""
        registry = ToolRegistry(
            [
                FunctionTool(
                    "book_room",
                    "Reserve a study room",
                    {"room": "room number", "date": "date in YYYY-MM-DD format"},
                    lambda tool_input: "booked",
                ),
                FunctionTool("list_rooms", "List rooms", {}, lambda tool_input: ""),
            ]
        )

        block = build_tools_prompt_block(registry)

        assert block.split("\n") == [
            TOOLS_HEADER,
            "- book_room: Reserve a study room. Parameters:",
            "\t+ room: room number",
            "\t+ date: date in YYYY-MM-DD format",
            "- list_rooms: List rooms. Parameters:",
        ]
