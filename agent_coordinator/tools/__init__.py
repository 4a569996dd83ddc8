"""
Tools for the agent coordinator.

Each agent gets its own ToolRegistry; WebSearchTool is the bundled
network-backed tool.
"""

from .registry import FunctionTool, Tool, ToolRegistry
from .web_search import WebSearchTool

__all__ = ["Tool", "FunctionTool", "ToolRegistry", "WebSearchTool"]
