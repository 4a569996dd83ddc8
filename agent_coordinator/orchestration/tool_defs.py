"""
Tool catalog for the agent prompt.

Formats the tools of a ToolRegistry into the plain-text block the model
reads to choose a tool and its parameters.
"""

from ..tools.registry import ToolRegistry

TOOLS_HEADER = (
    "You have access to the tools below. Every parameter has to be provided "
    "by the user; ask them for anything missing instead of guessing."
)


def build_tools_prompt_block(registry: ToolRegistry) -> str:
    """
    Format a registry into the tool catalog text.

    Args:
        registry: Tools available to the agent.

    Returns:
        One ``- name: description`` line per tool followed by one
        indented line per parameter, or an empty string without tools.
    """
    if len(registry) == 0:
        return ""

    lines = [TOOLS_HEADER]
    for tool in registry:
        lines.append(f"- {tool.name}: {tool.description}. Parameters:")
        for param_name, param_desc in tool.parameters.items():
            lines.append(f"\t+ {param_name}: {param_desc}")
    return "\n".join(lines)
