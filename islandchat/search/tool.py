"""The web_search tool definition offered to the model."""

from typing import Any

from islandchat.constants import ChatConstants


class WebSearchTool:
    """The single tool the model may call."""

    name = ChatConstants.WEB_SEARCH_TOOL_NAME
    description = "Search the web for up-to-date information."
    parameters: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The search query",
            }
        },
        "required": ["query"],
    }

    def to_ollama_tool(self) -> dict[str, Any]:
        """Convert to Ollama tool calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
