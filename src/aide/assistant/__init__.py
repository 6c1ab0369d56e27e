from aide.assistant.loop import ChatHandler
from aide.assistant.tools import TOOL_CATALOG, ToolContext, ToolName, ToolRegistry

__all__ = ["TOOL_CATALOG", "ChatHandler", "ToolContext", "ToolName", "ToolRegistry"]
