from graphsearch.tools.base import Tool, ToolRegistry, ToolResult
from graphsearch.tools.search import GraphSearchTool

__all__ = [
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "GraphSearchTool",
]
