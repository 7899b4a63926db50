"""Tool contract shared by the search surface: a named async operation that
takes keyword arguments and returns a ToolResult instead of raising."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ToolResult:
    success: bool
    output: str
    error: str = ""

    @classmethod
    def ok(cls, output: str) -> "ToolResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, output="", error=error)


class Tool(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def parameters(self) -> dict[str, str]:
        """Argument name -> one-line help, in the order callers should read them."""

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        pass

    def get_schema(self) -> str:
        """Help block for the command line: name, description, aligned arguments."""
        lines = [f"{self.name}: {self.description}"]
        if self.parameters:
            width = max(len(k) for k in self.parameters)
            lines.append("  arguments (JSON object on stdin):")
            lines.extend(f"    {k.ljust(width)}  {v}" for k, v in self.parameters.items())
        return "\n".join(lines)


class ToolRegistry:
    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if not isinstance(tool, Tool):
            raise TypeError(f"Expected Tool instance, got {type(tool)}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_tools_prompt(self) -> str:
        if not self._tools:
            return "No tools registered."
        return "\n\n".join(tool.get_schema() for tool in self._tools.values())
