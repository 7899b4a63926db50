"""Entry point: search <query> | search (JSON arguments on stdin) | tools."""

import asyncio
import json
import sys

from graphsearch.core.config import config
from graphsearch.orchestrators.search import ApiClient, GraphSearchOrchestrator
from graphsearch.services.graph_auth import TokenStoreAuthProvider
from graphsearch.services.graph_client import GraphApiClient
from graphsearch.tools import GraphSearchTool, ToolRegistry

USAGE = "Usage: python -m graphsearch.main search [query words] | tools"


def build_registry(client: ApiClient) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(GraphSearchTool(GraphSearchOrchestrator(TokenStoreAuthProvider(), client)))
    return registry


def usage_text(registry: ToolRegistry) -> str:
    return f"{USAGE}\n\n{registry.get_tools_prompt()}"


def _read_arguments(argv: list[str]) -> dict:
    """Query words from argv, or a JSON argument object from stdin."""
    if argv:
        return {"query": " ".join(argv).strip()}
    raw = sys.stdin.read().strip()
    if not raw:
        return {}
    if raw.startswith("{"):
        return json.loads(raw)
    return {"query": raw}


async def run_search(arguments: dict) -> int:
    client = GraphApiClient()
    registry = build_registry(client)
    try:
        result = await registry.get("graph_search").execute(**arguments)
    finally:
        await client.aclose()
    if result.success:
        print(result.output)
        return 0
    print(f"Error: {result.error}")
    return 1


async def show_tools() -> None:
    client = GraphApiClient()
    try:
        print(usage_text(build_registry(client)))
    finally:
        await client.aclose()


def main():
    mode = "search"
    if len(sys.argv) > 1:
        mode = sys.argv[1].lower()

    if mode == "search":
        problems = config.validate()
        if problems:
            for p in problems:
                print(f"Config error: {p}")
            sys.exit(2)
        try:
            arguments = _read_arguments(sys.argv[2:])
        except json.JSONDecodeError as e:
            print(f"Error: stdin is not a valid JSON argument object: {e}")
            sys.exit(2)
        sys.exit(asyncio.run(run_search(arguments)))

    elif mode in ("tools", "help", "--help", "-h"):
        asyncio.run(show_tools())

    else:
        print(f"Unknown mode: {mode}")
        print(USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()
