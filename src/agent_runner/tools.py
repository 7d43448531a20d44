# tools.py
# Tool plugins and per-step tool resolution.
#
# Executors never call plugins directly: they attach them to an LlmEngine,
# which dispatches the model's tool calls.

from pathlib import Path
from typing import Any

from agent_runner.models import AgentStep

# ---------------------------------------------------------------------------
# Plugin base classes
# ---------------------------------------------------------------------------


class Plugin:
    """A tool provider exposing exactly one function to the model."""

    name: str = ""
    description: str = ""
    parameters: dict = {"type": "object", "properties": {}}

    def __init__(self, config: dict | None = None, workspace_id: str = "") -> None:
        self.config = config or {}
        self.workspace_id = workspace_id

    def get_name(self) -> str:
        return self.name

    def is_enabled(self) -> bool:
        return bool(self.config.get("enabled", True))

    def get_tools(self) -> list[dict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": self.get_name(),
                    "description": self.description,
                    "parameters": self.parameters,
                },
            }
        ]

    def get_enabled_tools(self) -> list[dict]:
        return self.get_tools()

    def handles_tool(self, tool_name: str) -> bool:
        return tool_name == self.get_name()

    def execute(self, tool_name: str, params: dict) -> Any:
        raise NotImplementedError


class MultiToolPlugin(Plugin):
    """
    A tool provider exposing several independently enableable tools.

    Until enable_tool() is called every tool is enabled.
    """

    def __init__(self, config: dict | None = None, workspace_id: str = "") -> None:
        super().__init__(config, workspace_id)
        self._enabled: set[str] | None = None

    def enable_tool(self, tool_name: str) -> None:
        if self._enabled is None:
            self._enabled = set()
        self._enabled.add(tool_name)

    def enabled_tool_names(self) -> list[str]:
        return [tool["function"]["name"] for tool in self.get_enabled_tools()]

    def get_enabled_tools(self) -> list[dict]:
        tools = self.get_tools()
        if self._enabled is None:
            return tools
        return [tool for tool in tools if tool["function"]["name"] in self._enabled]

    def handles_tool(self, tool_name: str) -> bool:
        return tool_name in self.enabled_tool_names()


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------


class SearchPlugin(Plugin):
    name = "search"
    description = "Search the web and return the top results with their source URL."
    parameters = {
        "type": "object",
        "properties": {"query": {"type": "string", "description": "Search query."}},
        "required": ["query"],
    }

    def execute(self, tool_name: str, params: dict) -> str:
        from ddgs import DDGS

        query = params.get("query", "").strip()
        if not query:
            return "Error: no query provided."

        try:
            # Coerce the generator to a list to ensure actual execution
            results = list(DDGS().text(query, max_results=int(self.config.get("max_results", 4))))
        except Exception as e:
            return f"Search failed: {e}"

        if not results:
            return "No results found."

        lines = []
        for r in results:
            lines.append(f"[{r.get('title', 'No Title')}]\n{r.get('body', '')}\nSource: {r.get('href', '')}")
        return "\n\n".join(lines)


class HttpPostPlugin(Plugin):
    name = "http_post"
    description = "POST a JSON payload to a URL."
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string"},
            "payload": {"type": "object"},
        },
        "required": ["url"],
    }

    def execute(self, tool_name: str, params: dict) -> str:
        import httpx

        url = params.get("url", "").strip()
        payload = params.get("payload", {})
        if not url:
            return "Error: no URL provided."
        response = httpx.post(url, json=payload, timeout=float(self.config.get("timeout", 10)))
        return f"POST {url} → {response.status_code} ({len(response.content)} bytes)"


class FilesystemPlugin(MultiToolPlugin):
    """Read, write and list files inside the workspace root."""

    name = "filesystem"

    def __init__(self, config: dict | None = None, workspace_id: str = "") -> None:
        super().__init__(config, workspace_id)
        self.root = Path(self.config.get("root", "workspace")).resolve()

    def get_tools(self) -> list[dict]:
        path = {"type": "string", "description": "Path relative to the workspace."}
        return [
            _function("fs_read", "Read a text file.", {"path": path}, ["path"]),
            _function("fs_write", "Write a text file.", {"path": path, "content": {"type": "string"}}, ["path", "content"]),
            _function("fs_list", "List a directory.", {"path": path}, []),
        ]

    def _resolve(self, relative: str) -> Path | None:
        target = (self.root / relative).resolve()
        if target != self.root and self.root not in target.parents:
            return None
        return target

    def execute(self, tool_name: str, params: dict) -> str:
        relative = params.get("path", "").strip()
        if tool_name != "fs_list" and not relative:
            return "Error: no path provided."
        target = self._resolve(relative or ".")
        if target is None:
            return f"SECURITY BLOCK: '{relative}' is outside the workspace."

        if tool_name == "fs_write":
            content = params.get("content", "")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            return f"Wrote {len(content)} bytes to {relative}."
        if tool_name == "fs_read":
            if not target.is_file():
                return f"Error: {relative} does not exist."
            return target.read_text(encoding="utf-8")
        if tool_name == "fs_list":
            if not target.is_dir():
                return f"Error: {relative or '.'} is not a directory."
            return "\n".join(sorted(p.name + ("/" if p.is_dir() else "") for p in target.iterdir()))
        return f"Error: unknown tool {tool_name}."


def _function(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


AVAILABLE_PLUGINS: dict[str, type[Plugin]] = {
    "search": SearchPlugin,
    "http_post": HttpPostPlugin,
    "filesystem": FilesystemPlugin,
}


# ---------------------------------------------------------------------------
# Tool resolution
# ---------------------------------------------------------------------------


def resolve_step_tools(
    llm,
    step: AgentStep,
    available_plugins: dict[str, type[Plugin]],
    plugins_config: dict[str, dict],
    workspace_id: str,
) -> list[Plugin]:
    """
    Attach the plugins a step is allowed to use to `llm`.

    step.tools None attaches every enabled plugin. Otherwise single-tool
    plugins are attached when their name is allow-listed, and multi-tool
    plugins are attached once with only the allow-listed tools enabled.
    """
    llm.clear_plugins()
    attached: list[Plugin] = []

    for plugin_name, plugin_class in available_plugins.items():
        plugin = plugin_class(plugins_config.get(plugin_name), workspace_id)

        if step.tools is None:
            if plugin.is_enabled():
                llm.add_plugin(plugin)
                attached.append(plugin)
            continue

        if not isinstance(plugin, MultiToolPlugin):
            if plugin.get_name() in step.tools:
                llm.add_plugin(plugin)
                attached.append(plugin)
            continue

        added = False
        for tool in plugin.get_tools():
            tool_name = tool["function"]["name"]
            if tool_name not in step.tools:
                continue
            if not added:
                llm.add_plugin(plugin)
                attached.append(plugin)
                added = True
            plugin.enable_tool(tool_name)

    return attached
