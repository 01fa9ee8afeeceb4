"""HTML landing page served on GET /."""

from html import escape

from tools import TOOLS

CATEGORY_COLORS = {
    "Repositories": "#58a6ff",
    "Issues": "#3fb950",
    "Pull Requests": "#a371f7",
    "Actions": "#d29922",
    "General": "#8b949e",
}


def tool_category(tool_name: str) -> str:
    if "repo" in tool_name:
        return "Repositories"
    if "issue" in tool_name or "comment" in tool_name:
        return "Issues"
    if "pull" in tool_name or "pr_" in tool_name:
        return "Pull Requests"
    if "workflow" in tool_name or "rerun" in tool_name:
        return "Actions"
    return "General"


def _param_type(prop: dict) -> str:
    if prop.get("enum"):
        return " | ".join(f'"{v}"' for v in prop["enum"])
    if prop.get("type") == "array":
        return "string[]"
    return prop.get("type", "any")


LANDING_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>GitHub MCP Server</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
               background: #0d1117; color: #c9d1d9; margin: 0; padding: 40px 20px; }}
        .container {{ max-width: 960px; margin: 0 auto; }}
        h1 {{ color: #f0f6fc; margin: 0 0 8px; }}
        .subtitle {{ color: #8b949e; margin: 0 0 32px; }}
        .endpoint {{ background: #161b22; border: 1px solid #30363d; border-radius: 8px;
                    padding: 16px; margin-bottom: 32px; }}
        code {{ color: #79c0ff; }}
        .tools {{ display: grid; grid-template-columns: repeat(auto-fill, minmax(280px, 1fr)); gap: 16px; }}
        .tool-card {{ background: #161b22; border: 1px solid #30363d; border-radius: 8px; padding: 16px; }}
        .tool-header {{ display: flex; justify-content: space-between; align-items: center; gap: 8px; }}
        .tool-name {{ font-family: monospace; font-weight: 600; color: #f0f6fc; }}
        .category-badge {{ font-size: 12px; padding: 2px 8px; border-radius: 12px; border: 1px solid; }}
        .tool-description {{ color: #8b949e; font-size: 14px; }}
        .param {{ font-size: 13px; margin-top: 4px; }}
        .param-name {{ font-family: monospace; color: #ffa657; }}
        .param-type {{ font-family: monospace; color: #79c0ff; margin-left: 6px; }}
        .param-desc {{ color: #8b949e; margin-left: 6px; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>GitHub MCP Server</h1>
        <p class="subtitle">{tool_count} GitHub tools for your AI assistant, behind OAuth 2.1.</p>
        <div class="endpoint">MCP endpoint: <code id="server-url">{mcp_url}</code></div>
        <div class="tools">{tool_cards}</div>
    </div>
</body>
</html>
"""

TOOL_CARD = """
        <div class="tool-card">
            <div class="tool-header">
                <span class="tool-name">{name}</span>
                <span class="category-badge" style="background: {color}20; color: {color}; border-color: {color}40">{category}</span>
            </div>
            <p class="tool-description">{description}</p>
            {params}
        </div>"""

PARAM = """<div class="param"><span class="param-name">{name}{optional}</span><span class="param-type">{type}</span>{description}</div>"""


def render_landing_page(base_url: str, tools: dict = None) -> str:
    tools = TOOLS if tools is None else tools
    cards = []
    for tool in tools.values():
        category = tool_category(tool.name)
        params = "".join(
            PARAM.format(
                name=escape(name),
                optional="" if name in tool.required else "?",
                type=escape(_param_type(prop)),
                description=(
                    f'<span class="param-desc">{escape(prop["description"])}</span>'
                    if prop.get("description") else ""
                ),
            )
            for name, prop in tool.input_schema.get("properties", {}).items()
        )
        cards.append(TOOL_CARD.format(
            name=escape(tool.name),
            color=CATEGORY_COLORS[category],
            category=category,
            description=escape(tool.description),
            params=f'<div class="params">{params}</div>' if params else "",
        ))

    return LANDING_PAGE.format(
        tool_count=len(tools),
        mcp_url=escape(f"{base_url}/mcp"),
        tool_cards="".join(cards),
    )
