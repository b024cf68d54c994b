BASE_PROMPT = "You are a helpful AI assistant. Answer questions directly and conversationally."

TOOL_RULES_TEMPLATE = """\


IMPORTANT - TOOL USAGE RULES:
- You have access to these specialized tools:
{tool_lines}
- ONLY use tools that are listed above. Do not invent tools or call tools that don't exist.
- If no tool is appropriate, just respond with text.
- NEVER generate URLs or links. The UI will display results automatically.

SEARCH STRATEGY:
1. Use search_knowledge for personal projects, frameworks, insights, or topics that might be in notes
2. Answer from your own knowledge for general questions; do not search for things you already know
3. Examples for search_knowledge: "What is Conduit?", "What are my notes on X?"
{web_search_rule}
CRITICAL - AFTER USING A TOOL:
- After you receive tool results, you MUST respond with a text message to the user.
- Do NOT call the same tool again after receiving results.
- Do NOT chain multiple tool calls. One tool call per response is sufficient.
- Summarize and present the tool results in your text response.
"""

WEB_SEARCH_RULE = (
    "4. If search_knowledge returns no results AND the question is about external/public "
    "information, try search_web\n"
)


def build_system_prompt(tools: list) -> str:
    """Base instructions, plus tool rules only when tools are offered."""
    if not tools:
        return BASE_PROMPT
    tool_lines = "\n".join(f"  * {t.name} - {t.summary}" for t in tools)
    has_web = any(t.name == "search_web" for t in tools)
    return BASE_PROMPT + TOOL_RULES_TEMPLATE.format(
        tool_lines=tool_lines,
        web_search_rule=WEB_SEARCH_RULE if has_web else "",
    )
