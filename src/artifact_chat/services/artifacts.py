import re
from enum import StrEnum

from ..config import ARTIFACT_MODEL, DIAGRAM_MODEL


class ArtifactType(StrEnum):
    CODE = "code"
    MARKDOWN = "markdown"
    HTML = "html"
    SVG = "svg"
    MERMAID = "mermaid"
    REACT = "react"
    VUE = "vue"

    @classmethod
    def from_request(cls, value: str) -> "ArtifactType":
        """Map a tool argument to an artifact type; unknown values become HTML."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.HTML

    @property
    def language(self) -> str | None:
        return _LANGUAGES.get(self)


_LANGUAGES = {
    ArtifactType.REACT: "jsx",
    ArtifactType.VUE: "vue",
    ArtifactType.HTML: "html",
    ArtifactType.MARKDOWN: "markdown",
}

BASE_SYSTEM_PROMPT = (
    "You are an expert code generator. Generate clean, working code. "
    "Output ONLY the code, no explanations."
)

SYSTEM_PROMPTS = {
    ArtifactType.REACT: """\
You are an expert React developer. Generate a complete, self-contained React component.
- Use functional components with hooks (useState, useEffect, etc.)
- DO NOT import external libraries - React, useState, useEffect are available globally
- Use inline styles or Tailwind CSS classes for styling
- Make it interactive and visually appealing
- The component must be COMPLETELY SELF-CONTAINED with NO external dependencies
- The component should be named "App" and be the default export
- Output ONLY the JSX code, no markdown, no explanations""",
    ArtifactType.VUE: """\
You are an expert Vue.js developer. Generate a complete Vue 3 component.
- Use Composition API with setup()
- Use inline styles or Tailwind CSS classes for styling
- Make it interactive and visually appealing
- The component must be COMPLETELY SELF-CONTAINED with NO external dependencies
- The component should be named "App"
- Output ONLY the JavaScript code (not SFC format), no markdown, no explanations
- Vue's createApp, ref, computed, reactive, onMounted are available globally""",
    ArtifactType.HTML: """\
You are an expert web developer. Generate a complete HTML document.
- Include all CSS inline in a <style> tag
- Include all JavaScript inline in a <script> tag
- DO NOT use external CDN links or libraries
- The page must be COMPLETELY SELF-CONTAINED with NO external dependencies
- Make it interactive and visually appealing
- Output ONLY the HTML code, no markdown, no explanations""",
    ArtifactType.SVG: """\
You are an expert SVG artist. Generate a complete SVG graphic.
- Use proper viewBox for scaling
- Make it visually appealing with appropriate colors
- Output ONLY the SVG code, no markdown, no explanations""",
    ArtifactType.MERMAID: """\
You are an expert at creating Mermaid diagrams. Generate a Mermaid diagram.
- Use appropriate diagram type (flowchart, sequence, class, etc.)
- Keep it clear and readable
- Output ONLY the Mermaid code, no markdown fence, no explanations""",
}

FENCE_PATTERNS = [
    re.compile(r"```(?:jsx?|tsx?|react|javascript|typescript)\s*\n(.*?)```", re.DOTALL),
    re.compile(r"```(?:vue|html|svg|mermaid)\s*\n(.*?)```", re.DOTALL),
    re.compile(r"```\w*\s*\n(.*?)```", re.DOTALL),
]
IMPORT_LINE_RE = re.compile(r"^\s*import\s+.*?['\"].*?['\"];?\s*$", re.MULTILINE)
IMPORT_BLOCK_RE = re.compile(r"^\s*import\s+\{[^}]*\}\s+from\s+['\"].*?['\"];?\s*$", re.MULTILINE)


def build_prompt(name: str, purpose: str, requirements: str | None = None) -> str:
    prompt = f"Create: {name}\n\nPurpose: {purpose}"
    if requirements:
        prompt += f"\n\nRequirements:\n{requirements}"
    return prompt


def model_for_type(artifact_type: ArtifactType) -> str:
    if artifact_type is ArtifactType.MERMAID:
        return DIAGRAM_MODEL
    return ARTIFACT_MODEL


def extract_code(response: str, artifact_type: ArtifactType) -> str:
    """Strip markdown fences (and, for react/vue, import statements) from generated code."""
    code = response.strip()

    for pattern in FENCE_PATTERNS:
        match = pattern.search(code)
        if match:
            code = match.group(1).strip()
            break

    # Unterminated or leftover fence markers
    code = re.sub(r"^```\w*\s*", "", code)
    code = re.sub(r"\s*```$", "", code)

    # The rendering sandbox provides React/Vue as globals
    if artifact_type in (ArtifactType.REACT, ArtifactType.VUE):
        code = IMPORT_LINE_RE.sub("", code)
        code = IMPORT_BLOCK_RE.sub("", code)

    code = re.sub(r"\n{3,}", "\n\n", code)
    return code.strip()


class ArtifactGenerator:
    """Produces artifact source through a one-shot text generation call."""

    def __init__(self, text_generator) -> None:
        self._generator = text_generator

    async def generate(
        self,
        artifact_type: ArtifactType,
        name: str,
        purpose: str,
        requirements: str | None = None,
    ) -> str:
        response = await self._generator.generate(
            system_prompt=SYSTEM_PROMPTS.get(artifact_type, BASE_SYSTEM_PROMPT),
            prompt=build_prompt(name, purpose, requirements),
            model=model_for_type(artifact_type),
        )
        return extract_code(response, artifact_type)
