import asyncio
import logging
import os
import re
import shutil
from dataclasses import dataclass, field

from ..config import KNOWLEDGE_CLI, KNOWLEDGE_RESULT_LIMIT, KNOWLEDGE_TIMEOUT_SECS

logger = logging.getLogger(__name__)

ENTRY_HEADER_RE = re.compile(r"^📝 #(\d+) (.+)$")
TAGS_RE = re.compile(r"^\s*🏷️\s*(.+)$")
PRIORITY_RE = re.compile(r"^\s*📊 Priority: (\w+) \| Status: (\w+)")
DATE_RE = re.compile(r"^\s*📅")
FOUND_RE = re.compile(r"^🔍 Found \d+ results?$")


@dataclass
class KnowledgeEntry:
    id: int
    title: str
    content: str = ""
    tags: list[str] = field(default_factory=list)
    priority: str = "medium"
    status: str = "open"


@dataclass
class KnowledgeResult:
    success: bool
    entries: list[KnowledgeEntry] = field(default_factory=list)
    error: str | None = None

    @property
    def has_results(self) -> bool:
        return self.success and len(self.entries) > 0

    @property
    def count(self) -> int:
        return len(self.entries)

    def to_context_string(self) -> str:
        """Format results as context for the model."""
        if not self.success:
            return f"Knowledge search failed: {self.error}"
        if not self.has_results:
            return "No relevant knowledge found."

        lines = [f"Found {self.count} relevant knowledge entries:\n"]
        for num, entry in enumerate(self.entries, start=1):
            lines.append("---")
            lines.append(f"### {num}. {entry.title}")
            if entry.tags:
                lines.append("Tags: " + ", ".join(entry.tags))
            lines.append("")
            lines.append(entry.content)
            lines.append("")
        return "\n".join(lines)


def parse_search_output(output: str) -> KnowledgeResult:
    entries: list[KnowledgeEntry] = []
    current: KnowledgeEntry | None = None
    content_lines: list[str] = []

    for line in output.split("\n"):
        header = ENTRY_HEADER_RE.match(line)
        if header:
            if current is not None:
                current.content = "\n".join(content_lines).strip()
                entries.append(current)
            current = KnowledgeEntry(id=int(header.group(1)), title=header.group(2))
            content_lines = []
            continue

        tags = TAGS_RE.match(line)
        if tags:
            if current is not None:
                current.tags = [t.strip() for t in tags.group(1).split(",")]
            continue

        priority = PRIORITY_RE.match(line)
        if priority:
            if current is not None:
                current.priority = priority.group(1)
                current.status = priority.group(2)
            continue

        if DATE_RE.match(line) or FOUND_RE.match(line):
            continue

        if current is not None and line.strip():
            content_lines.append(line)

    if current is not None:
        current.content = "\n".join(content_lines).strip()
        entries.append(current)

    return KnowledgeResult(success=True, entries=entries)


class KnowledgeService:
    """Searches the personal knowledge base through its command-line client."""

    def __init__(self, cli: str = KNOWLEDGE_CLI, timeout: float = KNOWLEDGE_TIMEOUT_SECS) -> None:
        self._cli = cli
        self._timeout = timeout

    def _resolve_cli(self) -> str | None:
        if os.path.isabs(self._cli):
            return self._cli if os.access(self._cli, os.X_OK) else None
        return shutil.which(self._cli)

    async def is_available(self) -> bool:
        return self._resolve_cli() is not None

    def build_search_command(
        self,
        query: str,
        tags: list[str] | None = None,
        collection: str | None = None,
        semantic: bool = False,
        limit: int = KNOWLEDGE_RESULT_LIMIT,
    ) -> list[str]:
        cmd = [self._resolve_cli() or self._cli, "knowledge:search", query, f"--limit={limit}"]
        if semantic:
            cmd.append("--semantic")
        if tags:
            cmd.append("--tags=" + ",".join(tags))
        if collection:
            cmd.append(f"--collection={collection}")
        cmd.append("--no-interaction")
        return cmd

    async def search(
        self,
        query: str,
        tags: list[str] | None = None,
        collection: str | None = None,
        semantic: bool = False,
        limit: int = KNOWLEDGE_RESULT_LIMIT,
    ) -> KnowledgeResult:
        cmd = self.build_search_command(query, tags, collection, semantic, limit)
        logger.info("Knowledge search: %s", query[:200])

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            return KnowledgeResult(success=False, error="Knowledge search timed out")

        if proc.returncode != 0:
            error = stderr.decode(errors="replace").strip()
            return KnowledgeResult(success=False, error=error or "Failed to search knowledge base")

        return parse_search_output(stdout.decode(errors="replace"))
