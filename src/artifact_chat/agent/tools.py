"""Tools the completion engine may call during a turn.

Every tool exposes a JSON-schema ``parameters`` dict and a uniform
``run(args) -> str`` entrypoint. Bad input is reported by returning a string
that starts with ``Error:``; only unexpected failures (I/O, subprocess) raise.
"""

import logging
import re
import uuid

from ..services.artifacts import ArtifactType
from ..services.knowledge import KnowledgeService
from ..services.scaffold import ScaffoldRunner
from ..services.web_search import WebSearchService

logger = logging.getLogger(__name__)

ARTIFACT_MARKER = "[artifact:{id}]"
KNOWLEDGE_MARKER = "[knowledge:{count} results]"

MIN_PURPOSE_LENGTH = 10
MIN_KNOWLEDGE_QUERY_LENGTH = 2
MIN_WEB_QUERY_LENGTH = 3


class Tool:
    name: str = ""
    description: str = ""
    parameters: dict = {"type": "object", "properties": {}, "required": []}
    # Schema property names that differ from execute() keyword names
    arg_aliases: dict[str, str] = {}

    @property
    def summary(self) -> str:
        """First sentence of the description, used in the system prompt."""
        return self.description.split(". ")[0].rstrip(".")

    async def run(self, args: dict) -> str:
        for required in self.parameters.get("required", []):
            if args.get(required) is None:
                return f"Error: Missing required parameter '{required}'."
        kwargs = {
            self.arg_aliases.get(key, key): value
            for key, value in args.items()
            if key in self.parameters["properties"] and value is not None
        }
        return await self.execute(**kwargs)

    async def execute(self, **kwargs) -> str:
        raise NotImplementedError


class ArtifactCreationTool(Tool):
    name = "create_artifact"
    description = (
        "Create an interactive component, diagram, or document. Use this when the user asks "
        "for visual content like dashboards, charts, diagrams, or interactive UI components."
    )
    parameters = {
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "description": 'A short, descriptive name for the artifact (e.g., "Sales Dashboard", "User Flow Diagram")',
            },
            "purpose": {
                "type": "string",
                "description": "What the artifact should do or display. Be specific about functionality and data.",
            },
            "type": {
                "type": "string",
                "description": "The type of artifact to create",
                "enum": ["react", "vue", "html", "svg", "mermaid", "markdown"],
            },
            "requirements": {
                "type": "string",
                "description": "Detailed requirements including: layout, colors, data to display, interactivity, and any specific features",
            },
        },
        "required": ["name", "purpose", "type"],
    }
    arg_aliases = {"type": "type_"}

    def __init__(self, store, generator, message_id: str | None = None) -> None:
        self._store = store
        self._generator = generator
        self._message_id = message_id

    def set_message_id(self, message_id: str) -> "ArtifactCreationTool":
        self._message_id = message_id
        return self

    async def execute(
        self, name: str, purpose: str, type_: str, requirements: str | None = None
    ) -> str:
        if len(purpose.strip()) < MIN_PURPOSE_LENGTH:
            return (
                "Error: Purpose is too vague. Please provide more detail about what "
                "the artifact should do."
            )
        if self._message_id is None:
            return "Error: Message context not set. Cannot create artifact."

        artifact_type = ArtifactType.from_request(type_)
        try:
            content = await self._generator.generate(
                artifact_type=artifact_type,
                name=name,
                purpose=purpose,
                requirements=requirements,
            )
        except Exception:
            logger.exception("Artifact generation failed for %r", name)
            return "Error: Artifact generation failed. Please try again."

        artifact = await self._store.create_artifact(
            message_id=self._message_id,
            identifier=str(uuid.uuid4()),
            type=artifact_type.value,
            title=name,
            language=artifact_type.language,
            content=content,
            version=1,
        )
        logger.info("Created %s artifact %s (%s)", artifact_type.value, artifact["id"], name)
        marker = ARTIFACT_MARKER.format(id=artifact["id"])
        return f"Artifact created successfully: {marker} - {name}"


class KnowledgeSearchTool(Tool):
    name = "search_knowledge"
    description = (
        "Search the personal knowledge base of notes, insights, and project info. "
        "Call this ONCE, then respond to the user with the results. "
        "Do NOT call this tool multiple times."
    )
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The search query - what information to look for",
            },
            "tags": {
                "type": "string",
                "description": "Optional comma-separated tags to filter by",
            },
            "collection": {
                "type": "string",
                "description": "Optional collection to restrict the search to",
            },
            "search_type": {
                "type": "string",
                "description": "keyword (default) or semantic",
                "enum": ["keyword", "semantic"],
            },
        },
        "required": ["query"],
    }

    def __init__(self, knowledge: KnowledgeService) -> None:
        self._knowledge = knowledge

    async def execute(
        self,
        query: str,
        tags: str | list[str] | None = None,
        collection: str | None = None,
        search_type: str = "keyword",
    ) -> str:
        if len(query.strip()) < MIN_KNOWLEDGE_QUERY_LENGTH:
            return "Error: Search query is too short. Please provide a more specific query."

        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",") if t.strip()]

        try:
            if not await self._knowledge.is_available():
                return "Error: Knowledge CLI is not available. Knowledge search is disabled."

            result = await self._knowledge.search(
                query=query,
                tags=tags or None,
                collection=collection or None,
                semantic=search_type == "semantic",
            )
        except Exception as e:
            logger.exception("Knowledge search raised for %r", query)
            return f"Error searching knowledge base: {e}"

        if not result.success:
            logger.warning("Knowledge search failed: %s", result.error)
            return f"Knowledge search failed: {result.error}"

        if not result.has_results:
            return f"No knowledge entries found matching '{query}'."

        marker = KNOWLEDGE_MARKER.format(count=result.count)
        return (
            f"{marker} SEARCH COMPLETE - Found {result.count} results. "
            f"Use this information to answer the user's question:\n\n{result.to_context_string()}"
        )


RELATIONSHIP_TYPES = ("belongsTo", "hasOne", "hasMany", "belongsToMany", "morphTo", "morphMany")
TO_MANY_RELATIONSHIPS = ("hasMany", "belongsToMany", "morphMany")
MODEL_NAME_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")

SCAFFOLD_FLAGS = {
    "migration": ["--migration"],
    "factory": ["--factory"],
    "seeder": ["--seed"],
    "all": ["--migration", "--factory", "--seed"],
}

CASTS = {
    "boolean": "'boolean'",
    "integer": "'integer'",
    "float": "'float'",
    "decimal": "'decimal:2'",
    "date": "'date'",
    "datetime": "'datetime'",
    "timestamp": "'datetime'",
    "json": "'array'",
}

SCHEMA_METHODS = {
    "int": "integer",
    "integer": "integer",
    "bigint": "bigInteger",
    "float": "float",
    "decimal": "decimal",
    "bool": "boolean",
    "boolean": "boolean",
    "date": "date",
    "datetime": "dateTime",
    "timestamp": "timestamp",
    "time": "time",
    "text": "text",
    "longtext": "longText",
    "json": "json",
    "uuid": "uuid",
}


def pluralize(word: str) -> str:
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    return word + "s"


def parse_fields(fields: str) -> list[dict] | str:
    """Parse ``name:type[:nullable]`` definitions; return an error string on bad input."""
    parsed = []
    for field in (f.strip() for f in fields.split(",")):
        if not field:
            continue
        parts = field.split(":")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            return f"Error: Invalid field format '{field}'. Use 'name:type' format."
        parsed.append({"name": parts[0], "type": parts[1], "nullable": "nullable" in parts[2:]})
    return parsed


def parse_relationships(relationships: str) -> list[dict] | str:
    """Parse ``type:Model`` definitions; return an error string on bad input."""
    parsed = []
    for relation in (r.strip() for r in relationships.split(",")):
        if not relation:
            continue
        parts = relation.split(":")
        if len(parts) != 2:
            return f"Error: Invalid relationship format '{relation}'. Use 'type:Model' format."
        if parts[0] not in RELATIONSHIP_TYPES:
            return (
                f"Error: Unknown relationship type '{parts[0]}'. "
                f"Valid types: {', '.join(RELATIONSHIP_TYPES)}"
            )
        parsed.append({"type": parts[0], "model": parts[1]})
    return parsed


def _array_items(items: list[str], indent: str) -> str:
    return "".join(f"{indent}{item},\n" for item in items)


def generate_model_code(name: str, fields: list[dict], relationships: list[dict]) -> str:
    fillable = [f"'{f['name']}'" for f in fields]
    casts = [f"'{f['name']}' => {CASTS[f['type']]}" for f in fields if f["type"] in CASTS]

    code = (
        "<?php\n\n"
        "namespace App\\Models;\n\n"
        "use Illuminate\\Database\\Eloquent\\Factories\\HasFactory;\n"
        "use Illuminate\\Database\\Eloquent\\Model;\n\n"
        f"class {name} extends Model\n"
        "{\n"
        "    use HasFactory;\n\n"
        "    protected $fillable = [\n"
        f"{_array_items(fillable, ' ' * 8)}"
        "    ];\n"
    )

    if casts:
        code += (
            "\n    protected function casts(): array\n"
            "    {\n"
            "        return [\n"
            f"{_array_items(casts, ' ' * 12)}"
            "        ];\n"
            "    }\n"
        )

    for rel in relationships:
        method = rel["model"][:1].lower() + rel["model"][1:]
        if rel["type"] in TO_MANY_RELATIONSHIPS:
            method = pluralize(method)
        code += (
            f"\n    public function {method}()\n"
            "    {\n"
            f"        return $this->{rel['type']}({rel['model']}::class);\n"
            "    }\n"
        )

    return code + "}\n"


def generate_migration_fields(fields: list[dict]) -> str:
    lines = []
    for field in fields:
        method = SCHEMA_METHODS.get(field["type"], "string")
        line = f"$table->{method}('{field['name']}')"
        if field["nullable"]:
            line += "->nullable()"
        lines.append(line + ";")
    return "\n".join(lines)


class ScaffoldGenerationTool(Tool):
    name = "generate_laravel_model"
    description = (
        "Generate a Laravel Eloquent model with optional migration, factory, and seeder. "
        "Use this when the user asks to create a new model or database table."
    )
    parameters = {
        "type": "object",
        "properties": {
            "name": {
                "type": "string",
                "description": 'The model name in PascalCase (e.g., "BlogPost", "UserProfile")',
            },
            "fields": {
                "type": "string",
                "description": 'Comma-separated field definitions in format "name:type" (e.g., "title:string,body:text,published_at:timestamp:nullable")',
            },
            "with": {
                "type": "string",
                "description": "Additional files to generate",
                "enum": ["migration", "factory", "seeder", "all", "none"],
            },
            "relationships": {
                "type": "string",
                "description": 'Comma-separated relationships (e.g., "belongsTo:User,hasMany:Comment")',
            },
        },
        "required": ["name", "fields", "with"],
    }
    arg_aliases = {"with": "with_"}

    def __init__(self, runner: ScaffoldRunner) -> None:
        self._runner = runner

    async def execute(
        self, name: str, fields: str, with_: str, relationships: str | None = None
    ) -> str:
        if not MODEL_NAME_RE.match(name):
            return 'Error: Model name must be in PascalCase (e.g., "BlogPost")'

        parsed_fields = parse_fields(fields)
        if isinstance(parsed_fields, str):
            return parsed_fields

        parsed_relationships: list[dict] = []
        if relationships:
            result = parse_relationships(relationships)
            if isinstance(result, str):
                return result
            parsed_relationships = result

        flags = SCAFFOLD_FLAGS.get(with_, [])
        ran = await self._runner.make_model(name, flags)

        if ran:
            output = [f"✓ Created model: app/Models/{name}.php"]
            if "--migration" in flags:
                output.append(f"✓ Created migration for {name}")
            if "--factory" in flags:
                output.append(f"✓ Created factory: database/factories/{name}Factory.php")
            if "--seed" in flags:
                output.append(f"✓ Created seeder: database/seeders/{name}Seeder.php")
        else:
            output = [
                f"No Laravel project is configured, so no files were written for {name}. "
                "Set SCAFFOLD_PROJECT_DIR to run make:model."
            ]

        output += [
            "",
            "Suggested model code:",
            "```php",
            generate_model_code(name, parsed_fields, parsed_relationships).rstrip("\n"),
            "```",
        ]
        if parsed_fields:
            output += [
                "",
                "Suggested migration fields:",
                "```php",
                generate_migration_fields(parsed_fields),
                "```",
            ]
        return "\n".join(output)


class WebSearchTool(Tool):
    name = "search_web"
    description = (
        "Search the internet for current information. Use this when the knowledge base has no "
        "results, or for real-time data like news, current events, or public projects."
    )
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The search query - what to search for on the web",
            },
        },
        "required": ["query"],
    }

    def __init__(self, web_search: WebSearchService) -> None:
        self._web_search = web_search

    @property
    def available(self) -> bool:
        return self._web_search.enabled

    async def execute(self, query: str) -> str:
        if not self._web_search.enabled:
            return "Error: Web search is not configured. Please set TAVILY_API_KEY."
        if len(query.strip()) < MIN_WEB_QUERY_LENGTH:
            return "Error: Search query is too short. Please provide a more specific query."

        result = await self._web_search.search(query)
        if not result["success"]:
            logger.warning("Web search failed: %s", result["error"])
            return f"Web search failed: {result['error']}"
        if not result["results"]:
            return f"No web results found for '{query}'."

        output = "WEB SEARCH RESULTS:\n\n"
        if result.get("answer"):
            output += f"Summary: {result['answer']}\n\nSources:\n"
        for num, item in enumerate(result["results"], start=1):
            output += f"[{num}] {item['title']}\n    URL: {item['url']}\n    {item['content']}\n\n"
        logger.info("Web search returned %d results", len(result["results"]))
        return output
