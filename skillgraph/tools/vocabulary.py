"""Canonical tag vocabulary and the lookup tables used to reach it.

Every tag the graph builder and the workflow assembler see comes from
``TAG_VOCAB``. The per-field allow-lists narrow that vocabulary down to what
makes sense as an input, an artifact or a capability.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Tuple

from skillgraph.engine.types import TagField

TAG_VOCAB_VERSION = "vocab-v2"

# Concrete deliverable kinds. Dependency inference only trusts these.
INTERFACE_ARTIFACT_TAGS: Tuple[str, ...] = (
    "plan",
    "spec",
    "schema",
    "code",
    "patch",
    "tests",
    "docs",
    "config",
    "report",
    "pr",
    "deploy",
    "readme",
    "changelog",
)

TAG_VOCAB: Tuple[str, ...] = INTERFACE_ARTIFACT_TAGS + (
    # process
    "requirements",
    "planning",
    "workflow",
    "tasks",
    "automation",
    # integration surface
    "integration",
    "api",
    "rest",
    "graphql",
    "webhook",
    # security & governance
    "auth",
    "oauth",
    "security",
    "privacy",
    "compliance",
    "risk",
    "audit",
    # engineering practice
    "debugging",
    "refactor",
    "performance",
    "monitoring",
    "observability",
    "logging",
    "ci-cd",
    "docker",
    "kubernetes",
    "serverless",
    # languages & frameworks
    "nodejs",
    "typescript",
    "javascript",
    "python",
    "go",
    "rust",
    "java",
    "react",
    "nextjs",
    "frontend",
    "backend",
    # data
    "database",
    "sql",
    "nosql",
    "vector-db",
    "rag",
    # ai
    "llm",
    "prompting",
    "agents",
    "mcp",
    # tooling & writing
    "tooling",
    "cli",
    "scripts",
    "guides",
    "templates",
    "examples",
    "architecture",
    "diagram",
    "mermaid",
    # product
    "ui",
    "ux",
    "design",
    "accessibility",
    "seo",
    "analytics",
    "dashboard",
    "reporting",
    # formats
    "documents",
    "export",
    "csv",
    "json",
    "yaml",
    "markdown",
    "pdf",
    "docx",
    "pptx",
    "image",
    "video",
    "audio",
    "notebook",
    # services
    "notion",
    "slack",
    "discord",
    "telegram",
    "github",
    "jira",
    # data handling
    "file-ops",
    "data-extraction",
    "data-transform",
    "validation",
    "quality",
)

VOCAB_SET: FrozenSet[str] = frozenset(TAG_VOCAB)
INTERFACE_TAG_SET: FrozenSet[str] = frozenset(INTERFACE_ARTIFACT_TAGS)


# =============================================================================
# Field Allow-Lists
# =============================================================================

# Tags that describe an activity rather than something that can be handed over.
_ACTIVITY_TAGS = frozenset(
    {
        "planning",
        "automation",
        "debugging",
        "refactor",
        "performance",
        "monitoring",
        "observability",
        "prompting",
        "accessibility",
        "seo",
        "analytics",
        "validation",
        "quality",
        "data-extraction",
        "data-transform",
        "file-ops",
        "audit",
        "compliance",
        "privacy",
    }
)

# Deliverables that a skill hands over but does not "know how to do".
_DELIVERABLE_ONLY_TAGS = frozenset(
    {
        "patch",
        "pr",
        "readme",
        "changelog",
        "spec",
        "report",
        "documents",
    }
)

ARTIFACT_TAGS: FrozenSet[str] = INTERFACE_TAG_SET | frozenset(
    {
        "scripts",
        "templates",
        "examples",
        "diagram",
        "mermaid",
        "ui",
        "export",
        "csv",
        "json",
        "yaml",
        "markdown",
        "pdf",
        "docx",
        "pptx",
        "image",
        "video",
        "audio",
        "notebook",
    }
)

INPUT_TAGS: FrozenSet[str] = VOCAB_SET - _ACTIVITY_TAGS

CAPABILITY_TAGS: FrozenSet[str] = VOCAB_SET - _DELIVERABLE_ONLY_TAGS

FIELD_ALLOW_LISTS: Dict[TagField, FrozenSet[str]] = {
    TagField.INPUTS: INPUT_TAGS,
    TagField.ARTIFACTS: ARTIFACT_TAGS,
    TagField.CAPABILITIES: CAPABILITY_TAGS,
}

# Applied to mapped artifact tags that fall outside the artifacts allow-list.
ARTIFACT_AUTOCORRECT: Dict[str, str] = {
    "workflow": "plan",
    "planning": "plan",
    "tasks": "plan",
    "requirements": "spec",
    "architecture": "spec",
    "api": "spec",
    "database": "schema",
    "sql": "schema",
    "nosql": "schema",
    "cli": "scripts",
    "automation": "scripts",
    "tooling": "scripts",
    "reporting": "report",
    "dashboard": "report",
    "analytics": "report",
    "audit": "report",
    "documents": "docs",
    "guides": "docs",
    "refactor": "patch",
    "debugging": "patch",
    "github": "pr",
    "ci-cd": "config",
    "docker": "config",
    "kubernetes": "config",
    "serverless": "deploy",
}


# =============================================================================
# Lookup Tables
# =============================================================================

# Short forms with a single unambiguous expansion.
ALIASES: Dict[str, str] = {
    "js": "javascript",
    "ts": "typescript",
    "node": "nodejs",
    "node js": "nodejs",
    "py": "python",
    "golang": "go",
    "k8s": "kubernetes",
    "gh": "github",
    "md": "markdown",
    "yml": "yaml",
    "a11y": "accessibility",
    "next": "nextjs",
    "next js": "nextjs",
    "cfg": "config",
    "conf": "config",
}

SYNONYM_TO_TAG: Dict[str, str] = {
    # process
    "requirement": "requirements",
    "prd": "requirements",
    "specs": "spec",
    "specification": "spec",
    "specifications": "spec",
    "roadmap": "planning",
    "plans": "plan",
    "orchestration": "workflow",
    "pipeline": "workflow",
    "pipelines": "workflow",
    "todo": "tasks",
    "todos": "tasks",
    "task": "tasks",
    "automations": "automation",
    # deliverables
    "diff": "patch",
    "diffs": "patch",
    "patches": "patch",
    "fix": "patch",
    "source": "code",
    "sourcecode": "code",
    "implementation": "code",
    "snippet": "code",
    "snippets": "code",
    "configuration": "config",
    "configs": "config",
    "settings": "config",
    "schemas": "schema",
    "migration": "schema",
    "migrations": "schema",
    "reports": "report",
    "pullrequest": "pr",
    "pullrequests": "pr",
    "prs": "pr",
    "mergerequest": "pr",
    "documentation": "docs",
    "doc": "docs",
    "releasenotes": "changelog",
    # integration
    "integrations": "integration",
    "connector": "integration",
    "connectors": "integration",
    "endpoint": "api",
    "endpoints": "api",
    "http": "rest",
    "restapi": "rest",
    "hook": "webhook",
    "webhooks": "webhook",
    # security
    "authentication": "auth",
    "authorization": "auth",
    "login": "auth",
    "oauth2": "oauth",
    "sec": "security",
    "gdpr": "compliance",
    "hipaa": "compliance",
    "iso27001": "compliance",
    # engineering
    "test": "tests",
    "testing": "tests",
    "qa": "tests",
    "jest": "tests",
    "vitest": "tests",
    "pytest": "tests",
    "playwright": "tests",
    "cypress": "tests",
    "debug": "debugging",
    "refactoring": "refactor",
    "profiling": "performance",
    "metrics": "monitoring",
    "tracing": "observability",
    "logs": "logging",
    "cicd": "ci-cd",
    "ci": "ci-cd",
    "cd": "ci-cd",
    "deployment": "deploy",
    "deployments": "deploy",
    "vercel": "deploy",
    "netlify": "deploy",
    "container": "docker",
    "containers": "docker",
    "lambda": "serverless",
    "cloudfunctions": "serverless",
    # data
    "postgres": "sql",
    "mysql": "sql",
    "sqlite": "sql",
    "mongo": "nosql",
    "mongodb": "nosql",
    "redis": "nosql",
    "vectordb": "vector-db",
    "embeddings": "rag",
    # ai
    "llms": "llm",
    "ai": "llm",
    "prompts": "prompting",
    "prompt": "prompting",
    "agent": "agents",
    "mcpserver": "mcp",
    "mcpservers": "mcp",
    "modelcontextprotocol": "mcp",
    # tooling
    "tools": "tooling",
    "command": "cli",
    "commands": "cli",
    "script": "scripts",
    "guide": "guides",
    "tutorial": "guides",
    "template": "templates",
    "sample": "examples",
    "samples": "examples",
    "example": "examples",
    "diagrams": "diagram",
    "flowchart": "diagram",
    # product
    "search": "seo",
    "chart": "dashboard",
    "charts": "dashboard",
    "document": "documents",
    # formats
    "exporting": "export",
    "exports": "export",
    "xlsx": "csv",
    "tsv": "csv",
    "word": "docx",
    "powerpoint": "pptx",
    "ppt": "pptx",
    "slides": "pptx",
    "images": "image",
    "screenshot": "image",
    "screenshots": "image",
    "videos": "video",
    "notebooklm": "notebook",
    # data handling
    "filesystem": "file-ops",
    "files": "file-ops",
    "extraction": "data-extraction",
    "parser": "data-extraction",
    "scraping": "data-extraction",
    "transform": "data-transform",
    "etl": "data-transform",
    "validate": "validation",
}

COMPOUND_SYNONYMS: List[Tuple[str, str]] = [
    ("requirements spec", "spec"),
    ("spec requirements", "spec"),
    ("mcp server", "mcp"),
    ("model context protocol", "mcp"),
    ("pull request", "pr"),
    ("merge request", "pr"),
    ("release notes", "changelog"),
    ("source code", "code"),
    ("database schema", "schema"),
    ("word document", "docx"),
    ("power point", "pptx"),
    ("powerpoint slides", "pptx"),
    ("slide deck", "pptx"),
    ("test jest", "tests"),
    ("unit test", "tests"),
    ("deployment vercel", "deploy"),
]


def field_vocabulary(field: TagField) -> List[str]:
    """Allowed tags for ``field`` in vocabulary order."""
    allowed = FIELD_ALLOW_LISTS[TagField(field)]
    return [tag for tag in TAG_VOCAB if tag in allowed]
