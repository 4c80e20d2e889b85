"""
Prompt construction for page generation.

Pure functions: ``(request, manifest) -> messages``. The schema summary is
derived from the manifest snapshot, so a hot-swapped manifest is reflected
in the very next prompt without any other change.

The prompt asks for JSON only, but nothing downstream relies on the model
obeying; the extractor and repair stages assume it will not.
"""

from __future__ import annotations

import json

from pagesmith.core.contracts.generation import GenerationRequest
from pagesmith.core.contracts.manifest import BlockTypeSpec, SchemaManifest

#: Target word counts per length bucket.
WORD_COUNTS: dict[str, str] = {
    "short": "600-1000",
    "medium": "1000-2000",
    "long": "2000+",
}

#: Number of example pages embedded in the prompt.
MAX_EXAMPLE_PAGES = 2

SITE_NAME = "ElPrisFinder"


def _describe_block(spec: BlockTypeSpec) -> str:
    status = "[MANDATORY]" if spec.mandatory else "[OPTIONAL]"
    required = sorted(spec.required_fields)
    lines = [
        f"- {spec.type} {status}: {spec.description}".rstrip(": "),
        f"  Required fields ({len(required)}): {', '.join(required) or 'none'}",
    ]
    if spec.field_types:
        types = ", ".join(f"{name}: {kind}" for name, kind in spec.field_types.items())
        lines.append(f"  Field types: {types}")
    if spec.field_enums:
        enums = ", ".join(
            f"{name} must be one of: {', '.join(values)}"
            for name, values in spec.field_enums.items()
        )
        lines.append(f"  Enum constraints: {enums}")
    if spec.omit_fields:
        lines.append(f"  Never include: {', '.join(sorted(spec.omit_fields))}")
    return "\n".join(lines)


def summarize_schema(manifest: SchemaManifest) -> str:
    """Render the manifest as a compact, model-readable summary.

    Examples
    --------
    >>> from pagesmith.manifest.loader import load_manifest
    >>> "DETAILED BLOCK SPECIFICATIONS" in summarize_schema(load_manifest())
    True
    """
    mandatory = manifest.mandatory_types
    rules = [
        f"- _type: must be one of the manifest block types ({', '.join(manifest.type_names)})",
        '- _key: unique identifier (format: "blocktype-timestamp-random")',
        "- Required fields: every field in requiredFields MUST be present and non-empty",
        "- Rich text fields: Portable Text arrays of {\"_type\": \"block\", \"children\": [...]}",
        f"- Block ordering: {' first, then '.join(mandatory)}, then optional blocks",
        "- String arrays: plain strings, never Portable Text blocks",
        "- Numbers: numeric values, never strings",
        "- Image fields: omit them unless you have a real asset id; never invent placeholders",
    ]
    for allow in manifest.allow_lists:
        others = [ref for ref in allow.allowed if ref != allow.preferred]
        rules.append(
            f"- {allow.block_type}.{allow.field}: array of reference objects only, at most "
            f'{allow.max_entries}. First _ref = "{allow.preferred}". Remaining refs from: '
            f"[{', '.join(others)}]"
        )
    for record in manifest.record_lists:
        rules.append(
            f"- {record.block_type}.{record.field}: inline {record.record_type} objects with "
            f'"{record.text_field}" (string) and "{record.rich_text_field}" (Portable Text); '
            "never references"
        )

    return "\n".join(
        [
            "SCHEMA MANIFEST SUMMARY:",
            f"Total content blocks: {len(manifest.block_types)}",
            f"Mandatory blocks: {len(mandatory)} ({', '.join(mandatory)})",
            f"Optional blocks: {len(manifest.optional_types)}",
            "",
            "DETAILED BLOCK SPECIFICATIONS:",
            *(_describe_block(spec) for spec in manifest.block_types),
            "",
            "STRICT COMPLIANCE RULES:",
            *rules,
        ]
    )


def _output_example(manifest: SchemaManifest) -> str:
    example = {
        "contentBlocks": [
            {"_type": block_type, "_key": f"{block_type}-1735551600-abc123", "...": "..."}
            for block_type in manifest.mandatory_types
        ]
    }
    return json.dumps(example, indent=2)


def build_system_prompt(request: GenerationRequest, manifest: SchemaManifest) -> str:
    """Assemble the system prompt for ``request``."""
    mandatory = manifest.mandatory_types
    requested = ", ".join(request.optional_blocks) or (
        f"None selected - use just {' and '.join(mandatory)}"
    )
    available = "\n".join(
        f"- {spec.type}: {spec.description}" for spec in manifest.block_types if not spec.mandatory
    )
    selected = [f"- {t} (mandatory)" for t in mandatory] + [
        f"- {t} (requested)" for t in request.optional_blocks
    ]

    sections = [
        "=== ROLE ===",
        f"You are an expert SEO page designer and content architect for {SITE_NAME}. "
        "You design complete pages from predefined CMS content blocks.",
        "",
        "=== CONTENT REQUIREMENTS ===",
        f"TOPIC: {request.topic}",
        f"KEYWORDS: {', '.join(request.keywords)}",
        f"CONTENT GOAL: {request.content_goal}",
        f"TONE: {request.tone}",
        f"TARGET LENGTH: {WORD_COUNTS[request.content_length]} words across all blocks",
        "",
        "=== OPTIONAL BLOCKS ===",
        f"Requested components: {requested}",
        "Manifest-defined optional blocks (only use these):",
        available or "- none",
        "Selected blocks for this page:",
        *selected,
        "",
        "=== SCHEMA OVERVIEW ===",
        summarize_schema(manifest),
        "",
        "=== OUTPUT FORMAT ===",
        "Respond with ONLY valid JSON: no markdown, no explanations, no code fences.",
        _output_example(manifest),
    ]

    if request.example_pages:
        sections += [
            "",
            "=== INSPIRATION EXAMPLES ===",
            "Use these existing pages as inspiration for structure, tone and depth:",
            json.dumps(
                list(request.example_pages[:MAX_EXAMPLE_PAGES]), indent=2, ensure_ascii=False
            ),
        ]

    if request.related_pages:
        sections += [
            "",
            "=== INTERNAL LINKING ===",
            "Include contextual links to these related pages within rich text blocks:",
            *(f"- {page.title}: {page.url}" for page in request.related_pages),
            "Use natural anchor text, at most 1-2 links per section, as standard link markDefs.",
        ]

    return "\n".join(sections)


def build_messages(request: GenerationRequest, manifest: SchemaManifest) -> list[dict[str, str]]:
    """Return the chat messages for one generation call."""
    return [
        {"role": "system", "content": build_system_prompt(request, manifest)},
        {
            "role": "user",
            "content": (
                f'Generate structured SEO content for: "{request.topic}"\n\n'
                "IMPORTANT: Respond with valid JSON only, starting with { and ending with }."
            ),
        },
    ]


__all__ = [
    "MAX_EXAMPLE_PAGES",
    "WORD_COUNTS",
    "build_messages",
    "build_system_prompt",
    "summarize_schema",
]
