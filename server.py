#!/usr/bin/env python3
"""
Recut MCP Server — Timeline recalculation macros for editing automation.

Exposes the edit operations (gap collapse, cursor shift, speed rescale,
cut lists) as tools, and discovered timeline files as resources.
"""

from __future__ import annotations

import logging
import os
import random
import sys
from pathlib import Path
from typing import Any, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    GetPromptResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    Resource,
    TextContent,
    Tool,
)

from recut.editor import EditResult, TimelineEditor
from recut.models import SPEED_PRESETS, EditConfig, Project, RecutError
from recut.parser import TimelineParser

logging.basicConfig(
    level=os.environ.get("RECUT_LOG_LEVEL", "INFO").upper(),
    stream=sys.stderr,
)
logger = logging.getLogger("recut-mcp-server")

server = Server("recut-mcp-server")
PROJECTS_DIR = os.environ.get("RECUT_PROJECTS_DIR", os.path.expanduser("~/Movies"))

TIMELINE_EXTENSIONS = ('.xml',)
CUT_LIST_EXTENSIONS = ('.csv', '.txt')

# Maximum file size for parsing (100 MB).
MAX_FILE_SIZE = 100 * 1024 * 1024


# ============================================================================
# SECURITY UTILITIES
# ============================================================================

def _validate_filepath(filepath: str, allowed_extensions: tuple[str, ...] | None = None) -> str:
    """Validate a user-provided file path against traversal and size attacks.

    Resolves symlinks, blocks null bytes, enforces extension whitelist, and
    checks file size before any parsing takes place.

    Raises:
        ValueError: For invalid paths (null bytes, bad extensions, oversized).
        FileNotFoundError: When the resolved path does not exist.
    """
    if '\x00' in filepath:
        raise ValueError("Invalid file path: null byte detected")

    resolved = Path(filepath).resolve()

    if not resolved.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    if not resolved.is_file():
        raise ValueError(f"Not a regular file: {filepath}")

    if allowed_extensions and resolved.suffix.lower() not in allowed_extensions:
        raise ValueError(
            f"Invalid file type '{resolved.suffix}'. "
            f"Allowed: {', '.join(allowed_extensions)}"
        )

    if resolved.stat().st_size > MAX_FILE_SIZE:
        size_mb = resolved.stat().st_size / (1024 * 1024)
        raise ValueError(f"File too large ({size_mb:.1f} MB). Maximum: {MAX_FILE_SIZE // (1024 * 1024)} MB")

    return str(resolved)


def _validate_output_path(output_path: str) -> str:
    """Validate an output path: resolve traversal, block null bytes, ensure parent exists."""
    if '\x00' in output_path:
        raise ValueError("Invalid output path: null byte detected")

    resolved = Path(output_path).resolve()

    if not resolved.parent.exists():
        raise ValueError(f"Output directory does not exist: {resolved.parent}")

    return str(resolved)


def _validate_directory(directory: str) -> str:
    """Validate a user-provided directory path (null bytes, must be a directory)."""
    if '\x00' in directory:
        raise ValueError("Invalid directory path: null byte detected")

    resolved = Path(directory).resolve()

    if not resolved.is_dir():
        raise ValueError(f"Not a valid directory: {directory}")

    return str(resolved)


# ============================================================================
# UTILITIES
# ============================================================================

def find_timeline_files(directory: str) -> list[str]:
    """Find all timeline documents in a directory."""
    files = []
    for f in Path(directory).rglob("*.xml"):
        try:
            with open(f, 'r', encoding='utf-8', errors='ignore') as fh:
                head = fh.read(512)
        except OSError:
            continue
        if '<timeline' in head:
            files.append(str(f))
    return sorted(files)


def format_ms(tc) -> str:
    """Format a Timecode as milliseconds, e.g. '1500ms'."""
    return tc.to_string() if tc is not None else "0ms"


def generate_output_path(input_path: str, suffix: str = "_modified") -> str:
    """Generate output path from input path."""
    p = Path(input_path)
    return str(p.parent / f"{p.stem}{suffix}{p.suffix}")


def _editor_for(arguments: dict) -> tuple[TimelineEditor, str]:
    """Open the timeline named in the arguments and resolve its output path."""
    filepath = _validate_filepath(arguments["filepath"], TIMELINE_EXTENSIONS)
    output_path = _validate_output_path(
        arguments.get("output_path") or generate_output_path(filepath)
    )
    seed = arguments.get("seed")
    rng = random.Random(seed) if seed is not None else None
    editor = TimelineEditor(filepath, config=EditConfig.from_env(), rng=rng)
    return editor, output_path


def describe_project(project: Project, config: EditConfig) -> str:
    """Markdown listing of the primary track and the transition markers."""
    primary = project.primary_track(config)
    lines = [
        f"# {project.name}",
        "",
        f"Frame rate: {project.frame_rate:g}fps | Tracks: {len(project.tracks)} | "
        f"Markers: {len(project.markers)}",
        "",
        f"## Track '{primary.name}'",
        "",
        f"Clips: {len(primary.clips)} | Selected: {len(primary.selected_clips)}",
        "",
        "| # | Name | Start | End | Length | Rate |",
        "|---|------|-------|-----|--------|------|",
    ]
    for i, clip in enumerate(primary.clips):
        lines.append(
            f"| {i} | {clip.name} | {format_ms(clip.start)} | {format_ms(clip.end)} | "
            f"{format_ms(clip.length)} | {clip.playback_rate:g}x |"
        )
    transitions = project.transition_markers(config)
    lines += ["", "## Transition markers", ""]
    if transitions:
        lines += [f"- '{m.label}' at {format_ms(m.position)}" for m in transitions]
    else:
        lines.append("- none")
    return "\n".join(lines)


def _format_result(result: EditResult, output_path: str, limit: int = 50) -> str:
    summary = result.summary
    text = (
        f"# {result.operation}\n\n"
        f"- Clips moved: {summary.clips_moved}\n"
        f"- Clips moved on other tracks: {summary.aux_clips_moved}\n"
        f"- Clips resized: {summary.clips_resized}\n"
        f"- Markers moved: {summary.markers_moved}\n"
    )
    if result.changes:
        text += "\n## Changes\n\n" + "\n".join(f"- {c}" for c in result.changes[:limit])
        if len(result.changes) > limit:
            text += f"\n- ... and {len(result.changes) - limit} more"
        text += "\n"
    return text + f"\nSaved to: {output_path}"


# ============================================================================
# MCP RESOURCES: File discovery
# ============================================================================

@server.list_resources()
async def list_resources() -> list[Resource]:
    """Expose discovered timeline files as MCP resources."""
    resources = []
    for f in find_timeline_files(PROJECTS_DIR):
        p = Path(f)
        resources.append(Resource(
            uri=f"file://{f}",
            name=p.stem,
            description=f"Timeline: {p.name}",
            mimeType="application/xml",
        ))
    return resources


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read a timeline file and return a summary."""
    filepath = str(uri).replace("file://", "")
    try:
        filepath = _validate_filepath(filepath, TIMELINE_EXTENSIONS)
        project = TimelineParser().parse_file(filepath)
        return describe_project(project, EditConfig.from_env())
    except (ValueError, FileNotFoundError) as e:
        return str(e)


# ============================================================================
# MCP PROMPTS: Pre-built workflows
# ============================================================================

@server.list_prompts()
async def list_prompts() -> list[Prompt]:
    return [
        Prompt(
            name="tighten-edit",
            description="Close gaps on the main track and review the resulting positions",
            arguments=[
                PromptArgument(name="filepath", description="Path to timeline file", required=True),
            ],
        ),
    ]


@server.get_prompt()
async def get_prompt(name: str, arguments: dict[str, str] | None = None) -> GetPromptResult:
    args = arguments or {}
    filepath = args.get("filepath", "<path to your timeline file>")

    if name == "tighten-edit":
        return GetPromptResult(
            description="Close gaps and review",
            messages=[PromptMessage(
                role="user",
                content=TextContent(
                    type="text",
                    text=f"""Tighten my edit.

File: {filepath}

Please:
1. Use `describe_timeline` to show me the current clip positions
2. Use `collapse_gaps` to remove the gaps while keeping crossfades
3. Use `describe_timeline` on the output file and summarize what moved"""
                ),
            )],
        )

    raise ValueError(f"Unknown prompt: {name}")


# ============================================================================
# TOOL DEFINITIONS
# ============================================================================

_FILEPATH = {"type": "string", "description": "Path to timeline XML file"}
_OUTPUT_PATH = {"type": "string", "description": "Output path (default: <name>_modified.xml)"}


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        # ===== READ TOOLS =====
        Tool(
            name="list_projects",
            description="List all timeline files in a directory",
            inputSchema={
                "type": "object",
                "properties": {
                    "directory": {"type": "string", "description": "Directory to search (default: ~/Movies)"}
                }
            }
        ),
        Tool(
            name="describe_timeline",
            description="Show clip positions on the main track and the transition markers",
            inputSchema={
                "type": "object",
                "properties": {"filepath": _FILEPATH},
                "required": ["filepath"]
            }
        ),

        # ===== EDIT TOOLS =====
        Tool(
            name="collapse_gaps",
            description="Remove every gap on the main track, folding crossfades, and carry the change to markers and other tracks",
            inputSchema={
                "type": "object",
                "properties": {"filepath": _FILEPATH, "output_path": _OUTPUT_PATH},
                "required": ["filepath"]
            }
        ),
        Tool(
            name="shift_after_cursor",
            description="Shift every main track clip at or after the cursor by a fixed amount (default 4s)",
            inputSchema={
                "type": "object",
                "properties": {
                    "filepath": _FILEPATH,
                    "cursor": {"type": "string", "description": "Cursor position (e.g. '12s', '1500ms', '00:00:12:00')"},
                    "shift": {"type": "string", "description": "Shift amount (default: '4s')"},
                    "output_path": _OUTPUT_PATH,
                },
                "required": ["filepath", "cursor"]
            }
        ),
        Tool(
            name="rescale_speed",
            description="Change the speed of the selected main track clips and ripple the change",
            inputSchema={
                "type": "object",
                "properties": {
                    "filepath": _FILEPATH,
                    "speed_factor": {"type": "number", "description": "2.0 = twice as fast, 0.5 = half speed"},
                    "preset": {"type": "string", "enum": list(SPEED_PRESETS), "description": "Named speed factor"},
                    "seed": {"type": "integer", "description": "Seed for frame rounding tie-breaks"},
                    "output_path": _OUTPUT_PATH,
                },
                "required": ["filepath"]
            }
        ),
        Tool(
            name="apply_cut_list",
            description="Apply a CSV cut list (X = cut, F = fast-forward) to the main track",
            inputSchema={
                "type": "object",
                "properties": {
                    "filepath": _FILEPATH,
                    "csv_path": {"type": "string", "description": "Path to the CSV cut list"},
                    "output_path": _OUTPUT_PATH,
                },
                "required": ["filepath", "csv_path"]
            }
        ),
    ]


# ============================================================================
# TOOL HANDLERS
# ============================================================================

# ----- READ HANDLERS -----

async def handle_list_projects(arguments: dict) -> Sequence[TextContent]:
    directory = _validate_directory(arguments.get("directory", PROJECTS_DIR))
    files = find_timeline_files(directory)
    if not files:
        return [TextContent(type="text", text=f"No timeline files found in {directory}")]
    listing = "\n".join(f"- {Path(f).name} — `{f}`" for f in files)
    return [TextContent(type="text", text=f"# Timelines ({len(files)})\n\n{listing}")]


async def handle_describe_timeline(arguments: dict) -> Sequence[TextContent]:
    filepath = _validate_filepath(arguments["filepath"], TIMELINE_EXTENSIONS)
    project = TimelineParser().parse_file(filepath)
    return [TextContent(type="text", text=describe_project(project, EditConfig.from_env()))]


# ----- EDIT HANDLERS -----

async def handle_collapse_gaps(arguments: dict) -> Sequence[TextContent]:
    editor, output_path = _editor_for(arguments)
    result = editor.collapse_gaps()
    editor.save(output_path)
    return [TextContent(type="text", text=_format_result(result, output_path))]


async def handle_shift_after_cursor(arguments: dict) -> Sequence[TextContent]:
    editor, output_path = _editor_for(arguments)
    result = editor.shift_after_cursor(
        cursor=arguments["cursor"],
        shift=arguments.get("shift", "4s"),
    )
    editor.save(output_path)
    return [TextContent(type="text", text=_format_result(result, output_path))]


async def handle_rescale_speed(arguments: dict) -> Sequence[TextContent]:
    editor, output_path = _editor_for(arguments)
    result = editor.rescale_speed(
        speed_factor=arguments.get("speed_factor"),
        preset=arguments.get("preset"),
    )
    editor.save(output_path)
    if not result.plan.clip_moves:
        return [TextContent(type="text", text=f"No selected clips to rescale.\n\nSaved to: {output_path}")]
    return [TextContent(type="text", text=_format_result(result, output_path))]


async def handle_apply_cut_list(arguments: dict) -> Sequence[TextContent]:
    editor, output_path = _editor_for(arguments)
    csv_path = _validate_filepath(arguments["csv_path"], CUT_LIST_EXTENSIONS)
    result = editor.apply_cut_list(csv_path)
    editor.save(output_path)
    text = (
        f"# Cut list\n\n"
        f"- Commands applied: {result.applied}\n"
        f"- Commands skipped: {result.skipped}\n"
        f"- Clips removed: {result.clips_removed}\n"
        f"- Fast-forwarded: {result.fast_forwarded}\n"
    )
    if result.messages:
        text += "\n" + "\n".join(f"- {m}" for m in result.messages) + "\n"
    return [TextContent(type="text", text=text + f"\nSaved to: {output_path}")]


TOOL_HANDLERS = {
    "list_projects": handle_list_projects,
    "describe_timeline": handle_describe_timeline,
    "collapse_gaps": handle_collapse_gaps,
    "shift_after_cursor": handle_shift_after_cursor,
    "rescale_speed": handle_rescale_speed,
    "apply_cut_list": handle_apply_cut_list,
}


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> Sequence[TextContent]:
    handler = TOOL_HANDLERS.get(name)
    if not handler:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(arguments)
    except FileNotFoundError as e:
        return [TextContent(type="text", text=f"File not found: {e}")]
    except RecutError as e:
        return [TextContent(type="text", text=f"{e.kind} error: {e}")]
    except ValueError as e:
        return [TextContent(type="text", text=f"Validation error: {e}")]
    except Exception as e:
        logger.exception("Error in tool %s", name)
        return [TextContent(type="text", text=f"Error: {type(e).__name__}")]


# ============================================================================
# MAIN
# ============================================================================

async def main():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main_sync():
    """Synchronous entry point for use as a console script."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
