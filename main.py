#!/usr/bin/env python3
"""
Marginalia - Main Entry Point
A reading companion persona that annotates alongside you

Usage:
    python main.py personas                             # List personas
    python main.py models                               # List provider models
    python main.py annotate book.txt "a passage"        # One margin thought
    python main.py note book.txt "a passage" "my note"  # Note + persona reply
    python main.py scan book.txt --count 3              # Autonomous scan
"""

import sys
import asyncio
import argparse
from pathlib import Path

# Ensure we can import from project root
sys.path.insert(0, str(Path(__file__).parent))

from rich.panel import Panel
from rich.table import Table

import config
from core.annotations import AnnotationStore
from core.engine_config import EngineConfig, load_engine_config
from core.logger import (
    console,
    setup_logging,
    log_startup_banner,
    log_section,
    log_subsection,
    log_error,
    log_config
)
from core.personas import PersonaRegistry, PersonaError
from llm.errors import LLMError
from llm.router import init_llm_router, LLMRouter
from prompt_builder import init_prompt_builder
from agency.companion_reading.orchestrator import AnnotationLifecycleController


def initialize_system() -> None:
    """Set up directories and logging, then print the banner."""
    config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    setup_logging(
        log_file_path=config.DIAGNOSTIC_LOG_PATH,
        level=config.LOG_LEVEL,
        log_to_file=config.LOG_TO_FILE
    )
    log_startup_banner(config.VERSION, config.PROJECT_NAME)


def build_engine_config(args: argparse.Namespace) -> EngineConfig:
    """Stored settings with any command-line overrides applied."""
    engine_config = load_engine_config()
    overrides = {}
    if args.provider:
        overrides["provider"] = args.provider
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.api_key:
        overrides["api_key"] = args.api_key
    if args.model:
        overrides["model"] = args.model
    return engine_config.with_overrides(**overrides) if overrides else engine_config


def print_configuration(engine_config: EngineConfig) -> None:
    """Print configuration summary."""
    log_section("Configuration", "📡")
    log_config("Provider", engine_config.provider, indent=1)
    log_config("Model", engine_config.model or "(provider default)", indent=1)
    log_config("Base URL", engine_config.base_url or "(provider default)", indent=1)
    log_config("API key", "set" if engine_config.has_credentials() else "missing", indent=1)
    log_config("Temperature", str(engine_config.temperature), indent=1)
    log_subsection(f"Diagnostic Log: {config.DIAGNOSTIC_LOG_PATH}")


def read_book(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_personas(args: argparse.Namespace, registry: PersonaRegistry, router: LLMRouter) -> int:
    table = Table(title="Personas", title_justify="left", border_style="blue")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Role")
    table.add_column("Memory", style="dim")

    for persona in registry.list_all():
        memory = persona.long_term_memory or "-"
        table.add_row(
            persona.id,
            f"{persona.avatar} {persona.name}",
            persona.role,
            memory if len(memory) <= 40 else memory[:37] + "..."
        )

    console.print(table)
    return 0


def cmd_models(args: argparse.Namespace, registry: PersonaRegistry, router: LLMRouter) -> int:
    engine_config = build_engine_config(args)
    models = router.list_models_or_fallback(engine_config)

    table = Table(title=f"Models ({engine_config.provider})", title_justify="left", border_style="blue")
    table.add_column("Model", style="cyan")
    for model in models:
        table.add_row(model)

    console.print(table)
    return 0


def cmd_annotate(args: argparse.Namespace, registry: PersonaRegistry, router: LLMRouter) -> int:
    engine_config = build_engine_config(args)
    persona = registry.require(args.persona)
    controller = AnnotationLifecycleController(router, AnnotationStore())

    annotation = asyncio.run(
        controller.annotate_selection(Path(args.book).stem, args.selection, persona, engine_config)
    )
    if annotation is None:
        return 1

    console.print(Panel(
        f"[dim italic]\"{annotation.text_selection}\"[/dim italic]\n\n{annotation.comment}",
        title=f"[bold blue]{persona.avatar} {persona.name}[/bold blue] [dim]({annotation.topic})[/dim]",
        title_align="left",
        border_style="blue",
        padding=(0, 1)
    ))
    return 0


def cmd_note(args: argparse.Namespace, registry: PersonaRegistry, router: LLMRouter) -> int:
    engine_config = build_engine_config(args)
    persona = registry.require(args.persona)
    controller = AnnotationLifecycleController(router, AnnotationStore())

    async def run():
        note = await controller.add_user_note(
            Path(args.book).stem, args.selection, args.note, persona, engine_config
        )
        if note is None:
            return None
        return await controller.reply_to_note(note.id, persona, engine_config)

    annotation = asyncio.run(run())
    if annotation is None:
        return 1

    lines = [f"[dim italic]\"{annotation.text_selection}\"[/dim italic]", ""]
    for turn in annotation.chat_history:
        speaker = "You" if turn.role == "user" else persona.name
        lines.append(f"[bold]{speaker}:[/bold] {turn.text}")

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold green]Note[/bold green] [dim]({annotation.topic})[/dim]",
        title_align="left",
        border_style="green",
        padding=(0, 1)
    ))
    return 0


def cmd_scan(args: argparse.Namespace, registry: PersonaRegistry, router: LLMRouter) -> int:
    engine_config = build_engine_config(args).with_overrides(autonomous_reading=True)
    if args.count is not None:
        engine_config = engine_config.with_overrides(auto_annotation_count=args.count)
    persona = registry.require(args.persona)
    controller = AnnotationLifecycleController(router, AnnotationStore())

    added = asyncio.run(
        controller.scan_page(Path(args.book).stem, read_book(args.book), persona, engine_config)
    )

    table = Table(title=f"{persona.name}'s margin notes", title_justify="left", border_style="magenta")
    table.add_column("Topic", style="cyan")
    table.add_column("Passage", style="dim")
    table.add_column("Thought")
    for annotation in added:
        table.add_row(annotation.topic or "", annotation.text_selection, annotation.comment)

    console.print(table)
    return 0


COMMANDS = {
    "personas": cmd_personas,
    "models": cmd_models,
    "annotate": cmd_annotate,
    "note": cmd_note,
    "scan": cmd_scan,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Marginalia - Reading Companion",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--provider", choices=[config.PROVIDER_GEMINI, config.PROVIDER_OPENAI])
    parser.add_argument("--base-url", help="Provider base URL")
    parser.add_argument("--api-key", help="Provider API key (defaults to API_KEY)")
    parser.add_argument("--model", help="Model identifier")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("personas", help="List available personas")
    sub.add_parser("models", help="List models offered by the provider")

    annotate = sub.add_parser("annotate", help="Ask the persona about one passage")
    annotate.add_argument("book", help="Path to a plain-text book")
    annotate.add_argument("selection", help="The passage to annotate")
    annotate.add_argument("--persona", default="socrates")

    note = sub.add_parser("note", help="Write a note and hear the persona's reply")
    note.add_argument("book", help="Path to a plain-text book")
    note.add_argument("selection", help="The passage the note is on")
    note.add_argument("note", help="Your note")
    note.add_argument("--persona", default="socrates")

    scan = sub.add_parser("scan", help="Let the persona annotate a page on its own")
    scan.add_argument("book", help="Path to a plain-text page or book")
    scan.add_argument("--persona", default="socrates")
    scan.add_argument("--count", type=int, help="Annotations to ask for (1-5)")

    return parser


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = build_parser().parse_args()

    initialize_system()
    if args.command != "personas":
        print_configuration(build_engine_config(args))

    registry = PersonaRegistry()
    router = init_llm_router()
    init_prompt_builder()

    try:
        return COMMANDS[args.command](args, registry, router)
    except (LLMError, PersonaError) as e:
        log_error(str(e))
        return 1
    except OSError as e:
        log_error(f"Could not read book: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
