#!/usr/bin/env python3
"""
FliDeck Command Line Interface
==============================

Inspect and maintain presentation manifests from the terminal.

Usage:
    flideckctl list                         List presentations
    flideckctl show <id>                    Display mode and navigation order
    flideckctl validate <id>                Validate the stored manifest
    flideckctl sync <id>                    Reconcile slides with files on disk
    flideckctl sync-index <id>              Recover tabs from index-*.html files
    flideckctl templates                    List built-in manifest templates
    flideckctl apply-template <id> <tpl>    Apply a template
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from flideck_core.config import configure_logging, load_config
from flideck_core.errors import ManifestError
from flideck_core.service import PresentationService
from flideck_core.templates import get_templates
from flideck_core.version import get_short_banner

logger = logging.getLogger(__name__)


# =============================================================================
# ANSI Colors
# =============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    BLUE = '\033[0;34m'
    CYAN = '\033[0;36m'
    BOLD = '\033[1m'
    NC = '\033[0m'  # No Color

    @classmethod
    def disable(cls):
        """Disable colors (for non-TTY output)."""
        cls.RED = cls.GREEN = cls.YELLOW = cls.BLUE = ''
        cls.CYAN = cls.BOLD = cls.NC = ''


def print_ok(msg: str) -> None:
    print(f"{Colors.GREEN}✓{Colors.NC} {msg}")


def print_warn(msg: str) -> None:
    print(f"{Colors.YELLOW}⚠{Colors.NC} {msg}")


def print_error(msg: str) -> None:
    print(f"{Colors.RED}✗{Colors.NC} {msg}")


def print_info(msg: str) -> None:
    print(f"{Colors.BLUE}ℹ{Colors.NC} {msg}")


def print_header(msg: str) -> None:
    print(f"\n{Colors.BOLD}{Colors.CYAN}{msg}{Colors.NC}")
    print("=" * len(msg))


def _service(args: argparse.Namespace) -> PresentationService:
    config = args.loaded_config
    if args.root:
        config.presentations_root = args.root
    return PresentationService.from_config(config)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


# =============================================================================
# Commands
# =============================================================================

def cmd_list(args: argparse.Namespace) -> int:
    """List discovered presentations."""
    service = _service(args)
    presentations = asyncio.run(service.discover_all())
    if args.json:
        _print_json([p.to_dict() for p in presentations])
        return 0

    print_header(f"Presentations in {service.config.root_path}")
    if not presentations:
        print_warn("No presentations found")
        return 0
    for p in presentations:
        slides = sum(1 for a in p.assets if not a.is_index)
        print(f"  {Colors.BOLD}{p.id}{Colors.NC}  {p.name}  ({slides} slides, {p.display_mode.value})")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    service = _service(args)
    presentation = asyncio.run(service.get_by_id(args.id))
    order = asyncio.run(service.get_order(args.id, args.tab)) if args.tab else presentation.ordered_assets
    if args.json:
        data = presentation.to_dict()
        data["order"] = [a.filename for a in order]
        _print_json(data)
        return 0

    print_header(presentation.name)
    print_info(f"Display mode: {presentation.display_mode.value}")
    if presentation.tabs:
        print_info("Tabs: " + ", ".join(t.id for t in presentation.tabs))
    for position, asset in enumerate(order, start=1):
        group = f" [{asset.group}]" if asset.group else ""
        print(f"  {position:3d}. {asset.filename}{group}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate the stored manifest of a presentation."""
    service = _service(args)

    async def run():
        document = await service.store.load(args.id)
        if document is None:
            return None
        return await service.validate_manifest(args.id, document, check_files=args.check_files)

    report = asyncio.run(run())
    if report is None:
        print_warn(f"No manifest for '{args.id}'")
        return 0
    if args.json:
        _print_json(report.to_dict())
        return 0 if report.valid else 1

    for issue in report.errors:
        print_error(f"{issue.path}: {issue.message}")
    for issue in report.warnings:
        print_warn(f"{issue.path}: {issue.message}")
    if report.valid:
        print_ok(f"Manifest is valid ({len(report.warnings)} warning(s))")
        return 0
    return 1


def cmd_sync(args: argparse.Namespace) -> int:
    """Reconcile slides with the files on disk."""
    service = _service(args)
    report = asyncio.run(service.sync_manifest(
        args.id,
        strategy=args.strategy,
        infer_groups=args.infer_groups,
        infer_titles=False if args.no_infer_titles else None,
    ))
    if args.json:
        _print_json(report.to_dict())
        return 0
    print_ok(
        f"Synced '{args.id}' ({report.strategy.value}): {len(report.added)} added, "
        f"{len(report.removed)} removed, {len(report.updated)} updated"
    )
    if report.groups_created:
        print_info("Groups created: " + ", ".join(report.groups_created))
    for warning in report.warnings:
        print_warn(warning)
    return 0


def cmd_sync_index(args: argparse.Namespace) -> int:
    """Recover tabs and slide assignment from index-*.html files."""
    service = _service(args)
    report = asyncio.run(service.sync_from_index(
        args.id,
        strategy=args.strategy,
        infer_tabs=not args.no_infer_tabs,
        parse_cards=not args.no_parse_cards,
    ))
    if args.json:
        _print_json(report.to_dict())
        return 0
    print_ok(
        f"Tabs: {len(report.tabs_created)} created, {len(report.tabs_updated)} updated; "
        f"slides: {report.slides_assigned} assigned, {report.slides_skipped} skipped, "
        f"{report.slides_orphaned} orphaned"
    )
    for info in report.tabs:
        print(f"  {Colors.BOLD}{info.tab_id}{Colors.NC} ({info.file}): {', '.join(info.slides) or '-'}")
    for warning in report.warnings:
        print_warn(warning)
    return 0


def cmd_templates(args: argparse.Namespace) -> int:
    templates = get_templates()
    if args.json:
        _print_json([t.to_dict() for t in templates])
        return 0
    print_header("Manifest templates")
    for t in templates:
        print(f"  {Colors.BOLD}{t.id:<18}{Colors.NC} {t.description}")
    return 0


def cmd_apply_template(args: argparse.Namespace) -> int:
    service = _service(args)
    asyncio.run(service.apply_template(args.id, args.template, merge=not args.replace))
    mode = "replaced" if args.replace else "merged"
    print_ok(f"Template '{args.template}' {mode} into '{args.id}'")
    return 0


# =============================================================================
# Entry point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flideckctl",
        description=get_short_banner(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flideckctl list                       List presentations
  flideckctl show demo --tab intro      Navigation order inside one tab
  flideckctl validate demo --check-files
  flideckctl sync demo --strategy replace --infer-groups
  flideckctl apply-template demo tutorial
        """
    )
    parser.add_argument("-c", "--config", help="Path to flideck.yaml")
    parser.add_argument("-r", "--root", help="Presentations root (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    sub = subparsers.add_parser("list", help="List presentations")
    sub.set_defaults(func=cmd_list)

    sub = subparsers.add_parser("show", help="Show display mode and navigation order")
    sub.add_argument("id", help="Presentation id")
    sub.add_argument("--tab", help="Restrict to one container tab")
    sub.set_defaults(func=cmd_show)

    sub = subparsers.add_parser("validate", help="Validate the stored manifest")
    sub.add_argument("id", help="Presentation id")
    sub.add_argument("--check-files", action="store_true", help="Also check files on disk")
    sub.set_defaults(func=cmd_validate)

    sub = subparsers.add_parser("sync", help="Reconcile the manifest with files on disk")
    sub.add_argument("id", help="Presentation id")
    sub.add_argument("--strategy", choices=["merge", "replace", "addOnly"], default=None)
    sub.add_argument("--infer-groups", action="store_true", default=None,
                     help="Derive groups from file name prefixes")
    sub.add_argument("--no-infer-titles", action="store_true", help="Do not parse <title> elements")
    sub.set_defaults(func=cmd_sync)

    sub = subparsers.add_parser("sync-index", help="Recover tabs from index-*.html files")
    sub.add_argument("id", help="Presentation id")
    sub.add_argument("--strategy", choices=["merge", "replace", "addOnly"], default="merge")
    sub.add_argument("--no-infer-tabs", action="store_true", help="Do not create tabs")
    sub.add_argument("--no-parse-cards", action="store_true", help="Do not assign slides from cards")
    sub.set_defaults(func=cmd_sync_index)

    sub = subparsers.add_parser("templates", help="List manifest templates")
    sub.set_defaults(func=cmd_templates)

    sub = subparsers.add_parser("apply-template", help="Apply a manifest template")
    sub.add_argument("id", help="Presentation id")
    sub.add_argument("template", help="Template id")
    sub.add_argument("--replace", action="store_true", help="Replace meta and groups instead of merging")
    sub.set_defaults(func=cmd_apply_template)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    if not sys.stdout.isatty():
        Colors.disable()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = load_config(Path(args.config) if args.config else None)
    if args.verbose:
        config.logging.level = "DEBUG"
    configure_logging(config)
    args.loaded_config = config

    try:
        return args.func(args)
    except ManifestError as e:
        print_error(e.message)
        for detail in e.errors if len(e.errors) > 1 else []:
            print(f"    - {detail}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
