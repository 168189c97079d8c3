#!/usr/bin/env python3
"""Offline COCO export straight from the document store.

Reads the same document directory the server writes and produces the same
COCO JSON as ``GET /projects/{id}/export``, without a running server.

Usage:
    # Export one project next to the current directory
    annotation-export 3f2a9c...

    # Choose the store, config and output file
    annotation-export 3f2a9c... --data-dir data/documents --output coco.json

    # Export every project in the store
    annotation-export --all --output-dir exports/

    # True polygon areas instead of zero
    annotation-export 3f2a9c... --polygon-area shoelace
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .core.config import ServerConfig, get_default_config, load_config
from .core.errors import NotFoundError
from .core.store import DocumentStore
from .exporters import CocoExporter
from .routes.export import export_filename

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export annotation projects as COCO JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("project_id", nargs="?", help="Project to export")
    parser.add_argument("--all", action="store_true", help="Export every project in the store")
    parser.add_argument("--config", type=Path, default=None, help="Server config.yaml")
    parser.add_argument("--data-dir", type=Path, default=None, help="Document store directory")
    parser.add_argument("--output", type=Path, default=None, help="Output file (single project)")
    parser.add_argument("--output-dir", type=Path, default=Path("."), help="Output directory")
    parser.add_argument(
        "--polygon-area",
        choices=["zero", "shoelace"],
        default=None,
        help="Polygon area mode (overrides config)",
    )
    parser.add_argument("--strict", action="store_true", help="Exit non-zero when warnings occur")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    if not args.all and not args.project_id:
        parser.error("a project id or --all is required")
    if args.all and args.output:
        parser.error("--output only applies to a single project, use --output-dir")
    return args


def _load_config(path: Optional[Path]) -> ServerConfig:
    if path is None:
        return get_default_config()
    return load_config(path)


def export_project(exporter: CocoExporter, project_id: str, output: Path) -> int:
    """Export one project to ``output``.

    Returns:
        int: Number of warnings
    """
    result = exporter.export(project_id)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(result.document, f, indent=2)

    for warning in result.warnings:
        logger.warning(warning)
    logger.info(
        f"Wrote {output} ({len(result.document['images'])} images, "
        f"{len(result.document['annotations'])} annotations)"
    )
    return len(result.warnings)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        config = _load_config(args.config)
    except (FileNotFoundError, TypeError, ValueError, yaml.YAMLError) as e:
        logger.error(str(e))
        return 2

    if args.polygon_area:
        config.export.polygon_area = args.polygon_area

    data_dir = args.data_dir or Path(config.storage.data_dir)
    if not data_dir.is_dir():
        logger.error(f"Document store not found: {data_dir}")
        return 2

    store = DocumentStore(data_dir, persist=True)
    exporter = CocoExporter(store, config.export)

    if args.all:
        project_ids = [project["id"] for project in store.find("projects")]
    else:
        project_ids = [args.project_id]

    total_warnings = 0
    for project_id in project_ids:
        output = args.output or args.output_dir / export_filename(project_id)
        try:
            total_warnings += export_project(exporter, project_id, output)
        except NotFoundError as e:
            logger.error(e.message)
            return 1

    logger.info(f"Exported {len(project_ids)} project(s) with {total_warnings} warning(s)")
    if args.strict and total_warnings:
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
