"""
Command line interface

    gltf-export export scene.json out.glb [--time-budget-ms N] [--json]
    gltf-export validate out.glb [--json] [--strict]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .export import export_scene
from .logs import configure_logging
from .scene import scene_from_dict
from .settings import ExportSettings, GltfFormat, ImageFormat, SceneExportSettings
from .validator import validate_gltf

logger = logging.getLogger(__name__)


def _export(args) -> int:
    scene_path = Path(args.scene)
    try:
        data = json.loads(scene_path.read_text(encoding="utf-8"))
        host, roots, name = scene_from_dict(data, scene_path.parent)
    except (OSError, ValueError, KeyError) as e:
        logger.error("Could not load scene description %s: %s", scene_path, e)
        return 2

    settings = ExportSettings.from_env()
    if args.format:
        settings.format = GltfFormat(args.format)
    if args.image_format:
        settings.image_format = ImageFormat(args.image_format)
    if args.native_transmission:
        settings.native_transmission = True
    if args.default_material:
        settings.default_material = True
    settings.json_indent = args.indent

    scene_settings = SceneExportSettings.from_env()
    if args.time_budget_ms is not None:
        scene_settings.time_budget = args.time_budget_ms / 1000.0
    if args.layer_mask is not None:
        scene_settings.layer_mask = int(args.layer_mask, 0)
    if args.include_inactive:
        scene_settings.only_active_in_hierarchy = False
    if args.disabled_components:
        scene_settings.disabled_components = True

    report = asyncio.run(export_scene(
        host, roots, args.output, name=name,
        settings=settings, scene_settings=scene_settings,
        validate=not args.no_validate,
    ))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(report.summary())
    return 0 if report.success else 1


def _validate(args) -> int:
    report = validate_gltf(args.filepath)

    if args.strict and report.warning_count > 0:
        report.valid = False

    if args.json:
        print(report.to_json())
    else:
        print(report.summary())
    return 0 if report.valid else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gltf-export", description="Export scenes to glTF 2.0")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Export a JSON scene description")
    export.add_argument("scene", help="Path to scene description (.json)")
    export.add_argument("output", help="Output .glb or .gltf")
    export.add_argument("--format", choices=[f.value for f in GltfFormat], help="Override suffix-based format")
    export.add_argument("--image-format", choices=[f.value for f in ImageFormat])
    export.add_argument("--time-budget-ms", type=float, help="Scheduling quantum in milliseconds")
    export.add_argument("--layer-mask", help="Included layers bitmask, e.g. 0x1")
    export.add_argument("--include-inactive", action="store_true", help="Export inactive objects")
    export.add_argument("--disabled-components", action="store_true", help="Export disabled renderers/cameras/lights")
    export.add_argument("--native-transmission", action="store_true", help="Write KHR_materials_transmission")
    export.add_argument("--default-material", action="store_true", help="Assign a default material where none is set")
    export.add_argument("--indent", type=int, help="Pretty-print JSON with this indent")
    export.add_argument("--no-validate", action="store_true", help="Skip validating the written file")
    export.add_argument("--json", action="store_true", help="Output report as JSON")
    export.set_defaults(func=_export)

    validate = sub.add_parser("validate", help="Validate a .glb/.gltf file")
    validate.add_argument("filepath", help="Path to glTF/GLB file")
    validate.add_argument("--json", action="store_true", help="Output as JSON")
    validate.add_argument("--strict", action="store_true", help="Treat warnings as errors")
    validate.set_defaults(func=_validate)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
