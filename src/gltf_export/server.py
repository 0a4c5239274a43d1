# gltf_export_server.py
from mcp.server.fastmcp import FastMCP, Context
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Any, Optional

from .errors import GltfFormatError
from .export import export_scene as run_export
from .logs import configure_logging
from .reader import load_gltf
from .scene import scene_from_dict
from .settings import ExportSettings, GltfFormat, SceneExportSettings
from .validator import validate_gltf

# Configure logging
configure_logging(logging.INFO)
logger = logging.getLogger("GltfExportServer")


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
    """Manage server startup and shutdown lifecycle"""
    try:
        logger.info("GltfExport server starting up")
        settings = ExportSettings.from_env()
        scene_settings = SceneExportSettings.from_env()
        logger.info(f"Default format: {settings.format.value if settings.format else 'by suffix'}, "
                    f"layer mask: {scene_settings.layer_mask:#x}")
        yield {}
    finally:
        logger.info("GltfExport server shut down")


# Create the MCP server with lifespan support
mcp = FastMCP(
    "GltfExport",
    lifespan=server_lifespan
)


def _load_scene_description(scene: str):
    """Inline JSON or a path to a JSON scene description"""
    text = scene.strip()
    if text.startswith("{"):
        return json.loads(text), Path.cwd()
    path = Path(text)
    return json.loads(path.read_text(encoding="utf-8")), path.parent


@mcp.tool()
async def export_scene(ctx: Context, scene: str, output_path: str,
                       format: Optional[str] = None, time_budget_ms: Optional[float] = None) -> str:
    """
    Export a scene description to glTF 2.0.

    Parameters:
    - scene: JSON scene description (inline, or a path to a .json file) with
      "objects", "meshes", "materials", "textures", "cameras", "lights", "environment"
    - output_path: target .glb or .gltf file
    - format: "glb" or "gltf" to override the file suffix
    - time_budget_ms: scheduling quantum for very large scenes

    Returns a JSON export report.
    """
    try:
        data, base_dir = _load_scene_description(scene)
        host, roots, name = scene_from_dict(data, base_dir)

        settings = ExportSettings.from_env()
        if format:
            settings.format = GltfFormat(format.lower())
        scene_settings = SceneExportSettings.from_env()
        if time_budget_ms is not None:
            scene_settings.time_budget = time_budget_ms / 1000.0

        report = await run_export(host, roots, output_path, name=name,
                                  settings=settings, scene_settings=scene_settings)
        logger.info(f"Exported {output_path}: {'ok' if report.success else 'failed'}")
        return json.dumps(report.to_dict(), indent=2)
    except Exception as e:
        logger.error(f"Error exporting scene: {str(e)}")
        return f"Error exporting scene: {str(e)}"


@mcp.tool()
def validate_gltf_file(ctx: Context, filepath: str, strict: bool = False) -> str:
    """
    Validate a .glb or .gltf file.

    Parameters:
    - filepath: file to validate
    - strict: treat warnings as errors
    """
    try:
        report = validate_gltf(filepath)
        if strict and report.warning_count > 0:
            report.valid = False
        return report.to_json()
    except Exception as e:
        logger.error(f"Error validating {filepath}: {str(e)}")
        return f"Error validating file: {str(e)}"


@mcp.tool()
def inspect_gltf_file(ctx: Context, filepath: str) -> str:
    """
    Summarize the contents of a .glb or .gltf file: scenes with their node
    trees, meshes, materials (with their model and alpha mode) and extensions.

    Parameters:
    - filepath: file to inspect
    """
    try:
        gltf = load_gltf(filepath).gltf
    except (GltfFormatError, OSError) as e:
        logger.error(f"Error reading {filepath}: {str(e)}")
        return f"Error reading file: {str(e)}"

    nodes = gltf.get("nodes", [])

    def tree(index: int, depth: int = 0) -> Dict[str, Any]:
        node = nodes[index]
        entry: Dict[str, Any] = {"index": index, "name": node.get("name")}
        for key in ("mesh", "camera"):
            if key in node:
                entry[key] = node[key]
        if depth < 32 and node.get("children"):
            entry["children"] = [tree(c, depth + 1) for c in node["children"]]
        return entry

    def material_model(material: Dict[str, Any]) -> str:
        extensions = material.get("extensions", {})
        if "KHR_materials_pbrSpecularGlossiness" in extensions:
            return "specular_glossiness"
        if "KHR_materials_unlit" in extensions:
            return "unlit"
        return "metallic_roughness"

    summary = {
        "generator": gltf.get("asset", {}).get("generator"),
        "extensions_used": gltf.get("extensionsUsed", []),
        "scenes": [
            {"name": s.get("name"), "roots": [tree(n) for n in s.get("nodes", []) if n < len(nodes)]}
            for s in gltf.get("scenes", [])
        ],
        "meshes": [
            {"name": m.get("name"), "primitives": len(m.get("primitives", []))}
            for m in gltf.get("meshes", [])
        ],
        "materials": [
            {"name": m.get("name"), "model": material_model(m),
             "alpha_mode": m.get("alphaMode", "OPAQUE"),
             "extras": sorted((m.get("extras") or {}).keys())}
            for m in gltf.get("materials", [])
        ],
        "textures": len(gltf.get("textures", [])),
        "cameras": len(gltf.get("cameras", [])),
        "lights": len(gltf.get("extensions", {}).get("KHR_lights_punctual", {}).get("lights", [])),
    }
    return json.dumps(summary, indent=2)


@mcp.prompt()
def export_workflow() -> str:
    """Defines the preferred workflow for exporting scenes"""
    return """When exporting a scene to glTF:

    1. Describe the scene as JSON: shared "meshes", "materials" and "textures" by name,
       and an "objects" tree referencing them. Objects sharing a mesh or material name
       share one glTF entry.
    2. Call export_scene() with a .glb path for a single self-contained file, or .gltf
       for JSON plus a sibling .bin.
    3. Read the report: "flawless": false means something was approximated or skipped;
       the warnings list says what.
    4. Use validate_gltf_file() and inspect_gltf_file() to check the result.
    """


# Main execution

def main():
    """Run the MCP server"""
    mcp.run()


if __name__ == "__main__":
    main()
