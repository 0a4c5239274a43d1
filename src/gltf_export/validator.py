"""
glTF Validator

Validates glTF/GLB documents produced by the exporter (or anyone else).
Reports problems that would cause issues in renderers or game engines.

Validation Checks:
- Structure: required fields, asset version, buffer/bufferView/accessor ranges
- References: every index points into its target list
- Hierarchy: nodes form a forest (one parent at most, no cycles)
- Materials: alpha mode, factor ranges, texture references, exclusive extras
- Compatibility: extensions, file and texture sizes
"""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .errors import GltfFormatError
from .reader import load_gltf
from .schema import COMPONENT_SIZE, TYPE_COMPONENT_COUNT


class Severity(Enum):
    ERROR = "error"      # Will cause failures
    WARNING = "warning"  # May cause issues
    INFO = "info"        # Informational


@dataclass
class ValidationIssue:
    """A single validation issue"""
    severity: Severity
    category: str
    message: str
    path: Optional[str] = None  # JSON path to issue location

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "category": self.category,
            "message": self.message,
            "path": self.path,
        }


@dataclass
class ValidationReport:
    """Complete validation report"""
    filepath: str = ""
    valid: bool = True
    issues: List[ValidationIssue] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, category: str, message: str, path: str = None):
        self.issues.append(ValidationIssue(Severity.ERROR, category, message, path))
        self.valid = False

    def add_warning(self, category: str, message: str, path: str = None):
        self.issues.append(ValidationIssue(Severity.WARNING, category, message, path))

    def add_info(self, category: str, message: str, path: str = None):
        self.issues.append(ValidationIssue(Severity.INFO, category, message, path))

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.WARNING)

    def errors_in(self, category: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR and i.category == category]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filepath": self.filepath,
            "valid": self.valid,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "issues": [i.to_dict() for i in self.issues],
            "stats": self.stats,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def summary(self) -> str:
        """Human-readable summary"""
        lines = [
            f"Validation Report: {self.filepath or '<memory>'}",
            f"Status: {'VALID' if self.valid else 'INVALID'}",
            f"Errors: {self.error_count}, Warnings: {self.warning_count}",
        ]

        if self.stats:
            lines.append(f"Stats: {self.stats}")

        if self.issues:
            lines.append("\nIssues:")
            for issue in self.issues:
                prefix = "❌" if issue.severity == Severity.ERROR else "⚠️" if issue.severity == Severity.WARNING else "ℹ️"
                lines.append(f"  {prefix} [{issue.category}] {issue.message}")
                if issue.path:
                    lines.append(f"      at {issue.path}")

        return "\n".join(lines)


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class GltfValidator:
    """
    Validates a parsed glTF document.

    ``buffers`` are the resolved buffer contents (GLB BIN chunk, sibling
    files or data URIs); without them only byte ranges against the declared
    ``byteLength`` are checked.
    """

    def __init__(self, gltf: Dict[str, Any], buffers: Optional[Sequence[bytes]] = None,
                 report: Optional[ValidationReport] = None):
        self.gltf = gltf
        self.buffers = buffers
        self.report = report or ValidationReport()

    def validate(self) -> ValidationReport:
        self._validate_structure()
        self._validate_references()
        self._validate_buffers()
        self._validate_hierarchy()
        self._validate_meshes()
        self._validate_materials()
        self._validate_textures()
        self._validate_scenes()
        self._check_compatibility()
        self._gather_stats()
        return self.report

    def _validate_structure(self):
        """Validate required glTF structure"""
        if "asset" not in self.gltf:
            self.report.add_error("structure", "Missing required 'asset' property")
        else:
            asset = self.gltf["asset"]
            if "version" not in asset:
                self.report.add_error("structure", "Missing asset.version")
            elif asset["version"] not in ("2.0",):
                self.report.add_warning("version", f"Unexpected version: {asset['version']}")

    def _check_index(self, idx, target_array: str, path: str):
        count = len(self.gltf.get(target_array, []))
        if not _is_index(idx) or not 0 <= idx < count:
            self.report.add_error("reference", f"Invalid {target_array} index {idx}", path)

    def _texture_infos(self, material: Dict[str, Any]):
        """(json path suffix, textureInfo) for every texture a material references"""
        pbr = material.get("pbrMetallicRoughness", {})
        for key in ("baseColorTexture", "metallicRoughnessTexture"):
            if key in pbr:
                yield f"pbrMetallicRoughness.{key}", pbr[key]
        for key in ("normalTexture", "occlusionTexture", "emissiveTexture"):
            if key in material:
                yield key, material[key]
        extensions = material.get("extensions", {})
        spec_gloss = extensions.get("KHR_materials_pbrSpecularGlossiness", {})
        for key in ("diffuseTexture", "specularGlossinessTexture"):
            if key in spec_gloss:
                yield f"extensions.KHR_materials_pbrSpecularGlossiness.{key}", spec_gloss[key]
        transmission = extensions.get("KHR_materials_transmission", {})
        if "transmissionTexture" in transmission:
            yield "extensions.KHR_materials_transmission.transmissionTexture", transmission["transmissionTexture"]

    def _validate_references(self):
        """Every cross reference must point into its target list"""
        gltf = self.gltf
        light_count = len(gltf.get("extensions", {}).get("KHR_lights_punctual", {}).get("lights", []))

        for i, scene in enumerate(gltf.get("scenes", [])):
            for j, idx in enumerate(scene.get("nodes", [])):
                self._check_index(idx, "nodes", f"scenes[{i}].nodes[{j}]")

        for i, node in enumerate(gltf.get("nodes", [])):
            path = f"nodes[{i}]"
            for j, idx in enumerate(node.get("children", [])):
                self._check_index(idx, "nodes", f"{path}.children[{j}]")
            if "mesh" in node:
                self._check_index(node["mesh"], "meshes", f"{path}.mesh")
            if "camera" in node:
                self._check_index(node["camera"], "cameras", f"{path}.camera")
            light = node.get("extensions", {}).get("KHR_lights_punctual")
            if light is not None:
                idx = light.get("light")
                if not _is_index(idx) or not 0 <= idx < light_count:
                    self.report.add_error("reference", f"Invalid light index {idx}", f"{path}.extensions")

        for i, mesh in enumerate(gltf.get("meshes", [])):
            for j, prim in enumerate(mesh.get("primitives", [])):
                path = f"meshes[{i}].primitives[{j}]"
                for semantic, idx in prim.get("attributes", {}).items():
                    self._check_index(idx, "accessors", f"{path}.attributes.{semantic}")
                if "indices" in prim:
                    self._check_index(prim["indices"], "accessors", f"{path}.indices")
                if "material" in prim:
                    self._check_index(prim["material"], "materials", f"{path}.material")

        for i, accessor in enumerate(gltf.get("accessors", [])):
            if "bufferView" in accessor:
                self._check_index(accessor["bufferView"], "bufferViews", f"accessors[{i}].bufferView")
        for i, view in enumerate(gltf.get("bufferViews", [])):
            self._check_index(view.get("buffer"), "buffers", f"bufferViews[{i}].buffer")
        for i, image in enumerate(gltf.get("images", [])):
            if "bufferView" in image:
                self._check_index(image["bufferView"], "bufferViews", f"images[{i}].bufferView")
        for i, tex in enumerate(gltf.get("textures", [])):
            if "source" in tex:
                self._check_index(tex["source"], "images", f"textures[{i}].source")
            if "sampler" in tex:
                self._check_index(tex["sampler"], "samplers", f"textures[{i}].sampler")
        for i, material in enumerate(gltf.get("materials", [])):
            for key, info in self._texture_infos(material):
                self._check_index(info.get("index"), "textures", f"materials[{i}].{key}")

    def _validate_buffers(self):
        """bufferViews inside their buffer, accessors inside their bufferView"""
        buffers = self.gltf.get("buffers", [])
        views = self.gltf.get("bufferViews", [])

        for i, buffer in enumerate(buffers):
            if self.buffers is not None and i < len(self.buffers):
                if len(self.buffers[i]) < buffer.get("byteLength", 0):
                    self.report.add_error("buffer", f"Buffer data shorter than byteLength {buffer.get('byteLength')}",
                                          f"buffers[{i}]")

        for i, view in enumerate(views):
            buffer_idx = view.get("buffer")
            if not _is_index(buffer_idx) or not 0 <= buffer_idx < len(buffers):
                continue
            end = view.get("byteOffset", 0) + view.get("byteLength", 0)
            if end > buffers[buffer_idx].get("byteLength", 0):
                self.report.add_error("buffer", "bufferView exceeds its buffer", f"bufferViews[{i}]")

        for i, accessor in enumerate(self.gltf.get("accessors", [])):
            path = f"accessors[{i}]"
            component_size = COMPONENT_SIZE.get(accessor.get("componentType"))
            width = TYPE_COMPONENT_COUNT.get(accessor.get("type"))
            if component_size is None or width is None:
                self.report.add_error("accessor", "Unknown componentType or type", path)
                continue
            view_idx = accessor.get("bufferView")
            if not _is_index(view_idx) or not 0 <= view_idx < len(views):
                continue
            view = views[view_idx]
            offset = accessor.get("byteOffset", 0)
            if offset % component_size:
                self.report.add_error("accessor", "byteOffset not aligned to component size", path)
            stride = view.get("byteStride") or component_size * width
            count = accessor.get("count", 0)
            needed = offset + (stride * (count - 1) + component_size * width if count else 0)
            if needed > view.get("byteLength", 0):
                self.report.add_error("accessor", "Accessor exceeds its bufferView", path)
            if (view.get("byteOffset", 0) + offset) % component_size:
                self.report.add_error("accessor", "Accessor data not aligned in buffer", path)

    def _validate_hierarchy(self):
        """Nodes must form a forest"""
        nodes = self.gltf.get("nodes", [])
        parent: Dict[int, int] = {}
        for i, node in enumerate(nodes):
            for child in node.get("children", []):
                if not _is_index(child) or not 0 <= child < len(nodes):
                    continue
                if child == i:
                    self.report.add_error("hierarchy", "Node is its own child", f"nodes[{i}]")
                elif child in parent:
                    self.report.add_error("hierarchy", f"Node {child} has more than one parent", f"nodes[{i}]")
                else:
                    parent[child] = i

        for start in range(len(nodes)):
            seen = {start}
            current = start
            while current in parent:
                current = parent[current]
                if current in seen:
                    self.report.add_error("hierarchy", "Node hierarchy contains a cycle", f"nodes[{start}]")
                    break
                seen.add(current)

        for i, scene in enumerate(self.gltf.get("scenes", [])):
            for idx in scene.get("nodes", []):
                if idx in parent:
                    self.report.add_error("hierarchy", f"Scene root {idx} is also a child node", f"scenes[{i}]")

    def _validate_meshes(self):
        """Validate mesh primitives"""
        meshes = self.gltf.get("meshes", [])
        accessors = self.gltf.get("accessors", [])

        for i, mesh in enumerate(meshes):
            primitives = mesh.get("primitives", [])

            if not primitives:
                self.report.add_warning("mesh", "Mesh has no primitives", f"meshes[{i}]")
                continue

            for j, prim in enumerate(primitives):
                path = f"meshes[{i}].primitives[{j}]"
                attributes = prim.get("attributes", {})

                # POSITION is required
                if "POSITION" not in attributes:
                    self.report.add_error("mesh", "Missing POSITION attribute", path)
                else:
                    pos_idx = attributes["POSITION"]
                    if _is_index(pos_idx) and 0 <= pos_idx < len(accessors):
                        accessor = accessors[pos_idx]
                        if accessor.get("type") != "VEC3":
                            self.report.add_error("mesh", "POSITION must be VEC3", path)
                        if "min" not in accessor or "max" not in accessor:
                            self.report.add_error("mesh", "POSITION accessor needs min and max", path)

                if "NORMAL" not in attributes:
                    self.report.add_info("mesh", "Missing NORMAL attribute (will be generated)", path)

                mode = prim.get("mode", 4)  # Default is TRIANGLES
                if mode not in (0, 1, 2, 3, 4, 5, 6):
                    self.report.add_error("mesh", f"Invalid primitive mode: {mode}", path)

    def _validate_materials(self):
        """Validate PBR materials"""
        for i, mat in enumerate(self.gltf.get("materials", [])):
            path = f"materials[{i}]"
            pbr = mat.get("pbrMetallicRoughness", {})

            base_color = pbr.get("baseColorFactor", [1, 1, 1, 1])
            if len(base_color) != 4:
                self.report.add_error("material", "baseColorFactor must have 4 components", path)
            elif any(c < 0 or c > 1 for c in base_color):
                self.report.add_warning("material", "baseColorFactor values should be 0-1", path)

            metallic = pbr.get("metallicFactor", 1.0)
            roughness = pbr.get("roughnessFactor", 1.0)
            if not (0 <= metallic <= 1):
                self.report.add_warning("material", f"metallicFactor out of range: {metallic}", path)
            if not (0 <= roughness <= 1):
                self.report.add_warning("material", f"roughnessFactor out of range: {roughness}", path)

            alpha_mode = mat.get("alphaMode", "OPAQUE")
            if alpha_mode not in ("OPAQUE", "MASK", "BLEND"):
                self.report.add_error("material", f"Invalid alphaMode: {alpha_mode}", path)
            if "alphaCutoff" in mat:
                cutoff = mat["alphaCutoff"]
                if alpha_mode != "MASK":
                    self.report.add_warning("material", "alphaCutoff set outside MASK mode", path)
                if not (0 <= cutoff <= 1):
                    self.report.add_warning("material", f"alphaCutoff out of range: {cutoff}", path)

            extras = mat.get("extras", {})
            skybox = extras.get("skyboxData", {}).get("isSkybox", False)
            particles = extras.get("particlesUnlitData", {}).get("isParticlesUnlit", False)
            if skybox and particles:
                self.report.add_error("material", "skyboxData and particlesUnlitData are exclusive", path)

    def _validate_textures(self):
        """Validate images"""
        for i, image in enumerate(self.gltf.get("images", [])):
            path = f"images[{i}]"
            if "uri" not in image and "bufferView" not in image:
                self.report.add_error("texture", "Image has no uri or bufferView", path)
            if "bufferView" in image and image.get("mimeType") not in ("image/png", "image/jpeg"):
                self.report.add_error("texture", "Embedded image needs mimeType image/png or image/jpeg", path)

    def _validate_scenes(self):
        """Validate scene structure"""
        scenes = self.gltf.get("scenes", [])

        if not scenes:
            self.report.add_warning("scene", "No scenes defined")

        default_scene = self.gltf.get("scene")
        if default_scene is not None and not (_is_index(default_scene) and 0 <= default_scene < len(scenes)):
            self.report.add_error("scene", f"Invalid default scene index: {default_scene}")

    def _check_compatibility(self):
        """Check for compatibility issues with common engines"""
        extensions_used = set(self.gltf.get("extensionsUsed", []))
        extensions_required = self.gltf.get("extensionsRequired", [])

        for ext in extensions_required:
            if ext not in extensions_used:
                self.report.add_error("extensions", f"Required extension {ext} missing from extensionsUsed")

        problematic_extensions = {
            "KHR_materials_pbrSpecularGlossiness": "Archived extension, not supported by all viewers",
            "KHR_materials_transmission": "Glass materials may not render correctly",
        }
        for ext in extensions_used:
            if ext in problematic_extensions:
                self.report.add_info("compatibility", f"Extension {ext}: {problematic_extensions[ext]}")

        buffer_views = self.gltf.get("bufferViews", [])
        for i, image in enumerate(self.gltf.get("images", [])):
            bv_idx = image.get("bufferView")
            if _is_index(bv_idx) and 0 <= bv_idx < len(buffer_views):
                size = buffer_views[bv_idx].get("byteLength", 0)
                if size > 4 * 1024 * 1024:  # 4MB per texture
                    self.report.add_warning(
                        "size",
                        f"Large embedded texture: {size / (1024*1024):.1f}MB",
                        f"images[{i}]"
                    )

    def _gather_stats(self):
        """Gather statistics about the document"""
        stats = {}
        for key in ("scenes", "nodes", "meshes", "materials", "textures", "images",
                    "cameras", "accessors", "bufferViews"):
            stats[key] = len(self.gltf.get(key, []))
        stats["primitives"] = sum(len(m.get("primitives", [])) for m in self.gltf.get("meshes", []))
        stats["extensions_used"] = self.gltf.get("extensionsUsed", [])

        asset = self.gltf.get("asset", {})
        stats["generator"] = asset.get("generator", "Unknown")
        stats["version"] = asset.get("version", "Unknown")
        self.report.stats = stats


def validate_document(gltf: Dict[str, Any], buffers: Optional[Sequence[bytes]] = None) -> ValidationReport:
    """Validate an in-memory glTF JSON document"""
    return GltfValidator(gltf, buffers).validate()


def validate_gltf(filepath: Union[str, Path]) -> ValidationReport:
    """
    Validate a glTF/GLB file.

    Args:
        filepath: Path to the file

    Returns:
        ValidationReport with all issues
    """
    report = ValidationReport(filepath=str(filepath))

    if not os.path.exists(filepath):
        report.add_error("file", f"File not found: {filepath}")
        return report

    try:
        content = load_gltf(filepath)
    except (GltfFormatError, OSError) as e:
        report.add_error("parse", f"Failed to parse file: {e}")
        return report

    GltfValidator(content.gltf, content.buffers, report).validate()

    file_size = os.path.getsize(filepath)
    if file_size > 50 * 1024 * 1024:  # 50MB
        report.add_warning("size", f"Large file size: {file_size / (1024*1024):.1f}MB")
    report.stats["file_size"] = file_size
    return report
