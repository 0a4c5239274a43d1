"""
Export Settings

Configuration for a glTF export session.

- ExportSettings: document/container level options (format, images, extensions)
- SceneExportSettings: scene traversal options (layers, inactive objects, time budget)

Both can be read from ``GLTF_EXPORT_*`` environment variables.
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union


# Environment variable names
ENV_FORMAT = "GLTF_EXPORT_FORMAT"
ENV_IMAGE_FORMAT = "GLTF_EXPORT_IMAGE_FORMAT"
ENV_JPEG_QUALITY = "GLTF_EXPORT_JPEG_QUALITY"
ENV_NATIVE_TRANSMISSION = "GLTF_EXPORT_NATIVE_TRANSMISSION"
ENV_LAYER_MASK = "GLTF_EXPORT_LAYER_MASK"
ENV_ONLY_ACTIVE = "GLTF_EXPORT_ONLY_ACTIVE"
ENV_DISABLED_COMPONENTS = "GLTF_EXPORT_DISABLED_COMPONENTS"
ENV_TIME_BUDGET_MS = "GLTF_EXPORT_TIME_BUDGET_MS"

ALL_LAYERS = 0xFFFFFFFF
DEFAULT_GENERATOR = "gltf-export"


class GltfFormat(Enum):
    BINARY = "glb"   # Single self-contained GLB container
    JSON = "gltf"    # Loose JSON + sibling .bin


class ImageFormat(Enum):
    KEEP = "keep"    # Pass PNG/JPEG through, re-encode anything else as PNG
    PNG = "png"
    JPEG = "jpeg"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def format_for_path(path: Union[str, Path]) -> Optional[GltfFormat]:
    """Infer the output container from a file suffix"""
    suffix = Path(path).suffix.lower()
    if suffix == ".glb":
        return GltfFormat.BINARY
    if suffix == ".gltf":
        return GltfFormat.JSON
    return None


@dataclass
class ExportSettings:
    """Settings for the document writer"""
    # Container (None = infer from file suffix, binary for streams)
    format: Optional[GltfFormat] = None

    # Images
    image_format: ImageFormat = ImageFormat.KEEP
    jpeg_quality: int = 90

    # Materials
    native_transmission: bool = False  # Emit KHR_materials_transmission instead of approximating
    default_material: bool = False     # Assign a default material to material-less primitives

    # JSON output
    json_indent: Optional[int] = None
    generator: str = DEFAULT_GENERATOR

    @classmethod
    def from_env(cls) -> "ExportSettings":
        settings = cls()
        fmt = os.getenv(ENV_FORMAT)
        if fmt:
            settings.format = GltfFormat(fmt.strip().lower())
        image_format = os.getenv(ENV_IMAGE_FORMAT)
        if image_format:
            settings.image_format = ImageFormat(image_format.strip().lower())
        settings.jpeg_quality = int(os.getenv(ENV_JPEG_QUALITY, settings.jpeg_quality))
        settings.native_transmission = _env_bool(ENV_NATIVE_TRANSMISSION, settings.native_transmission)
        return settings

    def resolve_format(self, path: Optional[Union[str, Path]] = None) -> GltfFormat:
        if self.format is not None:
            return self.format
        if path is not None:
            return format_for_path(path) or GltfFormat.BINARY
        return GltfFormat.BINARY


@dataclass
class SceneExportSettings:
    """Settings for the scene graph walk"""
    layer_mask: int = ALL_LAYERS           # Node content exported iff (1 << layer) & layer_mask
    only_active_in_hierarchy: bool = True  # Skip inactive nodes (their children are still visited)
    disabled_components: bool = False      # Export disabled renderers/cameras/lights too

    # Scheduling quantum in seconds (None = never defer)
    time_budget: Optional[float] = None

    @classmethod
    def from_env(cls) -> "SceneExportSettings":
        settings = cls()
        mask = os.getenv(ENV_LAYER_MASK)
        if mask:
            settings.layer_mask = int(mask, 0)
        settings.only_active_in_hierarchy = _env_bool(ENV_ONLY_ACTIVE, settings.only_active_in_hierarchy)
        settings.disabled_components = _env_bool(ENV_DISABLED_COMPONENTS, settings.disabled_components)
        budget_ms = os.getenv(ENV_TIME_BUDGET_MS)
        if budget_ms:
            settings.time_budget = float(budget_ms) / 1000.0
        return settings

    def includes_layer(self, layer: int) -> bool:
        return ((1 << layer) & self.layer_mask) != 0
