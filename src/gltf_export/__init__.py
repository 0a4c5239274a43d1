"""
glTF Scene Export

Compiles an in-memory scene graph (nodes, meshes, materials, cameras, lights)
into a glTF 2.0 document, written as a single GLB or as .gltf + .bin.

Features:
- Hierarchy: post-order walk, layer mask, editor-only/inactive exclusion
- Resources: identity-deduplicated materials, meshes, textures, cameras, lights
- Materials: metallic-roughness, specular-glossiness, unlit, transmission,
  skybox and particle extras
- Scheduling: time-budgeted cooperative walk, cancellation, async finalize
- Validation: reference, buffer range and hierarchy checks

Quick Start:
    import asyncio
    from gltf_export import InMemoryHost, SceneExport, SceneObject, cube_mesh

    host = InMemoryHost()
    root = SceneObject("Root")
    root.add_child(SceneObject("Cube", mesh=cube_mesh()))

    export = SceneExport(host)
    export.add_scene([root], "Main")
    asyncio.run(export.save_to_file("scene.glb"))
"""

from .errors import (
    ExportCancelledError,
    ExportError,
    GltfFormatError,
    MaterialConversionError,
    WriterDisposedError,
)
from .settings import ExportSettings, GltfFormat, ImageFormat, SceneExportSettings
from .logs import CollectingHandler, configure_logging
from .host import (
    CameraData,
    EnvironmentProvider,
    LightData,
    LightSettings,
    MeshData,
    NodeInfo,
    Renderable,
    SceneHost,
    ShadowCastingMode,
    ShadowSettings,
    SubMesh,
    TextureImage,
    Transform,
)
from .materials import MaterialConverter, ShadingConfig, SkyboxConfig, TextureSlot
from .registry import ResourceRegistry
from .packer import BufferPacker
from .scheduler import CancellationToken, DeferAgent, TimeBudgetDeferAgent, UninterruptedDeferAgent
from .writer import GltfWriter
from .walker import SceneWalker
from .export import ExportReport, SceneExport, export_scene
from .environment import EnvironmentCapability, EnvironmentUpdateQueue, apply_environment_extras
from .reader import load_gltf, read_accessor, read_glb
from .validator import ValidationReport, validate_document, validate_gltf
from .scene import InMemoryHost, SceneObject, cube_mesh, scene_from_dict

__version__ = "0.1.0"

__all__ = [
    # Main entry point
    'SceneExport',
    'export_scene',
    'ExportReport',
    # Settings and logging
    'ExportSettings',
    'SceneExportSettings',
    'GltfFormat',
    'ImageFormat',
    'CollectingHandler',
    'configure_logging',
    # Errors
    'ExportError',
    'WriterDisposedError',
    'ExportCancelledError',
    'MaterialConversionError',
    'GltfFormatError',
    # Host surface
    'SceneHost',
    'EnvironmentProvider',
    'NodeInfo',
    'Transform',
    'MeshData',
    'SubMesh',
    'Renderable',
    'ShadowCastingMode',
    'ShadowSettings',
    'CameraData',
    'LightData',
    'LightSettings',
    'TextureImage',
    'ShadingConfig',
    'SkyboxConfig',
    'TextureSlot',
    # Components
    'ResourceRegistry',
    'BufferPacker',
    'MaterialConverter',
    'SceneWalker',
    'GltfWriter',
    'CancellationToken',
    'DeferAgent',
    'TimeBudgetDeferAgent',
    'UninterruptedDeferAgent',
    # Environment
    'EnvironmentCapability',
    'EnvironmentUpdateQueue',
    'apply_environment_extras',
    # Read side
    'read_glb',
    'load_gltf',
    'read_accessor',
    'validate_gltf',
    'validate_document',
    'ValidationReport',
    # In-memory host
    'InMemoryHost',
    'SceneObject',
    'cube_mesh',
    'scene_from_dict',
]
