"""
Document Writer

Accumulates a glTF document during an export session and serializes it to a
GLB container or to loose JSON + .bin.

The writer is single-use: after ``save_to_file`` / ``save_to_stream`` (whether
it succeeded or not) the session state is released and every further call
raises ``WriterDisposedError``.

GLB layout:
    header   magic 'glTF' | version 2 | total length
    chunk 0  length | 'JSON'     | UTF-8 JSON padded with spaces
    chunk 1  length | 'BIN\\0'    | buffer padded with zeros (omitted when empty)
"""

import asyncio
import base64
import json
import logging
import os
import struct
import tempfile
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Sequence, Tuple, Union

from .codec import encode_texture
from .errors import ExportError, WriterDisposedError
from .host import CameraData, LightData, Renderable, SceneHost, TextureImage
from .materials import MaterialConverter, ShadingConfig
from .packer import BufferPacker
from .registry import ResourceRegistry
from .scheduler import CancellationToken
from .schema import (
    Buffer,
    Camera,
    Document,
    Image,
    Light,
    Mesh,
    Node,
    Primitive,
    PrimitiveMode,
    Sampler,
    Scene,
    Texture,
)
from .settings import ExportSettings, GltfFormat

logger = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"
GLB_VERSION = 2
CHUNK_JSON = b"JSON"
CHUNK_BIN = b"BIN\x00"

LIGHT_TYPES = ("directional", "point", "spot")


def _pad(data: bytes, filler: bytes) -> bytes:
    return data + filler * ((4 - len(data) % 4) % 4)


def compose_glb(json_bytes: bytes, binary: bytes) -> bytes:
    """Build a GLB container from a JSON chunk and an optional BIN chunk"""
    json_bytes = _pad(json_bytes, b" ")
    chunks = [struct.pack("<I", len(json_bytes)), CHUNK_JSON, json_bytes]
    if binary:
        binary = _pad(binary, b"\x00")
        chunks += [struct.pack("<I", len(binary)), CHUNK_BIN, binary]
    body = b"".join(chunks)
    header = GLB_MAGIC + struct.pack("<II", GLB_VERSION, 12 + len(body))
    return header + body


class GltfWriter:
    """Incremental glTF document builder for one export session

    Args:
        settings: container, image and material options
        host: scene host resolving material handles and texture bytes;
            without one, handles must already be ShadingConfig / TextureImage
    """

    def __init__(self, settings: Optional[ExportSettings] = None, host: Optional[SceneHost] = None):
        self.settings = settings or ExportSettings()
        self.host = host
        self.document = Document(generator=self.settings.generator)
        self.packer = BufferPacker(self.document)
        self.converter = MaterialConverter(
            texture_index=self.add_texture,
            native_transmission=self.settings.native_transmission,
        )

        doc = self.document
        self._materials = ResourceRegistry(doc.materials, "material")
        self._meshes = ResourceRegistry(doc.meshes, "mesh")
        self._textures = ResourceRegistry(doc.textures, "texture")
        self._samplers = ResourceRegistry(doc.samplers, "sampler")
        self._cameras = ResourceRegistry(doc.cameras, "camera")
        self._lights = ResourceRegistry(doc.lights, "light")
        self._default_material: Optional[int] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def certify_not_disposed(self):
        if self._disposed:
            raise WriterDisposedError()

    # ========================================================================
    # Nodes and scenes
    # ========================================================================

    def add_node(self, translation=(0.0, 0.0, 0.0), rotation=(0.0, 0.0, 0.0, 1.0),
                 scale=(1.0, 1.0, 1.0), name: Optional[str] = None,
                 children: Sequence[int] = (), guid: Optional[str] = None) -> int:
        self.certify_not_disposed()
        count = len(self.document.nodes)
        for child in children:
            if not 0 <= child < count:
                raise ExportError(f"Child index {child} does not reference an existing node")
        node = Node(
            name=name,
            translation=tuple(float(v) for v in translation),
            rotation=tuple(float(v) for v in rotation),
            scale=tuple(float(v) for v in scale),
            children=list(children),
        )
        if guid:
            node.extras["guid"] = guid
        self.document.nodes.append(node)
        return count

    def add_scene(self, nodes: Sequence[int], name: Optional[str] = None,
                  extras: Optional[Dict[str, Any]] = None) -> int:
        self.certify_not_disposed()
        self.document.scenes.append(Scene(nodes=list(nodes), name=name, extras=dict(extras or {})))
        if self.document.scene is None:
            self.document.scene = 0
        return len(self.document.scenes) - 1

    # ========================================================================
    # Meshes and materials
    # ========================================================================

    def add_mesh_to_node(self, node_index: int, renderable: Renderable) -> bool:
        """Attach a host mesh with per-submesh materials to a node

        Returns False when some material could not be converted; the mesh is
        still attached, those primitives simply carry no material. Packing
        failures raise.
        """
        self.certify_not_disposed()
        packed = self.packer.pack_mesh(renderable.mesh)
        primitive_count = len(packed.primitives)

        handles = list(renderable.materials)
        if len(handles) > primitive_count:
            logger.warning("Mesh '%s': %d materials for %d submeshes, ignoring the extra ones",
                           renderable.mesh.name, len(handles), primitive_count)
            del handles[primitive_count:]
        handles.extend([None] * (primitive_count - len(handles)))

        success = True
        material_ids: List[Optional[int]] = []
        for handle, (_, mode) in zip(handles, packed.primitives):
            material_id = None
            if handle is not None:
                try:
                    material_id = self.add_material(handle)
                except Exception as e:
                    logger.error("Material %r could not be exported: %s", getattr(handle, "name", handle), e)
                    success = False
            if material_id is None and self.settings.default_material:
                material_id = self.add_default_material(points=mode == PrimitiveMode.POINTS)
            material_ids.append(material_id)

        extras = renderable.shadows.to_extras() if renderable.shadows is not None else {}
        key = (id(renderable.mesh), tuple(material_ids), json.dumps(extras, sort_keys=True))

        def build(_):
            primitives = [
                Primitive(attributes=dict(packed.attributes), indices=indices,
                          material=material_id, mode=mode)
                for (indices, mode), material_id in zip(packed.primitives, material_ids)
            ]
            return Mesh(primitives=primitives, name=renderable.mesh.name, extras=extras)

        self.document.nodes[node_index].mesh = self._meshes.register(renderable.mesh, build, key=key)
        return success

    def _shading_config(self, handle) -> ShadingConfig:
        if isinstance(handle, ShadingConfig):
            return handle
        if self.host is None:
            raise ExportError(f"No host to resolve material {handle!r}")
        return self.host.get_shading_config(handle)

    def add_material(self, handle) -> Optional[int]:
        """Register a host material, returning its document index (None for None)"""
        self.certify_not_disposed()
        return self._materials.register(
            handle, lambda h: self.converter.convert(self._shading_config(h))
        )

    def add_default_material(self, points: bool = False) -> int:
        material = self.converter.default_material(points_support=points)
        if self._default_material is None:
            self._default_material = self._materials.register(material, lambda m: m)
        return self._default_material

    # ========================================================================
    # Textures
    # ========================================================================

    def add_texture(self, handle) -> Optional[int]:
        """Register a host texture; returns None (and logs) if it cannot be embedded"""
        self.certify_not_disposed()
        try:
            return self._textures.register(handle, self._build_texture)
        except ExportError as e:
            logger.error("Texture %r skipped: %s", getattr(handle, "name", handle), e)
            return None

    def _build_texture(self, handle) -> Texture:
        if isinstance(handle, TextureImage):
            image = handle
        elif self.host is not None:
            image = self.host.get_texture_bytes(handle)
        else:
            image = None
        if image is None or not image.data:
            raise ExportError("no image data")

        payload, mime = encode_texture(image, self.settings.image_format, self.settings.jpeg_quality)
        view = self.packer.add_image(payload)
        self.document.images.append(Image(mime_type=mime, buffer_view=view, name=image.name))
        sampler = self.add_sampler(Sampler(
            mag_filter=image.mag_filter,
            min_filter=image.min_filter,
            wrap_s=image.wrap_s,
            wrap_t=image.wrap_t,
        ))
        return Texture(source=len(self.document.images) - 1, sampler=sampler, name=image.name)

    def add_sampler(self, sampler: Sampler) -> int:
        # Samplers are deduplicated by value
        return self._samplers.register(sampler, lambda s: s, key=sampler)

    # ========================================================================
    # Cameras and lights
    # ========================================================================

    def add_camera_to_node(self, node_index: int, camera: CameraData) -> int:
        self.certify_not_disposed()
        index = self._cameras.register(camera, self._build_camera)
        self.document.nodes[node_index].camera = index
        return index

    @staticmethod
    def _build_camera(camera: CameraData) -> Camera:
        if camera.projection == "orthographic":
            aspect = camera.aspect_ratio or 1.0
            return Camera(type="orthographic", name=camera.name,
                          xmag=camera.ortho_size * aspect, ymag=camera.ortho_size,
                          znear=camera.znear, zfar=camera.zfar)
        if camera.projection != "perspective":
            raise ExportError(f"Unknown camera projection '{camera.projection}'")
        return Camera(type="perspective", name=camera.name, yfov=camera.yfov,
                      aspect_ratio=camera.aspect_ratio, znear=camera.znear, zfar=camera.zfar)

    def add_light_to_node(self, node_index: int, light: LightData) -> int:
        self.certify_not_disposed()
        index = self._lights.register(light, self._build_light)
        self.document.nodes[node_index].light = index
        return index

    @staticmethod
    def _build_light(light: LightData) -> Light:
        if light.type not in LIGHT_TYPES:
            raise ExportError(f"Unknown light type '{light.type}'")
        return Light(
            type=light.type,
            name=light.name,
            color=tuple(light.color),
            intensity=light.intensity,
            range=light.range,
            inner_cone_angle=light.inner_spot_angle,
            outer_cone_angle=light.spot_angle,
        )

    # ========================================================================
    # Serialization
    # ========================================================================

    def digest(self) -> str:
        self.certify_not_disposed()
        return self.packer.digest()

    def _serialize(self, buffer_uri: Optional[str]) -> Tuple[bytes, bytes]:
        binary = self.packer.buffer_bytes()
        if binary:
            self.document.buffers = [Buffer(byte_length=len(binary), uri=buffer_uri)]
        gltf = self.document.to_dict()
        if self.settings.json_indent is None:
            text = json.dumps(gltf, separators=(",", ":"))
        else:
            text = json.dumps(gltf, indent=self.settings.json_indent)
        return text.encode("utf-8"), binary

    def to_glb(self) -> bytes:
        """Serialize to an in-memory GLB without finalizing the session"""
        self.certify_not_disposed()
        return compose_glb(*self._serialize(None))

    def dispose(self):
        """Release all session state; the writer is unusable afterwards"""
        self._disposed = True
        self.document = None
        self.packer = None
        self.converter = None

    async def save_to_file(self, path: Union[str, Path],
                           token: Optional[CancellationToken] = None) -> bool:
        self.certify_not_disposed()
        path = Path(path)
        try:
            if token is not None and token.cancelled:
                logger.warning("Export to %s cancelled before writing", path)
                return False

            fmt = self.settings.resolve_format(path)
            if fmt == GltfFormat.BINARY:
                files = {path: compose_glb(*self._serialize(None))}
            else:
                bin_path = path.with_suffix(".bin")
                json_bytes, binary = self._serialize(bin_path.name)
                files = {path: json_bytes}
                if binary:
                    files[bin_path] = binary

            if token is not None and token.cancelled:
                logger.warning("Export to %s cancelled before writing", path)
                return False

            await asyncio.to_thread(_write_files_atomic, files)
            logger.info("Wrote %s (%d bytes)", path, sum(len(data) for data in files.values()))
            return True
        except OSError as e:
            logger.error("Failed to write %s: %s", path, e)
            return False
        finally:
            self.dispose()

    async def save_to_stream(self, stream: BinaryIO,
                             token: Optional[CancellationToken] = None) -> bool:
        """Write a GLB (or JSON with a data-URI buffer) to a binary stream"""
        self.certify_not_disposed()
        try:
            if token is not None and token.cancelled:
                logger.warning("Export to stream cancelled before writing")
                return False

            if self.settings.resolve_format() == GltfFormat.BINARY:
                payload = compose_glb(*self._serialize(None))
            else:
                binary = self.packer.buffer_bytes()
                uri = "data:application/octet-stream;base64," + base64.b64encode(binary).decode("ascii")
                payload, _ = self._serialize(uri if binary else None)

            if token is not None and token.cancelled:
                logger.warning("Export to stream cancelled before writing")
                return False

            await asyncio.to_thread(_write_stream, stream, payload)
            return True
        except OSError as e:
            logger.error("Failed to write stream: %s", e)
            return False
        finally:
            self.dispose()


def _write_stream(stream: BinaryIO, payload: bytes):
    stream.write(payload)
    stream.flush()


def _write_files_atomic(files: Dict[Path, bytes]):
    """Write every file to a temp sibling, then move all into place

    A failure before the moves leaves no output at all.
    """
    staged: List[Tuple[str, Path]] = []
    try:
        for target, data in files.items():
            fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp",
                                       dir=target.parent)
            staged.append((tmp, target))
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        for tmp, target in staged:
            os.replace(tmp, target)
    finally:
        for tmp, _ in staged:
            if os.path.exists(tmp):
                os.remove(tmp)
