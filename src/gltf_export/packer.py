"""
Buffer Packer

Packs vertex attribute streams, index streams and embedded images into the
session's single binary buffer and records the matching bufferViews and
accessors in the document.

Every bufferView starts on a 4-byte boundary. Padding bytes are zero and are
not part of any view (byteLength excludes them, ``digest()`` skips them).
"""

import hashlib
import logging
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import ExportError
from .host import MeshData
from .registry import ResourceRegistry
from .schema import (
    ARRAY_BUFFER,
    ELEMENT_ARRAY_BUFFER,
    FLOAT,
    TYPE_COMPONENT_COUNT,
    UNSIGNED_INT,
    UNSIGNED_SHORT,
    Accessor,
    BufferView,
    Document,
    PrimitiveMode,
)

logger = logging.getLogger(__name__)

ALIGNMENT = 4
MAX_UINT16_INDEX = 65535  # Reserved as primitive restart value

STRUCT_FORMAT = {
    FLOAT: "f",
    UNSIGNED_SHORT: "H",
    UNSIGNED_INT: "I",
}

# (MeshData attribute, glTF semantic, accessor type)
VERTEX_STREAMS = (
    ("normals", "NORMAL", "VEC3"),
    ("tangents", "TANGENT", "VEC4"),
    ("uvs", "TEXCOORD_0", "VEC2"),
    ("uvs2", "TEXCOORD_1", "VEC2"),
    ("colors", "COLOR_0", "VEC4"),
)


@dataclass
class PackedMesh:
    """Accessor indices of one packed host mesh"""
    attributes: Dict[str, int] = field(default_factory=dict)
    # (indices accessor or None, topology) per submesh, host order
    primitives: List[Tuple[Optional[int], PrimitiveMode]] = field(default_factory=list)


def _pad_length(length: int, alignment: int = ALIGNMENT) -> int:
    return (alignment - length % alignment) % alignment


class BufferPacker:
    """Growable binary buffer bound to one document (buffer index 0)"""

    def __init__(self, document: Document, buffer_index: int = 0):
        self.document = document
        self.buffer_index = buffer_index
        self.data = bytearray()
        self._ranges: List[Tuple[int, int]] = []
        self._packed: List[PackedMesh] = []
        self.meshes = ResourceRegistry(self._packed, "mesh data")

    def __len__(self) -> int:
        return len(self.data)

    # ========================================================================
    # Views and accessors
    # ========================================================================

    def add_view(self, payload: bytes, target: Optional[int] = None,
                 byte_stride: Optional[int] = None) -> int:
        self.data.extend(b"\x00" * _pad_length(len(self.data)))
        offset = len(self.data)
        self.data.extend(payload)
        self._ranges.append((offset, len(payload)))

        self.document.buffer_views.append(BufferView(
            buffer=self.buffer_index,
            byte_offset=offset,
            byte_length=len(payload),
            byte_stride=byte_stride,
            target=target,
        ))
        return len(self.document.buffer_views) - 1

    def add_accessor(self, values: Sequence, component_type: int, accessor_type: str,
                     target: Optional[int] = None, bounds: bool = False) -> int:
        """Pack ``values`` (scalars or equal-length tuples) into a new view + accessor"""
        width = TYPE_COMPONENT_COUNT[accessor_type]
        flat: List = []
        for value in values:
            if width == 1:
                flat.append(value)
            else:
                if len(value) != width:
                    raise ExportError(f"Expected {width} components for {accessor_type}, got {len(value)}")
                flat.extend(value)

        fmt = "<%d%s" % (len(flat), STRUCT_FORMAT[component_type])
        view = self.add_view(struct.pack(fmt, *flat), target=target)

        accessor = Accessor(
            buffer_view=view,
            component_type=component_type,
            count=len(values),
            type=accessor_type,
        )
        if bounds and values:
            accessor.min = [min(flat[i::width]) for i in range(width)]
            accessor.max = [max(flat[i::width]) for i in range(width)]
        self.document.accessors.append(accessor)
        return len(self.document.accessors) - 1

    def add_indices(self, indices: Sequence[int], vertex_count: int) -> int:
        if not indices:
            raise ExportError("Empty index stream")
        highest = max(indices)
        if highest >= vertex_count or min(indices) < 0:
            raise ExportError(f"Index {highest} out of range for {vertex_count} vertices")
        component_type = UNSIGNED_SHORT if highest < MAX_UINT16_INDEX else UNSIGNED_INT
        return self.add_accessor([int(i) for i in indices], component_type, "SCALAR",
                                 target=ELEMENT_ARRAY_BUFFER)

    def add_image(self, payload: bytes) -> int:
        return self.add_view(payload)

    # ========================================================================
    # Meshes
    # ========================================================================

    def pack_mesh(self, mesh: MeshData) -> PackedMesh:
        """Pack a host mesh once per session, return its accessors"""
        index = self.meshes.register(mesh, self._pack_mesh)
        return self._packed[index]

    def _pack_mesh(self, mesh: MeshData) -> PackedMesh:
        vertex_count = len(mesh.positions)
        if vertex_count == 0:
            raise ExportError(f"Mesh '{mesh.name}' has no vertices")

        mark = self._mark()
        try:
            packed = self._pack_streams(mesh, vertex_count)
        except Exception:
            self._rollback(mark)
            raise

        logger.debug("Packed mesh '%s': %d vertices, %d primitives",
                     mesh.name, vertex_count, len(packed.primitives))
        return packed

    def _pack_streams(self, mesh: MeshData, vertex_count: int) -> PackedMesh:
        packed = PackedMesh()
        packed.attributes["POSITION"] = self.add_accessor(
            [tuple(float(c) for c in p) for p in mesh.positions],
            FLOAT, "VEC3", target=ARRAY_BUFFER, bounds=True,
        )

        for attr, semantic, accessor_type in VERTEX_STREAMS:
            stream = getattr(mesh, attr)
            if stream is None:
                continue
            if len(stream) != vertex_count:
                logger.warning("Mesh '%s': %s has %d entries for %d vertices, skipping stream",
                               mesh.name, semantic, len(stream), vertex_count)
                continue
            packed.attributes[semantic] = self.add_accessor(
                [tuple(float(c) for c in v) for v in stream],
                FLOAT, accessor_type, target=ARRAY_BUFFER,
            )

        if not mesh.submeshes:
            packed.primitives.append((None, PrimitiveMode.TRIANGLES))
        for submesh in mesh.submeshes:
            indices = self.add_indices(submesh.indices, vertex_count)
            packed.primitives.append((indices, PrimitiveMode(submesh.topology)))
        return packed

    def _mark(self) -> Tuple[int, int, int, int]:
        return (len(self.data), len(self._ranges),
                len(self.document.buffer_views), len(self.document.accessors))

    def _rollback(self, mark: Tuple[int, int, int, int]):
        """Drop every view and accessor added since ``mark``"""
        data, ranges, views, accessors = mark
        del self.data[data:]
        del self._ranges[ranges:]
        del self.document.buffer_views[views:]
        del self.document.accessors[accessors:]

    # ========================================================================
    # Output
    # ========================================================================

    def buffer_bytes(self) -> bytes:
        """Buffer contents padded to 4 bytes"""
        return bytes(self.data) + b"\x00" * _pad_length(len(self.data))

    def digest(self) -> str:
        """SHA-256 over view contents only, padding excluded"""
        sha = hashlib.sha256()
        for offset, length in self._ranges:
            sha.update(self.data[offset:offset + length])
        return sha.hexdigest()
