"""
glTF Reader

Read side of the container formats: GLB, loose .gltf with sibling buffers,
and embedded base64 data URIs. Used by the validator, the inspection tool
and round-trip tests.
"""

import base64
import json
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import GltfFormatError
from .schema import COMPONENT_SIZE, TYPE_COMPONENT_COUNT

GLB_MAGIC = b"glTF"
CHUNK_JSON = b"JSON"
CHUNK_BIN = b"BIN\x00"

STRUCT_FORMAT = {
    5120: "b",
    5121: "B",
    5122: "h",
    5123: "H",
    5125: "I",
    5126: "f",
}


@dataclass
class GltfContent:
    gltf: Dict[str, Any]
    buffers: List[bytes] = field(default_factory=list)
    path: Optional[Path] = None
    binary: bool = False


def read_glb(data: bytes) -> Tuple[Dict[str, Any], bytes]:
    """Split a GLB container into (JSON document, BIN chunk)"""
    if len(data) < 20:
        raise GltfFormatError("File too small to be a GLB container")
    magic, version, total_length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        raise GltfFormatError("Invalid GLB magic bytes")
    if version != 2:
        raise GltfFormatError(f"Unsupported GLB version: {version}")
    if total_length != len(data):
        raise GltfFormatError(f"GLB length {total_length} does not match file size {len(data)}")

    offset = 12
    gltf = None
    binary = b""
    while offset < total_length:
        if offset + 8 > total_length:
            raise GltfFormatError("Truncated chunk header")
        chunk_length, chunk_type = struct.unpack_from("<I4s", data, offset)
        offset += 8
        chunk = data[offset:offset + chunk_length]
        if len(chunk) != chunk_length:
            raise GltfFormatError("Truncated chunk data")
        offset += chunk_length

        if gltf is None:
            if chunk_type != CHUNK_JSON:
                raise GltfFormatError("First chunk is not JSON")
            try:
                gltf = json.loads(chunk.decode("utf-8"))
            except (UnicodeDecodeError, ValueError) as e:
                raise GltfFormatError(f"Invalid JSON chunk: {e}") from e
        elif chunk_type == CHUNK_BIN and not binary:
            binary = chunk

    if gltf is None:
        raise GltfFormatError("GLB has no JSON chunk")
    return gltf, binary


def decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if not header.endswith(";base64"):
        raise GltfFormatError("Only base64 data URIs are supported")
    return base64.b64decode(payload)


def load_gltf(path: Union[str, Path]) -> GltfContent:
    """Load a .glb or .gltf file with all of its buffers"""
    path = Path(path)
    raw = path.read_bytes()

    if raw[:4] == GLB_MAGIC:
        gltf, binary = read_glb(raw)
        content = GltfContent(gltf=gltf, path=path, binary=True)
        embedded = binary
    else:
        try:
            gltf = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise GltfFormatError(f"Invalid glTF JSON: {e}") from e
        content = GltfContent(gltf=gltf, path=path)
        embedded = None

    for index, buffer in enumerate(content.gltf.get("buffers", [])):
        uri = buffer.get("uri")
        if uri is None:
            if embedded is None:
                raise GltfFormatError(f"Buffer {index} has no uri and there is no GLB BIN chunk")
            content.buffers.append(embedded)
        elif uri.startswith("data:"):
            content.buffers.append(decode_data_uri(uri))
        else:
            try:
                content.buffers.append((path.parent / uri).read_bytes())
            except OSError as e:
                raise GltfFormatError(f"Buffer {index} '{uri}' could not be read: {e}") from e
    return content


def load_gltf_bytes(data: bytes) -> GltfContent:
    """Load a GLB, or a loose glTF whose buffers are data URIs, from memory"""
    if data[:4] == GLB_MAGIC:
        gltf, binary = read_glb(data)
        buffers = [binary] if gltf.get("buffers") else []
        return GltfContent(gltf=gltf, buffers=buffers, binary=True)
    gltf = json.loads(data.decode("utf-8"))
    buffers = [decode_data_uri(b["uri"]) for b in gltf.get("buffers", [])]
    return GltfContent(gltf=gltf, buffers=buffers)


def read_accessor(content: GltfContent, index: int) -> List[Any]:
    """Decode an accessor into scalars or tuples"""
    gltf = content.gltf
    accessor = gltf["accessors"][index]
    view = gltf["bufferViews"][accessor["bufferView"]]
    data = content.buffers[view["buffer"]]

    width = TYPE_COMPONENT_COUNT[accessor["type"]]
    component_type = accessor["componentType"]
    element_size = COMPONENT_SIZE[component_type] * width
    stride = view.get("byteStride") or element_size
    start = view.get("byteOffset", 0) + accessor.get("byteOffset", 0)
    fmt = "<%d%s" % (width, STRUCT_FORMAT[component_type])

    values = []
    for i in range(accessor["count"]):
        element = struct.unpack_from(fmt, data, start + i * stride)
        values.append(element[0] if width == 1 else element)
    return values
