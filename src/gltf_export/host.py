"""
Host Provider Surface

What the exporter consumes from the host scene graph. The walker never
probes node objects by type; it asks the host through the capability
queries below, each returning a record or None.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .materials import ShadingConfig, SkyboxConfig
from .schema import CLAMP_TO_EDGE, LINEAR, LINEAR_MIPMAP_LINEAR, PrimitiveMode, REPEAT

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
Vec4 = Tuple[float, float, float, float]


@dataclass
class Transform:
    translation: Vec3 = (0.0, 0.0, 0.0)
    rotation: Vec4 = (0.0, 0.0, 0.0, 1.0)   # Quaternion (x, y, z, w)
    scale: Vec3 = (1.0, 1.0, 1.0)


@dataclass
class NodeInfo:
    name: Optional[str] = None
    layer: int = 0
    active: bool = True
    editor_only: bool = False
    guid: Optional[str] = None


@dataclass
class SubMesh:
    indices: Sequence[int]
    topology: PrimitiveMode = PrimitiveMode.TRIANGLES


@dataclass
class MeshData:
    """Vertex streams shared by all submeshes"""
    positions: Sequence[Vec3]
    submeshes: List[SubMesh] = field(default_factory=list)
    normals: Optional[Sequence[Vec3]] = None
    tangents: Optional[Sequence[Vec4]] = None
    uvs: Optional[Sequence[Vec2]] = None
    uvs2: Optional[Sequence[Vec2]] = None
    colors: Optional[Sequence[Vec4]] = None
    name: Optional[str] = None


class ShadowCastingMode(IntEnum):
    OFF = 0
    ON = 1
    TWO_SIDED = 2
    SHADOWS_ONLY = 3


@dataclass
class ShadowSettings:
    casting_mode: ShadowCastingMode = ShadowCastingMode.ON
    receive_shadows: bool = True

    def to_extras(self) -> Dict[str, Any]:
        return {"shadowData": {"shadowCastingMode": int(self.casting_mode),
                               "receiveShadows": self.receive_shadows}}


@dataclass
class Renderable:
    mesh: MeshData
    materials: List[Any] = field(default_factory=list)   # Host material handles per submesh
    shadows: Optional[ShadowSettings] = None
    enabled: bool = True


@dataclass
class CameraData:
    projection: str = "perspective"    # perspective | orthographic
    yfov: float = 0.8                  # Radians
    aspect_ratio: Optional[float] = None
    ortho_size: float = 1.0            # Half height of the view volume
    znear: float = 0.01
    zfar: Optional[float] = 1000.0
    name: Optional[str] = None
    enabled: bool = True


@dataclass
class LightData:
    type: str = "point"                # directional | point | spot
    color: Vec3 = (1.0, 1.0, 1.0)
    intensity: float = 1.0
    range: Optional[float] = None
    spot_angle: float = 0.7853981633974483   # Outer cone, radians
    inner_spot_angle: float = 0.0
    name: Optional[str] = None
    enabled: bool = True


@dataclass
class TextureImage:
    """Encoded or raw image bytes plus sampling state"""
    data: bytes
    mime_type: Optional[str] = None    # None = let the codec sniff
    name: Optional[str] = None
    wrap_s: int = REPEAT
    wrap_t: int = REPEAT
    mag_filter: Optional[int] = LINEAR
    min_filter: Optional[int] = LINEAR_MIPMAP_LINEAR

    @classmethod
    def clamped(cls, data: bytes, **kwargs) -> "TextureImage":
        return cls(data=data, wrap_s=CLAMP_TO_EDGE, wrap_t=CLAMP_TO_EDGE, **kwargs)


@dataclass
class LightSettings:
    """Scene-level ambient lighting carried as scene extras"""
    ambient_mode: int = 0
    intensity_multiplier: float = 1.0
    sky_colour: Vec4 = (0.212, 0.227, 0.259, 1.0)
    equator_colour: Vec4 = (0.114, 0.125, 0.133, 1.0)
    ground_colour: Vec4 = (0.047, 0.043, 0.035, 1.0)
    ambient_colour: Vec4 = (0.212, 0.227, 0.259, 1.0)

    def to_extras(self) -> Dict[str, Any]:
        return {"lightSettings": {
            "ambientMode": self.ambient_mode,
            "intensityMultiplier": float(self.intensity_multiplier),
            "skyColour": list(self.sky_colour),
            "equatorColour": list(self.equator_colour),
            "groundColour": list(self.ground_colour),
            "ambientColour": list(self.ambient_colour),
        }}


@runtime_checkable
class SceneHost(Protocol):
    def get_children(self, node) -> Sequence[Any]: ...

    def get_local_transform(self, node) -> Transform: ...

    def get_node_info(self, node) -> NodeInfo: ...

    def try_get_renderable(self, node) -> Optional[Renderable]: ...

    def try_get_camera(self, node) -> Optional[CameraData]: ...

    def try_get_light(self, node) -> Optional[LightData]: ...

    def get_shading_config(self, material) -> ShadingConfig: ...

    def get_texture_bytes(self, texture) -> Optional[TextureImage]: ...


@runtime_checkable
class EnvironmentProvider(Protocol):
    """Optional host capability: the active skybox and ambient lighting"""

    def get_skybox(self) -> Optional[SkyboxConfig]: ...

    def get_light_settings(self) -> Optional[LightSettings]: ...
