"""
Material Converter

Maps a host shading configuration onto the closest glTF material model.

Branch priority:
1. specular-glossiness  -> KHR_materials_pbrSpecularGlossiness
2. particles-unlit      -> KHR_materials_unlit + particlesUnlitData extras
3. unlit                -> KHR_materials_unlit
4. everything else      -> pbrMetallicRoughness

Alpha handling is independent of the branch. Transmission is either written
natively (KHR_materials_transmission) or folded into the alpha channel as a
logged approximation.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import MaterialConversionError
from .schema import (
    AlphaMode,
    Material,
    MaterialExtras,
    MaterialKind,
    NormalTextureInfo,
    OcclusionTextureInfo,
    ParticlesUnlitData,
    PbrMetallicRoughness,
    PbrSpecularGlossiness,
    SkyboxData,
    SkyboxMode,
    TextureInfo,
    TextureTransform,
    Transmission,
)

logger = logging.getLogger(__name__)

DEFAULT_MATERIAL_NAME = "Default"

Color = Tuple[float, float, float, float]


@dataclass
class TextureSlot:
    """A texture bound to a material channel"""
    texture: Any                          # Host texture handle
    uv_channel: int = 0
    offset: Tuple[float, float] = (0.0, 0.0)
    scale: Tuple[float, float] = (1.0, 1.0)
    rotation: float = 0.0


@dataclass
class SkyboxConfig:
    """Host environment/skybox shader parameters"""
    mode: SkyboxMode = SkyboxMode.CUBE_MAP
    tint: Color = (0.5, 0.5, 0.5, 1.0)
    exposure: float = 1.0
    rotation: float = 0.0

    # Procedural
    sun_size: float = 0.04
    sun_size_convergence: float = 5.0
    atmosphere_thickness: float = 1.0
    ground: Color = (0.369, 0.349, 0.341, 1.0)

    # CUBE_MAP: single equirectangular texture
    panorama: Optional[TextureSlot] = None

    # SIX_SIDED: host texture handles
    front: Any = None
    back: Any = None
    left: Any = None
    right: Any = None
    up: Any = None
    down: Any = None


@dataclass
class ShadingConfig:
    """Typed shading parameters of one host material"""
    name: Optional[str] = None

    # Model selection (see module docstring for priority)
    specular_glossiness: bool = False
    unlit: bool = False
    particles: Optional[ParticlesUnlitData] = None
    skybox: Optional[SkyboxConfig] = None

    # Base color / diffuse
    base_color: Color = (1.0, 1.0, 1.0, 1.0)
    base_color_texture: Optional[TextureSlot] = None

    # Metallic-roughness
    metallic: float = 1.0
    roughness: float = 1.0
    metallic_roughness_texture: Optional[TextureSlot] = None

    # Specular-glossiness
    specular: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    glossiness: float = 1.0
    specular_glossiness_texture: Optional[TextureSlot] = None

    # Shared channels
    normal_texture: Optional[TextureSlot] = None
    normal_scale: float = 1.0
    occlusion_texture: Optional[TextureSlot] = None
    occlusion_strength: float = 1.0
    emissive: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    emissive_texture: Optional[TextureSlot] = None

    # Alpha
    alpha_clip: Optional[float] = None   # Mask threshold, None = no masking
    translucent: bool = False
    double_sided: bool = False

    # Transmission
    transmission: float = 0.0
    transmission_texture: Optional[TextureSlot] = None

    @property
    def has_transmission(self) -> bool:
        return self.transmission > 0.0 or self.transmission_texture is not None

    @property
    def alpha_mode(self) -> AlphaMode:
        if self.alpha_clip is not None:
            return AlphaMode.MASK
        if self.translucent:
            return AlphaMode.BLEND
        return AlphaMode.OPAQUE


class MaterialConverter:
    """Converts ShadingConfig records for one export session

    Args:
        texture_index: callback registering a host texture handle and
            returning its document index (None when it cannot be exported)
        native_transmission: the target supports KHR_materials_transmission
    """

    def __init__(self, texture_index: Optional[Callable[[Any], Optional[int]]] = None,
                 native_transmission: bool = False):
        self._texture_index = texture_index
        self.native_transmission = native_transmission
        self._default: Optional[Material] = None

    def convert(self, config: ShadingConfig) -> Material:
        if not isinstance(config, ShadingConfig):
            raise MaterialConversionError(f"Unsupported shading configuration: {config!r}")
        if len(config.base_color) != 4:
            raise MaterialConversionError(
                f"Material '{config.name}': base color needs 4 components, got {len(config.base_color)}"
            )

        base_color = tuple(float(c) for c in config.base_color)
        base_texture = self._texture_info(config.base_color_texture, config.name)
        extras = MaterialExtras()

        if config.specular_glossiness:
            material = self._specular_glossiness(config, base_color, base_texture)
        elif config.particles is not None:
            material = Material(kind=MaterialKind.UNLIT)
            material.pbr_metallic_roughness = self._unlit_pbr(base_color, base_texture)
            extras.particles_unlit = config.particles
        elif config.unlit:
            material = Material(kind=MaterialKind.UNLIT)
            material.pbr_metallic_roughness = self._unlit_pbr(base_color, base_texture)
        else:
            material = self._metallic_roughness(config, base_color, base_texture)

        if config.particles is not None and material.kind != MaterialKind.UNLIT:
            logger.warning("Material '%s': particles-unlit parameters ignored for %s material",
                           config.name, material.kind.value)

        if config.skybox is not None:
            if extras.particles_unlit is not None:
                logger.warning("Material '%s': skybox and particles-unlit are exclusive, dropping skybox",
                               config.name)
            else:
                extras.skybox = self._skybox(config.skybox, material, config.name)

        material.name = config.name
        material.double_sided = config.double_sided
        material.alpha_mode = config.alpha_mode
        if config.alpha_clip is not None:
            material.alpha_cutoff = float(config.alpha_clip)
        material.extras = extras

        if config.has_transmission:
            self._apply_transmission(config, material, base_texture is not None)
        return material

    def default_material(self, points_support: bool = False) -> Material:
        """Material assigned to primitives without one (memoized per session)"""
        if points_support:
            logger.warning("Default material does not support points topology, rendering may differ")
        if self._default is None:
            self._default = Material(
                name=DEFAULT_MATERIAL_NAME,
                pbr_metallic_roughness=PbrMetallicRoughness(),
            )
        return self._default

    # ========================================================================
    # Branches
    # ========================================================================

    def _metallic_roughness(self, config: ShadingConfig, base_color, base_texture) -> Material:
        pbr = PbrMetallicRoughness(
            base_color_factor=base_color,
            base_color_texture=base_texture,
            metallic_factor=float(config.metallic),
            roughness_factor=float(config.roughness),
            metallic_roughness_texture=self._texture_info(config.metallic_roughness_texture, config.name),
        )
        material = Material(kind=MaterialKind.METALLIC_ROUGHNESS, pbr_metallic_roughness=pbr)
        self._shared_channels(config, material)
        return material

    def _specular_glossiness(self, config: ShadingConfig, base_color, base_texture) -> Material:
        spec_gloss = PbrSpecularGlossiness(
            diffuse_factor=base_color,
            specular_factor=tuple(float(c) for c in config.specular),
            glossiness_factor=float(config.glossiness),
            diffuse_texture=base_texture,
            specular_glossiness_texture=self._texture_info(config.specular_glossiness_texture, config.name),
        )
        material = Material(kind=MaterialKind.SPECULAR_GLOSSINESS, pbr_specular_glossiness=spec_gloss)
        self._shared_channels(config, material)
        return material

    @staticmethod
    def _unlit_pbr(base_color, base_texture) -> PbrMetallicRoughness:
        # Fallback values recommended for viewers without KHR_materials_unlit
        return PbrMetallicRoughness(
            base_color_factor=base_color,
            base_color_texture=base_texture,
            metallic_factor=0.0,
            roughness_factor=0.9,
        )

    def _shared_channels(self, config: ShadingConfig, material: Material):
        normal = self._texture_info(config.normal_texture, config.name, NormalTextureInfo)
        if normal is not None:
            normal.scale = float(config.normal_scale)
        material.normal_texture = normal

        occlusion = self._texture_info(config.occlusion_texture, config.name, OcclusionTextureInfo)
        if occlusion is not None:
            occlusion.strength = float(config.occlusion_strength)
        material.occlusion_texture = occlusion

        material.emissive_texture = self._texture_info(config.emissive_texture, config.name)
        material.emissive_factor = tuple(float(c) for c in config.emissive)

    def _skybox(self, skybox: SkyboxConfig, material: Material, name) -> SkyboxData:
        data = SkyboxData(
            skybox_mode=skybox.mode,
            sky_tint=tuple(skybox.tint),
            exposure=float(skybox.exposure),
            rotation=float(skybox.rotation),
            sun_size=float(skybox.sun_size),
            sun_size_convergence=float(skybox.sun_size_convergence),
            atmosphere_thickness=float(skybox.atmosphere_thickness),
            ground=tuple(skybox.ground),
        )
        if skybox.mode == SkyboxMode.SIX_SIDED:
            faces: Dict[str, Any] = {
                "front_tex": skybox.front, "back_tex": skybox.back,
                "left_tex": skybox.left, "right_tex": skybox.right,
                "up_tex": skybox.up, "down_tex": skybox.down,
            }
            for attr, handle in faces.items():
                slot = TextureSlot(handle) if handle is not None else None
                info = self._texture_info(slot, name)
                setattr(data, attr, info.index if info is not None else -1)
        elif skybox.mode == SkyboxMode.CUBE_MAP and skybox.panorama is not None:
            pbr = material.pbr_metallic_roughness
            if pbr is None:
                logger.warning("Material '%s': panoramic skybox needs a metallic-roughness base, "
                               "dropping panorama texture", name)
            else:
                pbr.base_color_texture = self._texture_info(skybox.panorama, name)
        return data

    def _apply_transmission(self, config: ShadingConfig, material: Material, has_base_texture: bool):
        transmission_texture = self._texture_info(config.transmission_texture, config.name)
        if self.native_transmission:
            material.transmission = Transmission(factor=float(config.transmission),
                                                 texture=transmission_texture)
            return

        logger.warning("Material '%s': KHR_materials_transmission not supported by target, "
                       "approximating with alpha blending", config.name)
        if config.transmission <= 0.0 or config.transmission_texture is not None:
            return

        # Texture alpha already modulates the color, so blend premultiplied
        premultiply = has_base_texture
        factor = 1.0 - min(float(config.transmission), 1.0)
        if material.kind == MaterialKind.SPECULAR_GLOSSINESS:
            target = material.pbr_specular_glossiness
            r, g, b, a = target.diffuse_factor
            target.diffuse_factor = (r, g, b, a * factor)
        else:
            target = material.pbr_metallic_roughness
            r, g, b, a = target.base_color_factor
            target.base_color_factor = (r, g, b, a * factor)
        material.alpha_mode = AlphaMode.BLEND
        material.extras.alpha_premultiplied = premultiply

    # ========================================================================
    # Textures
    # ========================================================================

    def _texture_info(self, slot: Optional[TextureSlot], material_name, cls=TextureInfo):
        if slot is None:
            return None
        index = self._texture_index(slot.texture) if self._texture_index is not None else None
        if index is None:
            logger.warning("Material '%s': texture %r could not be exported, dropping reference",
                           material_name, getattr(slot.texture, "name", slot.texture))
            return None
        transform = TextureTransform(
            offset=tuple(slot.offset),
            scale=tuple(slot.scale),
            rotation=float(slot.rotation),
        )
        return cls(index=index, tex_coord=slot.uv_channel,
                   transform=None if transform.is_identity else transform)
