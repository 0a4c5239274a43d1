"""
Environment side channel

Skybox materials are opaque extras in the document. On import they drive the
host's environment (skybox + reflection regeneration), which is a rendering
side effect outside the document model. The host opts in by implementing
``EnvironmentCapability``; the update is two-phase:

    queue.request_environment_update(skybox)   # any time, never blocks
    queue.poll_and_apply()                     # from the host's frame loop
"""

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .schema import SkyboxData

logger = logging.getLogger(__name__)


@runtime_checkable
class EnvironmentCapability(Protocol):
    def apply_skybox(self, skybox: SkyboxData) -> None: ...

    def regenerate_reflections(self) -> None: ...


class EnvironmentUpdateQueue:
    """Holds at most one pending skybox; later requests replace earlier ones"""

    def __init__(self, capability: Optional[EnvironmentCapability] = None):
        self.capability = capability
        self._pending: Optional[SkyboxData] = None

    @property
    def pending(self) -> Optional[SkyboxData]:
        return self._pending

    def request_environment_update(self, skybox: SkyboxData) -> bool:
        if self.capability is None:
            logger.info("Host has no environment capability, ignoring skybox update")
            return False
        if self._pending is not None:
            logger.debug("Replacing pending skybox update")
        self._pending = skybox
        return True

    def poll_and_apply(self) -> bool:
        """Apply the pending update, if any. Returns True when something was applied."""
        if self._pending is None or self.capability is None:
            return False
        skybox, self._pending = self._pending, None
        self.capability.apply_skybox(skybox)
        self.capability.regenerate_reflections()
        logger.info("Applied %s skybox", skybox.skybox_mode.name.lower())
        return True


def apply_environment_extras(gltf: Dict[str, Any], queue: EnvironmentUpdateQueue) -> int:
    """Enqueue skybox extras found on imported materials, return how many were found"""
    found = 0
    for index, material in enumerate(gltf.get("materials", [])):
        data = (material.get("extras") or {}).get("skyboxData")
        if not data or not data.get("isSkybox"):
            continue
        try:
            skybox = SkyboxData.from_dict(data)
        except (TypeError, ValueError) as e:
            # Unknown skyboxMode values land here too
            logger.warning("Material %d: unsupported skybox data (%s), skipping", index, e)
            continue
        queue.request_environment_update(skybox)
        found += 1
    return found
