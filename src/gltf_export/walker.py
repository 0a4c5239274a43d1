"""
Scene Graph Walker

Depth-first, post-order traversal of the host hierarchy. A node's children
are emitted (with their whole subtrees) before the node itself, so every
child index a node references already exists.

Rules:
- editor-only nodes, and inactive ones when only_active_in_hierarchy is set,
  are not emitted; their eligible children become scene roots with the
  ancestors' transforms folded in
- a node is emitted when it is on an included layer or has emitted children
- components (mesh, camera, light) are only exported for included layers
- a failing node degrades the success flag, the walk carries on
"""

import logging
from typing import Any, Generator, List, Optional, Set, Tuple

from .errors import WriterDisposedError
from .host import SceneHost, Transform
from .scheduler import run_to_completion
from .settings import SceneExportSettings
from . import transforms
from .writer import GltfWriter

logger = logging.getLogger(__name__)

WalkResult = Tuple[List[int], bool]

IDENTITY = Transform()


class SceneWalker:
    """Emits host nodes into a GltfWriter, one step per node"""

    def __init__(self, writer: GltfWriter, host: SceneHost,
                 settings: Optional[SceneExportSettings] = None):
        self.writer = writer
        self.host = host
        self.settings = settings or SceneExportSettings()
        # True while a single node is being emitted; never True at a yield
        self.busy = False
        self.visited = 0

    def walk(self, roots) -> WalkResult:
        """Walk without suspension"""
        return run_to_completion(self.iter_walk(roots))

    def iter_walk(self, roots) -> Generator[None, None, WalkResult]:
        """Yield after every processed node; return (root node indices, all succeeded)"""
        root_indices: List[int] = []
        all_succeeded = True
        for root in roots:
            index, hoisted, ok = yield from self._visit(root, [], set())
            if index is not None:
                root_indices.append(index)
            root_indices.extend(hoisted)
            all_succeeded = all_succeeded and ok
        return root_indices, all_succeeded

    def _visit(self, node, ancestors: List[Transform], path: Set[int]):
        try:
            info = self.host.get_node_info(node)
            local = self.host.get_local_transform(node)
        except Exception as e:
            logger.error("Failed to query node %r: %s", node, e)
            return None, [], False

        excluded = info.editor_only or (self.settings.only_active_in_hierarchy and not info.active)
        children: List[int] = []
        hoisted: List[int] = []
        ok = True

        try:
            host_children = list(self.host.get_children(node))
        except Exception as e:
            logger.error("Failed to query children of '%s': %s", info.name, e)
            host_children = []
            ok = False

        path.add(id(node))
        chain = ancestors + [local]
        try:
            for child in host_children:
                if id(child) in path:
                    logger.error("Node '%s' is its own ancestor, skipping cycle", info.name)
                    ok = False
                    continue
                index, child_hoisted, child_ok = yield from self._visit(child, chain, path)
                ok = ok and child_ok
                hoisted.extend(child_hoisted)
                if index is None:
                    continue
                if excluded:
                    ok = self._hoist(index, chain) and ok
                    hoisted.append(index)
                else:
                    children.append(index)
        finally:
            path.discard(id(node))

        if excluded:
            logger.debug("Excluded node '%s' (editor-only=%s, active=%s)",
                         info.name, info.editor_only, info.active)
            return None, hoisted, ok

        on_included_layer = self.settings.includes_layer(info.layer)
        index = None
        if on_included_layer or children:
            self.busy = True
            try:
                index = self.writer.add_node(
                    local.translation, local.rotation, local.scale,
                    name=info.name, children=children, guid=info.guid,
                )
                if on_included_layer:
                    ok = self._add_components(node, index, info.name) and ok
            except WriterDisposedError:
                raise
            except Exception as e:
                logger.error("Failed to export node '%s': %s", info.name, e)
                ok = False
            finally:
                self.busy = False

        self.visited += 1
        yield
        return index, hoisted, ok

    def _add_components(self, node: Any, index: int, name: Optional[str]) -> bool:
        ok = True
        include_disabled = self.settings.disabled_components

        renderable = self.host.try_get_renderable(node)
        if renderable is not None and (renderable.enabled or include_disabled):
            try:
                ok = self.writer.add_mesh_to_node(index, renderable)
            except Exception as e:
                logger.error("Node '%s': mesh export failed: %s", name, e)
                ok = False

        camera = self.host.try_get_camera(node)
        if camera is not None and (camera.enabled or include_disabled):
            try:
                self.writer.add_camera_to_node(index, camera)
            except Exception as e:
                logger.error("Node '%s': camera export failed: %s", name, e)
                ok = False

        light = self.host.try_get_light(node)
        if light is not None and (light.enabled or include_disabled):
            try:
                self.writer.add_light_to_node(index, light)
            except Exception as e:
                logger.error("Node '%s': light export failed: %s", name, e)
                ok = False
        return ok

    def _hoist(self, index: int, chain: List[Transform]) -> bool:
        """Fold the transforms of ``chain`` into node ``index``

        Returns False when the world transform has shear, which a TRS node
        cannot hold; the node then keeps the closest TRS.
        """
        if all(t == IDENTITY for t in chain):
            return True
        matrix = transforms.identity()
        for t in chain:
            matrix = transforms.multiply(matrix, transforms.compose(t.translation, t.rotation, t.scale))
        node = self.writer.document.nodes[index]
        (node.translation, node.rotation, node.scale), exact = transforms.combine(
            matrix, node.translation, node.rotation, node.scale
        )
        if not exact:
            logger.warning("Node '%s' is sheared by its excluded ancestors, "
                           "world placement is approximated", node.name)
        return exact
