"""
Export Errors

Exception types raised by the glTF export pipeline.

Recoverable conversion problems are logged, never raised out of
``SceneExport.add_scene``. Only session-terminal conditions raise.
"""


class ExportError(RuntimeError):
    """Base class for all export pipeline errors"""


class WriterDisposedError(ExportError):
    """Raised when a writer or export session is used after finalize"""

    def __init__(self, message: str = "glTF writer was already disposed"):
        super().__init__(message)


class ExportCancelledError(ExportError):
    """Raised at a cooperative cancellation check"""

    def __init__(self, message: str = "Export was cancelled"):
        super().__init__(message)


class MaterialConversionError(ExportError):
    """A shading configuration could not be converted to any material variant"""


class GltfFormatError(ExportError):
    """Malformed glTF JSON or GLB container on the read path"""
