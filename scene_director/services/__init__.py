from .batch import BatchGenerationScheduler
from .image import ImageService
from .renderer import SceneRenderer
from .state_store import StateStore
from .storage import ObjectStorage

__all__ = ["BatchGenerationScheduler", "ImageService", "ObjectStorage", "SceneRenderer", "StateStore"]
