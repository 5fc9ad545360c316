from .settings import SceneConfig

__all__ = ["SceneConfig"]
