from .base_brain import BaseBrain

__all__ = ["BaseBrain"]
