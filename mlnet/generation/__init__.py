"""mlnet.generation: synthetic multilayer network growth."""

from .growth import PreferentialAttachment, RandomAttachment, grow

__all__ = ["PreferentialAttachment", "RandomAttachment", "grow"]
