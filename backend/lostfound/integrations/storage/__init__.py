from .client import MediaStore

__all__ = ["MediaStore"]
