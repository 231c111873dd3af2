"""Image acquisition, fallback and caching for entry covers and heroes."""

from .cache import CachedImage, DiskImageCache, ImageKind, ImageOrigin, MemoryImageCache
from .providers import (
    ImageRequest,
    ImageSource,
    PlaceholderSource,
    ProviderError,
    ProviderResult,
    SeedLibrarySource,
    UnsplashSearchSource,
)
from .service import ImageResolutionService

__all__ = [
    "CachedImage",
    "DiskImageCache",
    "ImageKind",
    "ImageOrigin",
    "ImageRequest",
    "ImageResolutionService",
    "ImageSource",
    "MemoryImageCache",
    "PlaceholderSource",
    "ProviderError",
    "ProviderResult",
    "SeedLibrarySource",
    "UnsplashSearchSource",
]
