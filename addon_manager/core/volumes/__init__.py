"""Persistent volume registry and the local volume drivers built on it."""

from .drivers import LocalPublicAccessVolumeDriver, LocalPublicVolumeDriver  # noqa: F401
from .registry import VolumeEntry, VolumeRegistry  # noqa: F401

__all__ = [
    "LocalPublicAccessVolumeDriver",
    "LocalPublicVolumeDriver",
    "VolumeEntry",
    "VolumeRegistry",
]
