"""Playback, pooling and timing."""

from .scheduler import ManualScheduler, QtScheduler, Scheduler, TimerHandle
from .tween import Tween, Tweener
from .playback import ClockState, PlaybackClock
from .pool import Instance, InstancePool, InstanceState, ResourceNotReadyWarning
from .spawn import SpawnController, scroll_fraction
from .loop import RenderLoop

__all__ = [
    "ClockState",
    "Instance",
    "InstancePool",
    "InstanceState",
    "ManualScheduler",
    "PlaybackClock",
    "QtScheduler",
    "RenderLoop",
    "ResourceNotReadyWarning",
    "Scheduler",
    "SpawnController",
    "TimerHandle",
    "Tween",
    "Tweener",
    "scroll_fraction",
]
