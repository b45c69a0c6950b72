"""
ffqueue.errors
~~~~~~~~~~~~~~
Exception types raised by the engine.

Malformed settings never raise; they degrade to "option not applied".
Everything here is a launch, probe or capability problem that the
caller has to react to.
"""


class FFQueueError(Exception):
    """Base class for all engine errors."""


class LaunchError(FFQueueError):
    """The ffmpeg / ffprobe binary is missing or could not be started."""


class ProbeError(FFQueueError):
    """ffprobe ran (or tried to) but produced no usable report."""


class CapabilityError(FFQueueError):
    """Write access to the output directory could not be obtained."""
