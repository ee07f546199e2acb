"""Error taxonomy for the roughness pipeline.

None of these are process-fatal. The recorder catches them at its
boundaries, logs them and reports them on the status channel.
"""


class RoadRoughError(Exception):
    """Base class for all pipeline errors."""


class SensorUnavailable(RoadRoughError):
    """The motion sensor is absent; recording continues with zero roughness."""


class PermissionDenied(RoadRoughError):
    """A sensor permission was refused.

    Fatal to the active ride for location, non-fatal for motion.
    """


class SensorTimeout(RoadRoughError):
    """A location fix did not arrive in time; the loop keeps waiting."""


class StorageFailure(RoadRoughError):
    """A persistence call failed."""
