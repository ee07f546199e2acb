"""Presentation sink: the events the core publishes to whatever renders it."""

import logging

logger = logging.getLogger("RoadRough")


class PresentationSink:
    """Receives pipeline events. Every hook is a no-op by default."""

    def point_added(self, point):
        pass

    def map_entry_upserted(self, entry):
        pass

    def ride_list_changed(self, rides):
        pass

    def status(self, text):
        pass


class LoggingPresentationSink(PresentationSink):
    """Sink used when running headless: everything goes to the log."""

    def point_added(self, point):
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Point {point.id} ride={point.ride_id} rough={point.roughness_value:.3f}")

    def map_entry_upserted(self, entry):
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Map entry {entry.geo_cell_id} -> {entry.roughness_value:.3f}")

    def ride_list_changed(self, rides):
        logger.info(f"Ride list updated: {len(rides)} ride(s) stored")

    def status(self, text):
        logger.info(text)
