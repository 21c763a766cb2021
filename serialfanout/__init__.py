"""Serial fan-out bridge: share one serial device with many TCP clients."""

from serialfanout.bridge import Bridge, StartupError, run_bridge

__all__ = ["Bridge", "StartupError", "run_bridge"]
