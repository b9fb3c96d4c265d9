__all__ = ["BandMonitor", "MonitorState"]

from band_watch.engine.monitor import BandMonitor, MonitorState
