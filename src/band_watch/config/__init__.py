__all__ = ["BandWatchConfig", "load_band_watch_config"]

from band_watch.config.bands import BandWatchConfig, load_band_watch_config
