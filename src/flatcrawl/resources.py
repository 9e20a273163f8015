"""System resource monitoring around browser sessions."""

import psutil


class ResourceMonitor:
    """Check that there is memory to spare before driving the browser.

    A headless browser tab uses roughly 150-300 MB; below the thresholds the
    run still proceeds but the caller should warn.
    """

    def __init__(
        self,
        max_memory_percent: float = 90.0,
        min_free_memory_mb: int = 300,
    ) -> None:
        self.max_memory_percent = max_memory_percent
        self.min_free_memory_mb = min_free_memory_mb

    def has_headroom(self) -> bool:
        """Return True if memory use is below the threshold and enough is free."""
        mem = psutil.virtual_memory()
        if mem.percent >= self.max_memory_percent:
            return False
        available_mb = mem.available / (1024 * 1024)
        return available_mb >= self.min_free_memory_mb

    def get_snapshot(self) -> dict:
        """Return current resource snapshot for logging."""
        mem = psutil.virtual_memory()
        return {
            "cpu_percent": psutil.cpu_percent(interval=0.1),
            "memory_percent": mem.percent,
            "memory_available_mb": round(mem.available / (1024 * 1024)),
        }
