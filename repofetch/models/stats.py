"""
Dataclass for tracking transfer statistics, including the low-speed watchdog state.
"""

import time
from dataclasses import dataclass, field


@dataclass
class TransferStats:
    """Tracks statistics for one transfer, including real-time speed."""

    files_downloaded: int = 0
    total_size_downloaded: int = 0

    # Real-time speed calculation fields
    current_speed_bps: float = 0.0
    peak_speed_bps: float = 0.0
    started_at: float = field(default_factory=time.monotonic, repr=False)
    _speed_samples: list[float] = field(default_factory=list, repr=False)
    _last_progress_time: float = field(default=0.0, repr=False)
    _last_progress_bytes: int = field(default=0, repr=False)

    def __post_init__(self):
        self._last_progress_time = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def update_speed_stats(self, total_bytes_so_far: int) -> None:
        """
        Updates the download speed based on progress.

        Args:
            total_bytes_so_far: The cumulative total of bytes downloaded in the transfer.
        """
        now = time.monotonic()
        elapsed = now - self._last_progress_time

        # Update speed roughly twice per second
        if elapsed > 0.5:
            bytes_diff = total_bytes_so_far - self._last_progress_bytes
            if bytes_diff >= 0:
                self._speed_samples.append(bytes_diff / elapsed)
                # Keep a sliding window of the last 10 speed samples
                if len(self._speed_samples) > 10:
                    self._speed_samples.pop(0)

                self.current_speed_bps = sum(self._speed_samples) / len(
                    self._speed_samples
                )
                self.peak_speed_bps = max(self.peak_speed_bps, self.current_speed_bps)

            self._last_progress_time = now
            self._last_progress_bytes = total_bytes_so_far
