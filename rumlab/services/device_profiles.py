# rumlab/services/device_profiles.py
from dataclasses import dataclass
from typing import Dict, Tuple

@dataclass(frozen=True)
class DeviceProfile:
    """
    A fixed emulation target for synthetic analysis.

    Throughput values are in bytes per second, which is what the
    DevTools ``Network.emulateNetworkConditions`` command expects.
    """
    name: str
    label: str
    viewport: Tuple[int, int]
    user_agent: str
    network_latency_ms: float
    download_bps: float
    upload_bps: float
    cpu_throttle_factor: float
    is_mobile: bool = False
    network_label: str = ""

    def describe(self) -> str:
        """Human-readable descriptor used in analysis reports."""
        width, height = self.viewport
        parts = ["Chromium"]
        if self.network_label:
            parts.append(self.network_label)
        if self.cpu_throttle_factor > 1:
            parts.append(f"{self.cpu_throttle_factor:g}x CPU slowdown")
        parts.append(f"{width}x{height}")
        return f"{self.label} ({', '.join(parts)})"


CONSTRAINED_MOBILE = DeviceProfile(
    name="constrained-mobile",
    label="Mobile",
    viewport=(412, 823),
    user_agent=(
        "Mozilla/5.0 (Linux; Android 11; moto g power (2022)) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Mobile Safari/537.36"
    ),
    network_latency_ms=150,
    download_bps=1.6 * 1024 * 1024 / 8,
    upload_bps=1.6 * 1024 * 1024 / 8,
    cpu_throttle_factor=4,
    is_mobile=True,
    network_label="Slow 4G",
)

DESKTOP = DeviceProfile(
    name="desktop",
    label="Desktop",
    viewport=(1920, 1080),
    user_agent=(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    network_latency_ms=40,
    download_bps=10 * 1024 * 1024 / 8,
    upload_bps=10 * 1024 * 1024 / 8,
    cpu_throttle_factor=1,
    network_label="4G",
)

PROFILES: Dict[str, DeviceProfile] = {p.name: p for p in (CONSTRAINED_MOBILE, DESKTOP)}


def get_profile(name: str) -> DeviceProfile:
    """
    Looks up a named device profile.

    Raises:
        KeyError: If no profile is registered under ``name``.
    """
    try:
        return PROFILES[name]
    except KeyError:
        raise KeyError(f"Unknown device profile '{name}'. Known profiles: {', '.join(sorted(PROFILES))}") from None
