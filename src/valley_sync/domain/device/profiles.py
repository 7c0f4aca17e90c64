"""
Per-device profile persistence.

One JSON document keyed by device identity. Profiles are created or refreshed
on every successful detection and never deleted automatically.
"""

import json
import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

from loguru import logger

from valley_sync.domain.transport.models import DeviceInfo, TransportKind


@dataclass(frozen=True)
class DeviceProfile:
    """Stored metadata for one device."""

    identity: str
    display_name: str
    model: str
    transport_kind: TransportKind
    last_seen: datetime
    tap: Optional[Tuple[int, int]] = None  # Launch-time tap, device specific

    def to_dict(self) -> dict:
        return {
            "display_name": self.display_name,
            "model": self.model,
            "transport": self.transport_kind.value,
            "tap": list(self.tap) if self.tap else None,
            "last_seen": self.last_seen.isoformat(),
        }

    @classmethod
    def from_dict(cls, identity: str, data: dict) -> "DeviceProfile":
        tap = data.get("tap")
        return cls(
            identity=identity,
            display_name=data.get("display_name", identity),
            model=data.get("model", ""),
            transport_kind=TransportKind(data.get("transport", TransportKind.DIRECT.value)),
            last_seen=datetime.fromisoformat(data["last_seen"]),
            tap=(int(tap[0]), int(tap[1])) if tap else None,
        )


class DeviceProfileStore:
    """JSON-backed store of DeviceProfile records."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, DeviceProfile]:
        """Read every profile. A missing or corrupt file yields an empty store."""
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read device profiles {self.path}: {e}")
            return {}

        profiles = {}
        for identity, data in raw.items():
            try:
                profiles[identity] = DeviceProfile.from_dict(identity, data)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed profile {identity!r}: {e}")
        return profiles

    def get(self, identity: str) -> Optional[DeviceProfile]:
        return self.load().get(identity)

    def save(self, profiles: Dict[str, DeviceProfile]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {identity: p.to_dict() for identity, p in sorted(profiles.items())}
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        temp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(temp_path, self.path)

    def record(
        self,
        device: DeviceInfo,
        kind: TransportKind,
        now: Optional[datetime] = None,
    ) -> DeviceProfile:
        """Create or refresh the profile for a freshly detected device.

        Existing tap coordinates are kept.
        """
        now = now or datetime.now(timezone.utc)
        profiles = self.load()
        existing = profiles.get(device.identity)

        if existing is None:
            profile = DeviceProfile(
                identity=device.identity,
                display_name=device.display_name,
                model=device.model,
                transport_kind=kind,
                last_seen=now,
            )
        else:
            profile = replace(
                existing,
                display_name=device.display_name or existing.display_name,
                model=device.model or existing.model,
                transport_kind=kind,
                last_seen=now,
            )

        profiles[device.identity] = profile
        self.save(profiles)
        return profile

    def set_tap(self, identity: str, tap: Optional[Tuple[int, int]]) -> Optional[DeviceProfile]:
        """Store launch tap coordinates for a known device."""
        profiles = self.load()
        profile = profiles.get(identity)
        if profile is None:
            return None
        profiles[identity] = replace(profile, tap=tap)
        self.save(profiles)
        return profiles[identity]
