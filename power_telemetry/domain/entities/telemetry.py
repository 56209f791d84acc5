"""
Telemetry domain entities.

A Sample is one decoded meter message held in memory until the next
flush; an AveragedSample is what a flush turns a window of samples into.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import ValidationGap
from ..value_objects import (
    exact_sum,
    round_electrical,
    round_sub_unit,
)


# Payload keys accepted per field, first match wins.
# The meter firmware publishes the Indonesian names.
PAYLOAD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "voltage": ("voltage", "tegangan", "v"),
    "current": ("current", "arus", "i"),
    "power_factor": ("power_factor", "powerFactor", "pf"),
    "energy_kwh": ("energy_kwh", "energyKwh", "energi_kwh", "energy"),
    "frequency": ("frequency", "frekuensi", "hz"),
    "power_watts": ("power_watts", "daya_watt", "daya", "power"),
}


def _coerce_number(name: str, value: Any) -> float:
    """Convert a payload value to a finite float or raise ValidationGap."""
    if isinstance(value, bool):
        raise ValidationGap(name, value, "boolean is not a measurement")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationGap(name, value, "not numeric")
    if math.isnan(number) or math.isinf(number):
        raise ValidationGap(name, value, "not finite")
    return number


@dataclass
class Sample:
    """
    One raw meter reading.

    Every measurement is optional; defaults are substituted when the
    window is flushed, not here.
    """
    voltage: Optional[float] = None
    current: Optional[float] = None
    power_factor: Optional[float] = None
    energy_kwh: Optional[float] = None
    frequency: Optional[float] = None
    power_watts: Optional[float] = None
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        captured_at: Optional[datetime] = None,
    ) -> Tuple["Sample", List[ValidationGap]]:
        """
        Build a sample from a decoded message.

        Unknown keys are ignored. A field whose value cannot be read as a
        finite number is left empty and reported as a ValidationGap.

        Returns:
            Tuple of (sample, gaps).
        """
        values: Dict[str, Optional[float]] = {}
        gaps: List[ValidationGap] = []

        for field_name, aliases in PAYLOAD_ALIASES.items():
            raw = None
            for key in aliases:
                if key in payload and payload[key] is not None and payload[key] != "":
                    raw = payload[key]
                    break
            if raw is None:
                values[field_name] = None
                continue
            try:
                values[field_name] = _coerce_number(field_name, raw)
            except ValidationGap as gap:
                values[field_name] = None
                gaps.append(gap)

        sample = cls(
            captured_at=captured_at or datetime.now(timezone.utc),
            **values,
        )
        return sample, gaps

    @property
    def is_empty(self) -> bool:
        """True when the message carried no usable measurement."""
        return all(
            getattr(self, name) is None for name in PAYLOAD_ALIASES
        )

    @property
    def instantaneous_power(self) -> Optional[float]:
        """Explicit power, else P = V x I x PF when all three were sent."""
        if self.power_watts is not None:
            return self.power_watts
        if None in (self.voltage, self.current, self.power_factor):
            return None
        return self.voltage * self.current * self.power_factor

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["captured_at"] = self.captured_at.isoformat()
        return data


def _mean(values: Sequence[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return float(exact_sum(present) / len(present))


@dataclass
class AveragedSample:
    """
    Field-wise arithmetic mean of one flush window.

    A field's mean only covers the samples that carried it; a field no
    sample carried stays None.
    """
    sample_count: int
    window_start: datetime
    window_end: datetime
    voltage: Optional[float] = None
    current: Optional[float] = None
    power_factor: Optional[float] = None
    energy_kwh: Optional[float] = None
    frequency: Optional[float] = None
    power_watts: Optional[float] = None

    @classmethod
    def from_samples(cls, samples: Sequence[Sample]) -> "AveragedSample":
        if not samples:
            raise ValueError("Cannot average an empty window")

        captured = [s.captured_at for s in samples]
        return cls(
            sample_count=len(samples),
            window_start=min(captured),
            window_end=max(captured),
            voltage=round_electrical(_mean([s.voltage for s in samples])),
            current=round_electrical(_mean([s.current for s in samples])),
            power_factor=round_electrical(_mean([s.power_factor for s in samples])),
            energy_kwh=round_sub_unit(_mean([s.energy_kwh for s in samples])),
            frequency=round_electrical(_mean([s.frequency for s in samples])),
            power_watts=round_electrical(_mean([s.instantaneous_power for s in samples])),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["window_start"] = self.window_start.isoformat()
        data["window_end"] = self.window_end.isoformat()
        return data
