"""ImpulseOptions: detection and trading knobs.

Deviations are percentages of price. The pattern finder scans a descending
grid of deviations (see ``deviation_grid``) starting at the minor deviation
(or the major one when unset) down to the floor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional

WAVE3_RULES = ("not_shortest", "longest")
SAME_BAR_POLICIES = ("stop_first", "profit_first")


@dataclass(frozen=True)
class ImpulseOptions:
    deviation_percent: float = 0.1
    correction_allowance_percent: float = 250.0

    minor_deviation_percent: Optional[float] = None
    min_deviation_percent: Optional[float] = None
    deviation_step_percent: Optional[float] = None

    stop_allowance_percent: float = 0.0
    take_allowance_percent: float = 0.0

    wave3_rule: str = "not_shortest"
    same_bar_policy: str = "stop_first"

    def __post_init__(self) -> None:
        if not self.deviation_percent > 0:
            raise ValueError(f"deviation_percent must be > 0, got {self.deviation_percent!r}")
        if not self.correction_allowance_percent >= 1:
            raise ValueError(f"correction_allowance_percent must be >= 1, got {self.correction_allowance_percent!r}")
        for name in ("minor_deviation_percent", "min_deviation_percent", "deviation_step_percent"):
            v = getattr(self, name)
            if v is not None and not v > 0:
                raise ValueError(f"{name} must be > 0, got {v!r}")
        if self.scan_floor > self.scan_start:
            raise ValueError(f"deviation floor ({self.scan_floor}) exceeds the scan start ({self.scan_start})")
        if self.stop_allowance_percent < 0 or self.take_allowance_percent < 0:
            raise ValueError("stop/take allowance percents must be >= 0")
        if self.wave3_rule not in WAVE3_RULES:
            raise ValueError(f"wave3_rule must be one of {WAVE3_RULES}, got {self.wave3_rule!r}")
        if self.same_bar_policy not in SAME_BAR_POLICIES:
            raise ValueError(f"same_bar_policy must be one of {SAME_BAR_POLICIES}, got {self.same_bar_policy!r}")

    @property
    def scan_start(self) -> float:
        return float(self.minor_deviation_percent or self.deviation_percent)

    @property
    def scan_step(self) -> float:
        return float(self.deviation_step_percent or self.scan_start / 10.0)

    @property
    def scan_floor(self) -> float:
        return float(self.min_deviation_percent or self.scan_step)

    def deviation_grid(self) -> List[float]:
        """Deviations to try, coarse to fine: start, start-step, ... down to the floor."""
        start, step, floor = self.scan_start, self.scan_step, self.scan_floor
        n = int(math.floor((start - floor) / step + 1e-9))
        return [round(start - i * step, 10) for i in range(n + 1)]

    @staticmethod
    def from_dict(d: Optional[Mapping[str, Any]]) -> "ImpulseOptions":
        """Build from a config section; unknown keys are ignored, ``None`` keeps the default."""
        known = {f.name for f in fields(ImpulseOptions)}
        kw: Dict[str, Any] = {k: v for k, v in (d or {}).items() if k in known and v is not None}
        return ImpulseOptions(**kw)
