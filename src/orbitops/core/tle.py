"""TLE (Two-Line Element) parsing.

Wraps the sgp4 library's TLE reader and derives the orbital shell
(perigee/apogee altitude) used by the screening pre-filter.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from sgp4.api import Satrec, WGS72
from sgp4.conveniences import sat_epoch_datetime

from orbitops.utils.constants import EARTH_MU_KM3_S2 as MU, EARTH_RADIUS_KM as RE, SECONDS_PER_DAY

logger = logging.getLogger(__name__)


def tle_checksum(line: str) -> int:
    """Modulo-10 checksum over the first 68 columns of a TLE line.

    Digits count their value, minus signs count one, everything else zero.
    """
    total = 0
    for char in line[:68]:
        if char.isdigit():
            total += int(char)
        elif char == "-":
            total += 1
    return total % 10


@dataclass(frozen=True)
class TLE:
    """A parsed Two-Line Element set.

    Attributes:
        name: Object name (line 0, if provided).
        line1: Raw TLE line 1.
        line2: Raw TLE line 2.
        norad_id: NORAD catalog number.
        epoch: Epoch as a UTC datetime.
        inclination_deg: Orbital inclination in degrees.
        eccentricity: Orbital eccentricity (dimensionless).
        mean_motion_rev_per_day: Kozai mean motion in revolutions per day.
        satrec: Underlying sgp4 Satrec object for propagation.
    """

    name: str
    line1: str
    line2: str
    norad_id: int
    epoch: datetime
    inclination_deg: float
    eccentricity: float
    mean_motion_rev_per_day: float
    satrec: Satrec = field(repr=False, compare=False)

    @classmethod
    def from_lines(cls, line1: str, line2: str, name: str = "", strict: bool = False) -> TLE:
        """Parse a TLE from its two element lines.

        Args:
            line1: TLE line 1 (69 characters).
            line2: TLE line 2 (69 characters).
            name: Optional object name (line 0).
            strict: Also verify the modulo-10 checksum of both lines.

        Returns:
            A parsed TLE object.

        Raises:
            ValueError: If the TLE lines are malformed.
        """
        line1 = line1.strip()
        line2 = line2.strip()

        if len(line1) != 69 or not line1.startswith("1"):
            raise ValueError(f"Invalid TLE line 1: {line1!r}")
        if len(line2) != 69 or not line2.startswith("2"):
            raise ValueError(f"Invalid TLE line 2: {line2!r}")
        if line1[2:7] != line2[2:7]:
            raise ValueError(f"TLE lines disagree on catalog number: {line1[2:7]!r} != {line2[2:7]!r}")
        if strict:
            for number, line in ((1, line1), (2, line2)):
                if not line[68].isdigit() or tle_checksum(line) != int(line[68]):
                    raise ValueError(f"Checksum mismatch on TLE line {number}: {line!r}")

        sat = Satrec.twoline2rv(line1, line2, WGS72)
        if sat.error != 0:
            raise ValueError(f"SGP4 rejected elements for {line1[2:7].strip()}: error code {sat.error}")

        norad_id = int(line1[2:7].strip())
        epoch = sat_epoch_datetime(sat)

        logger.debug("Parsed TLE for NORAD %d (epoch %s)", norad_id, epoch.isoformat())

        return cls(
            name=name.strip(),
            line1=line1,
            line2=line2,
            norad_id=norad_id,
            epoch=epoch,
            inclination_deg=math.degrees(sat.inclo),
            eccentricity=sat.ecco,
            mean_motion_rev_per_day=sat.no_kozai * 1440 / (2 * math.pi),
            satrec=sat,
        )

    @property
    def semi_major_axis_km(self) -> float:
        n_rad_per_sec = self.mean_motion_rev_per_day * 2 * math.pi / SECONDS_PER_DAY
        return (MU / (n_rad_per_sec ** 2)) ** (1.0 / 3.0)

    @property
    def perigee_km(self) -> float:
        """Perigee altitude above the equatorial radius in km."""
        return self.semi_major_axis_km * (1 - self.eccentricity) - RE

    @property
    def apogee_km(self) -> float:
        """Apogee altitude above the equatorial radius in km."""
        return self.semi_major_axis_km * (1 + self.eccentricity) - RE

    def __str__(self) -> str:
        header = f"0 {self.name}\n" if self.name else ""
        return f"{header}{self.line1}\n{self.line2}"


def parse_tle(text: str, strict: bool = False) -> list[TLE]:
    """Parse one or more TLEs from text.

    Handles both 2-line and 3-line (with name) formats. Sets that fail to
    parse are logged and skipped so one bad entry cannot sink a bulk load.

    Args:
        text: Raw TLE text, one or more TLE sets separated by newlines.
        strict: Verify line checksums.

    Returns:
        A list of parsed TLE objects.
    """
    lines = [l.rstrip() for l in text.strip().splitlines() if l.strip()]
    tles: list[TLE] = []
    skipped = 0
    i = 0

    while i < len(lines):
        name = ""
        if not lines[i].startswith(("1 ", "2 ")) and i + 1 < len(lines) and lines[i + 1].startswith("1 "):
            name = lines[i].removeprefix("0 ")
            i += 1
        if lines[i].startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            try:
                tles.append(TLE.from_lines(lines[i], lines[i + 1], name=name, strict=strict))
            except ValueError as e:
                skipped += 1
                logger.warning("Skipping TLE %r: %s", name or lines[i][2:7], e)
            i += 2
        else:
            i += 1

    logger.debug("Parsed %d TLEs from text (%d skipped)", len(tles), skipped)
    return tles
