"""Body measurement check-ins."""

from dataclasses import dataclass, fields, replace
from datetime import datetime

from .errors import InvalidMeasurement
from .models import ClientEntity, ProgressEntry


@dataclass(frozen=True)
class Measurements:
    weight_kg: float
    neck_inch: float
    chest_inch: float
    waist_inch: float
    hips_inch: float
    thigh_inch: float


def add_progress(client: ClientEntity, measurements: Measurements, now: datetime) -> ClientEntity:
    for item in fields(measurements):
        value = getattr(measurements, item.name)
        if value <= 0:
            raise InvalidMeasurement(f"{item.name} must be positive", client.code)

    entry = ProgressEntry(
        timestamp=now,
        weight_kg=measurements.weight_kg,
        neck_inch=measurements.neck_inch,
        chest_inch=measurements.chest_inch,
        waist_inch=measurements.waist_inch,
        hips_inch=measurements.hips_inch,
        thigh_inch=measurements.thigh_inch,
    )
    return replace(client, progress=client.progress + (entry,))
