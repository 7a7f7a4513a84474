"""Location summary model - aggregate written by the summarize handler."""

from typing import Optional

from pydantic import BaseModel


class LocationSummary(BaseModel):
    """Running totals of weather observations for one station."""

    location: int
    avg_temp_total: float = 0.0
    avg_temp_count: int = 0
    avg_dewp_total: float = 0.0
    avg_dewp_count: int = 0

    @property
    def avg_temp(self) -> Optional[float]:
        if not self.avg_temp_count:
            return None
        return self.avg_temp_total / self.avg_temp_count

    @property
    def avg_dewp(self) -> Optional[float]:
        if not self.avg_dewp_count:
            return None
        return self.avg_dewp_total / self.avg_dewp_count
