import datetime
from typing import List
from ..models import RawCollectionEntry # Relative import
from .interface import ICollectionScheduleSource # Relative import

# Weekly rotation used by the mock: recycling and general waste alternate,
# food waste goes out every week.
_ALTERNATING_SERVICES = [
    "Recycling Collection Service",
    "Domestic Waste Collection Service",
]
_WEEKLY_SERVICE = "Food Waste Collection Service"


class ConstantCollectionSource(ICollectionScheduleSource): # Implement the interface
    def __init__(self, weeks_ahead: int = 4, today: datetime.date | None = None):
        self.weeks_ahead = weeks_ahead
        self._today = today

    async def get_collections(self) -> List[RawCollectionEntry]:
        """
        Returns a deterministic schedule: one collection day per week, starting tomorrow,
        in the council API's own date format.
        """
        today = self._today or datetime.date.today()
        first_day = today + datetime.timedelta(days=1)
        collections: List[RawCollectionEntry] = []

        for week in range(self.weeks_ahead):
            day = first_day + datetime.timedelta(weeks=week)
            source_date = day.strftime("%d/%m/%Y 00:00:00")
            for service in (_ALTERNATING_SERVICES[week % 2], _WEEKLY_SERVICE):
                collections.append(
                    RawCollectionEntry(
                        service=service,
                        date=source_date,
                        day=day.strftime("%A"),
                        round=f"MOCK-{day.strftime('%a').upper()}",
                        schedule="Wk1" if week % 2 == 0 else "Wk2",
                    )
                )
        return collections
