from typing import List, Protocol
from ..models import RawCollectionEntry # Relative import

class ICollectionScheduleSource(Protocol):
    async def get_collections(self) -> List[RawCollectionEntry]:
        """
        Fetches the household's upcoming collections.
        Raises CollectionSourceError when the source cannot be read.
        """
        ...
