"""
Per-request batched loaders for the weak references between records.

Every ``load(id)`` issued while one GraphQL request is being resolved is
collected and fetched with a single ``$in`` query per collection. Missing or
malformed ids resolve to None.
"""
import asyncio
from dataclasses import dataclass
from typing import List, Optional

from strawberry.dataloader import DataLoader

import services
from database import Database


@dataclass
class Loaders:
    building: DataLoader
    apartment_owner: DataLoader


def create_loaders(store: Database) -> Loaders:
    async def load_buildings(keys: List[str]) -> List[Optional[dict]]:
        return await asyncio.to_thread(services.get_buildings_by_ids, store, keys)

    async def load_apartment_owners(keys: List[str]) -> List[Optional[dict]]:
        return await asyncio.to_thread(services.get_apartment_owners_by_ids, store, keys)

    return Loaders(
        building=DataLoader(load_fn=load_buildings),
        apartment_owner=DataLoader(load_fn=load_apartment_owners),
    )
