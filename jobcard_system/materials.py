"""Material availability lookup producing shortfalls per job card."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .domain import JobCard, MaterialShortfall
from .repository import InMemoryRepository


@dataclass(slots=True)
class InventoryItem:
    """Stock level of a raw material or bought-out component."""

    id: str
    name: str
    unit_of_measure: str
    quantity_on_hand: float
    reserved_quantity: float = 0.0

    @property
    def available(self) -> float:
        return max(0.0, self.quantity_on_hand - self.reserved_quantity)


@dataclass(slots=True)
class MaterialRequirement:
    """Quantity of a material consumed per piece by a process."""

    item_id: str
    quantity_per_piece: float


class MaterialAvailability:
    """Compares a job card's material needs with current stock.

    Requirements are registered per process and scaled by the job card
    quantity. Materials missing from the inventory count as zero stock.
    """

    def __init__(self, inventory: Optional[InMemoryRepository[InventoryItem]] = None) -> None:
        self.inventory = inventory if inventory is not None else InMemoryRepository()
        self._requirements: Dict[str, List[MaterialRequirement]] = {}

    def add_requirement(
        self, process_id: str, item_id: str, quantity_per_piece: float
    ) -> MaterialRequirement:
        if quantity_per_piece < 0:
            raise ValueError("Material requirement must not be negative")
        requirement = MaterialRequirement(item_id=item_id, quantity_per_piece=quantity_per_piece)
        self._requirements.setdefault(process_id, []).append(requirement)
        return requirement

    def requirements_for(self, process_id: str) -> List[MaterialRequirement]:
        return list(self._requirements.get(process_id, ()))

    def shortfalls_for(self, job_card: JobCard) -> List[MaterialShortfall]:
        aggregated: Dict[str, float] = {}
        for requirement in self.requirements_for(job_card.process_id):
            aggregated[requirement.item_id] = aggregated.get(
                requirement.item_id, 0.0
            ) + requirement.quantity_per_piece * job_card.quantity

        shortfalls: List[MaterialShortfall] = []
        for item_id, required in aggregated.items():
            item = self.inventory.find(item_id)
            available = item.available if item is not None else 0.0
            shortfalls.append(
                MaterialShortfall(material_id=item_id, required=required, available=available)
            )
        return shortfalls


__all__ = ["InventoryItem", "MaterialRequirement", "MaterialAvailability"]
