"""
Deduplication Service
Collapses records sharing a key down to the one with the lowest id
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class DuplicateGroup:
    key: Hashable
    kept: Any
    removed: List[Any] = field(default_factory=list)


@dataclass
class CollapsePlan:
    """Which ids survive and which go, per duplicated key."""
    groups: List[DuplicateGroup] = field(default_factory=list)

    @property
    def to_delete(self) -> List[Any]:
        return [ident for group in self.groups for ident in group.removed]

    @property
    def is_empty(self) -> bool:
        return not self.groups

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duplicate_keys": len(self.groups),
            "to_delete": len(self.to_delete),
            "groups": [
                {"key": group.key, "kept": group.kept, "removed": list(group.removed)}
                for group in self.groups
            ],
        }


def collapse_duplicates(
    records: Iterable[Any],
    key: Callable[[Any], Hashable],
    ident: Callable[[Any], Any],
) -> CollapsePlan:
    """
    Group records by key; within every group of two or more keep the lowest
    identifier and list the rest for deletion. Groups come out in key order
    of first appearance.
    """
    grouped: Dict[Hashable, List[Any]] = {}
    for record in records:
        grouped.setdefault(key(record), []).append(ident(record))

    plan = CollapsePlan()
    for group_key, idents in grouped.items():
        if len(idents) < 2:
            continue
        ordered = sorted(idents)
        plan.groups.append(DuplicateGroup(key=group_key, kept=ordered[0], removed=ordered[1:]))
    return plan


class DeduplicationService:
    """Removes duplicate homepage sections left behind by repeated seeding"""

    def __init__(self, storage=None):
        if storage is None:
            from services.storage import storage
        self.storage = storage

    async def remove_duplicate_homepage_sections(self, dry_run: bool = False) -> CollapsePlan:
        sections = await self.storage.get_homepage_sections()
        plan = collapse_duplicates(sections, key=lambda s: s.section_name, ident=lambda s: s.id)

        if plan.is_empty:
            logger.info("No duplicate homepage sections found.")
            return plan

        for group in plan.groups:
            logger.info(
                f"Section '{group.key}': keeping id {group.kept}, "
                f"{'would delete' if dry_run else 'deleting'} ids {group.removed}"
            )

        if dry_run:
            logger.info(f"Dry run: {len(plan.to_delete)} duplicate sections would be deleted")
            return plan

        deleted = await self.storage.delete_homepage_sections(plan.to_delete)
        logger.info(f"Deleted {deleted} duplicate homepage sections")
        return plan


async def remove_duplicate_homepage_sections(storage=None, dry_run: bool = False) -> CollapsePlan:
    return await DeduplicationService(storage).remove_duplicate_homepage_sections(dry_run=dry_run)
