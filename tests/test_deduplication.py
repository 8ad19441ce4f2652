from types import SimpleNamespace

from services.deduplication import DeduplicationService, collapse_duplicates, remove_duplicate_homepage_sections
from services.homepage_sections import seed_homepage_sections


def test_collapse_keeps_lowest_id():
    records = [
        SimpleNamespace(id=5, name="hero"),
        SimpleNamespace(id=2, name="hero"),
        SimpleNamespace(id=3, name="video"),
        SimpleNamespace(id=9, name="hero"),
    ]
    plan = collapse_duplicates(records, key=lambda r: r.name, ident=lambda r: r.id)

    assert len(plan.groups) == 1
    assert plan.groups[0].kept == 2
    assert plan.to_delete == [5, 9]
    assert plan.to_dict()["duplicate_keys"] == 1


def test_collapse_without_duplicates():
    plan = collapse_duplicates([SimpleNamespace(id=1, name="a")], key=lambda r: r.name, ident=lambda r: r.id)
    assert plan.is_empty
    assert plan.to_delete == []


async def _seed_with_duplicates(storage):
    await seed_homepage_sections(storage)
    for name in ("hero", "hero", "pricing"):
        await storage.create_homepage_section({"section_name": name, "title": "copy", "sort_order": 99})


async def test_dry_run_deletes_nothing(storage):
    await _seed_with_duplicates(storage)

    plan = await DeduplicationService(storage).remove_duplicate_homepage_sections(dry_run=True)

    assert len(plan.to_delete) == 3
    assert len(await storage.get_homepage_sections()) == 9


async def test_remove_duplicates_then_idempotent(storage):
    await _seed_with_duplicates(storage)

    plan = await remove_duplicate_homepage_sections(storage)

    sections = await storage.get_homepage_sections()
    assert len(sections) == 6
    assert len({s.section_name for s in sections}) == 6
    hero = await storage.get_section_by_name("hero")
    assert hero.id == min(g.kept for g in plan.groups if g.key == "hero")
    assert hero.title != "copy"

    again = await remove_duplicate_homepage_sections(storage)
    assert again.is_empty


def test_collapse_leaves_single_records_alone():
    records = [
        SimpleNamespace(id=1, key="hero"),
        SimpleNamespace(id=5, key="hero"),
        SimpleNamespace(id=2, key="benefits"),
    ]
    plan = collapse_duplicates(records, key=lambda r: r.key, ident=lambda r: r.id)

    assert [(g.key, g.kept, g.removed) for g in plan.groups] == [("hero", 1, [5])]
    survivors = [r for r in records if r.id not in plan.to_delete]
    assert collapse_duplicates(survivors, key=lambda r: r.key, ident=lambda r: r.id).is_empty
