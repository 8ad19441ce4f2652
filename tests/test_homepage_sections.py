from services.homepage_sections import DEFAULT_HOMEPAGE_SECTIONS, seed_homepage_sections


async def test_seed_creates_defaults_once(storage):
    assert await seed_homepage_sections(storage) == len(DEFAULT_HOMEPAGE_SECTIONS)
    assert await seed_homepage_sections(storage) == 0
    assert len(await storage.get_homepage_sections()) == len(DEFAULT_HOMEPAGE_SECTIONS)


async def test_active_sections_in_display_order(storage):
    await seed_homepage_sections(storage)
    await storage.create_homepage_section({"section_name": "banner", "sort_order": 0, "is_active": False})

    names = [s.section_name for s in await storage.get_active_sections()]

    assert names == ["hero", "featured_products", "benefits", "video", "pricing", "order_form"]


async def test_section_payloads(storage):
    await seed_homepage_sections(storage)

    hero = await storage.get_section_by_name("hero")
    benefits = await storage.get_section_by_name("benefits")
    pricing = await storage.get_section_by_name("pricing")

    assert hero.button_url == "#order-form"
    assert benefits.additional_data["benefits"]
    assert pricing.additional_data["features"]
    assert await storage.get_section_by_name("missing") is None
