"""
Homepage Sections
Default landing-page content and helpers to seed and read it
"""
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

DEFAULT_HOMEPAGE_SECTIONS: List[Dict[str, Any]] = [
    {
        "section_name": "hero",
        "title": "Original Magic Condom, made from 100% silicone",
        "subtitle": "Reusable and safe for long sessions.",
        "button_text": "Order now",
        "button_url": "#order-form",
        "is_active": True,
        "sort_order": 1,
    },
    {
        "section_name": "featured_products",
        "title": "Featured Products",
        "is_active": True,
        "sort_order": 2,
    },
    {
        "section_name": "benefits",
        "title": "Why choose the Magic Condom?",
        "content": "Comfortable for regular use with no side effects.",
        "additional_data": {
            "benefits": [
                "Safe for regular use.",
                "Helps you last longer.",
                "Your partner will enjoy it too.",
                "Reusable many times.",
            ]
        },
        "is_active": True,
        "sort_order": 3,
    },
    {
        "section_name": "video",
        "title": "Product Video",
        "content": '<iframe width="560" height="315" src="https://www.youtube.com/embed/example" '
                   'frameborder="0" allowfullscreen></iframe>',
        "is_active": True,
        "sort_order": 4,
    },
    {
        "section_name": "pricing",
        "title": "Pricing",
        "content": "Regular price 1990 Tk<br>Current price 790 Tk",
        "additional_data": {
            "features": [
                "100% original product",
                "Free home delivery across Bangladesh",
            ]
        },
        "is_active": True,
        "sort_order": 5,
    },
    {
        "section_name": "order_form",
        "title": "Order with your name, address and mobile number",
        "is_active": True,
        "sort_order": 6,
    },
]


async def seed_homepage_sections(storage=None, sections: List[Dict[str, Any]] = None) -> int:
    """Create default sections whose section_name is not present yet. Returns sections created."""
    if storage is None:
        from services.storage import storage

    existing = await storage.get_homepage_section_names()
    created = 0
    for section in sections if sections is not None else DEFAULT_HOMEPAGE_SECTIONS:
        if section["section_name"] in existing:
            logger.debug(f"Homepage section '{section['section_name']}' already present")
            continue
        await storage.create_homepage_section(dict(section))
        existing.add(section["section_name"])
        created += 1
    logger.info(f"Homepage sections seeded: {created} created")
    return created
