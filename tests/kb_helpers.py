from studiobot.config import KB_DIR

SHIPPED_KB_PATH = KB_DIR / "motiontography_kb.json"


def minimal_kb_dict(**overrides):
    data = {
        "kb_version": "test",
        "last_updated_local": "2026-01-01",
        "business": {},
        "square_booking_links": {},
        "packages": [],
        "booking_policies": {},
        "intents_and_answers": [],
        "bot_guardrails": {},
    }
    data.update(overrides)
    return data
