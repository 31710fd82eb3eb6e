from studiobot import intent_router as IR
from studiobot.kb_models import Business, Intent, PackageRoute, UrlRoute, parse_route

LINKS = {
    "classic_portrait": {
        "studio": "https://book.example/classic-studio",
        "on_location": "https://book.example/classic-location",
    },
    "maternity": "https://book.example/maternity",
    "headshots": {"on_location": "https://book.example/headshots-location"},
    "empty": {},
    "numbers_only": {"studio": 3},
}


def test_url_route():
    assert IR.resolve_route_url(UrlRoute(url="https://x.example/a"), LINKS) == "https://x.example/a"
    assert IR.resolve_route_url(UrlRoute(url=None), LINKS) is None
    assert IR.resolve_route_url(None, LINKS) is None


def test_package_route_string_entry_ignores_mode():
    route = PackageRoute(package_id="maternity", mode="on_location")
    assert IR.resolve_route_url(route, LINKS) == "https://book.example/maternity"


def test_package_route_mode_and_default_mode():
    assert IR.resolve_route_url(
        PackageRoute(package_id="classic_portrait", mode="on_location"), LINKS
    ) == "https://book.example/classic-location"
    assert IR.resolve_route_url(
        PackageRoute(package_id="classic_portrait"), LINKS
    ) == "https://book.example/classic-studio"


def test_package_route_falls_back_to_first_url():
    route = PackageRoute(package_id="headshots", mode="studio")
    assert IR.resolve_route_url(route, LINKS) == "https://book.example/headshots-location"


def test_package_route_unresolvable():
    assert IR.resolve_route_url(PackageRoute(package_id="missing"), LINKS) is None
    assert IR.resolve_route_url(PackageRoute(package_id="empty"), LINKS) is None
    assert IR.resolve_route_url(PackageRoute(package_id="numbers_only"), LINKS) is None
    assert IR.resolve_route_url(PackageRoute(package_id=None), LINKS) is None
    assert IR.resolve_route_url(PackageRoute(package_id="maternity"), None) is None


def test_parse_route_shapes():
    assert isinstance(parse_route({"type": "url", "url": "https://a"}), UrlRoute)
    r = parse_route({"kind": "package", "packageId": "maternity"})
    assert isinstance(r, PackageRoute)
    assert r.package_id == "maternity"
    assert r.mode is None
    assert parse_route({"type": "carrier_pigeon"}) is None
    assert parse_route("https://a") is None


def test_normalize_url_collapses_double_slashes():
    assert IR.normalize_url("https://motiontography.com//contact.html") == "https://motiontography.com/contact.html"
    assert IR.normalize_url("https://a.example///b//c") == "https://a.example/b/c"
    assert IR.normalize_url("https://a.example/b") == "https://a.example/b"
    assert IR.normalize_url(None) == ""


def test_format_intent_answer_joins_list_answers():
    intent = Intent.model_validate({
        "id": "x",
        "answer": ["First part.", "", "Second part."],
        "followups": ["Anything else?"],
        "route": {"type": "square_package", "package_id": "maternity"},
    })
    out = IR.format_intent_answer(intent, LINKS)
    assert out.reply == "First part.\n\nSecond part."
    assert out.followups == ["Anything else?"]
    assert out.route_url == "https://book.example/maternity"


def test_format_intent_answer_trims_text_and_handles_missing():
    intent = Intent.model_validate({"id": "x", "answer": "  Hello there.  "})
    out = IR.format_intent_answer(intent, {})
    assert out.reply == "Hello there."
    assert out.followups == []
    assert out.route_url is None
    assert IR.format_intent_answer(Intent.model_validate({"id": "y"}), {}).reply == ""


def test_escalation_reply_defaults():
    assert IR.build_escalation_reply(None) == (
        "I don't want to guess and give you the wrong info. "
        "Please contact Roger directly at +1-757-759-8454 (call/text), "
        "or use the contact page: https://motiontography.com/contact.html"
    )


def test_escalation_reply_uses_business_fields():
    business = Business(owner="Dana Smith", primary_phone="+1-555-0100", website="https://studio.example/")
    reply = IR.build_escalation_reply(business)
    assert "contact Dana directly at +1-555-0100 (call/text)" in reply
    assert reply.endswith("https://studio.example/contact.html")
