from kb_helpers import minimal_kb_dict
from studiobot import intent_router as IR
from studiobot.kb_models import Intent, KnowledgeBase
from studiobot.triggers import (
    LiteralTrigger,
    PatternTrigger,
    normalize,
    parse_trigger,
    score_trigger,
)


def _intent(id, triggers, answer="ok", **extra):
    return Intent.model_validate({"id": id, "triggers": triggers, "answer": answer, **extra})


# ------------------------------------------------------------
# Triggers
# ------------------------------------------------------------
def test_normalize_casefolds_and_collapses_whitespace():
    assert normalize("  Gift   CARDS\n\tplease ") == "gift cards please"
    assert normalize("") == ""


def test_parse_trigger_literal_and_pattern():
    assert isinstance(parse_trigger("which package"), LiteralTrigger)
    assert isinstance(parse_trigger("/"), LiteralTrigger)
    assert isinstance(parse_trigger("/half-open"), LiteralTrigger)
    pat = parse_trigger(r"/\bgift\s*card/i")
    assert isinstance(pat, PatternTrigger)
    assert pat.pattern == r"\bgift\s*card"
    assert pat.flags == "i"
    assert pat.valid


def test_pattern_trigger_scores_three_case_insensitive():
    pat = parse_trigger(r"/\bgift\s*card/i")
    assert score_trigger("Do you sell GIFT CARDS?", pat) == 3
    assert score_trigger("Do you sell GIFTCARDS?", pat) == 3
    assert score_trigger("Do you sell vouchers?", pat) == 0


def test_pattern_trigger_without_flag_is_case_sensitive():
    pat = parse_trigger(r"/Gift/")
    assert score_trigger("Gift please", pat) == 3
    assert score_trigger("gift please", pat) == 0


def test_invalid_pattern_never_matches():
    broken = parse_trigger("/([/i")
    assert isinstance(broken, PatternTrigger)
    assert not broken.valid
    assert score_trigger("([ anything", broken) == 0

    unknown_flag = parse_trigger("/gift/q")
    assert not unknown_flag.valid
    assert score_trigger("gift", unknown_flag) == 0

    repeated_flag = parse_trigger("/gift/ii")
    assert not repeated_flag.valid


def test_sticky_flag_anchors_at_start():
    pat = parse_trigger("/hello/y")
    assert pat.matches("hello there")
    assert not pat.matches("oh hello")


def test_literal_substring_plus_partial_words_bonus():
    trig = parse_trigger("gift card")
    assert score_trigger("Do you sell GIFT   card options?", trig) == 3


def test_single_word_literal_gets_no_partial_bonus():
    assert score_trigger("I am confused", parse_trigger("confused")) == 2


def test_partial_words_bonus_without_substring_hit():
    # both words present, not adjacent: bonus only
    assert score_trigger("what do I wear for a maternity shoot", parse_trigger("maternity wear")) == 1


def test_partial_words_below_ratio_scores_zero():
    # 2 of 3 words present, 3 needed
    assert score_trigger("what do I wear for a maternity shoot", parse_trigger("what to wear")) == 0


# ------------------------------------------------------------
# Intent scoring and selection
# ------------------------------------------------------------
def test_score_intent_sums_triggers():
    intent = _intent("gifts", [r"/\bgift\s*card/i", "gift card", "voucher"])
    # pattern 3 + literal (2 + 1)
    assert IR.score_intent("gift card for my mom", intent) == 6


def test_best_intent_picks_highest_score():
    intents = [
        _intent("pricing", ["price"]),
        _intent("gifts", [r"/gift/i", "voucher"]),
    ]
    match = IR.find_best_intent("Is there a gift voucher price?", intents)
    assert match.intent.id == "gifts"
    assert match.score == 5


def test_best_intent_tie_keeps_first():
    intents = [_intent("first", ["photo"]), _intent("second", ["photo"])]
    match = IR.find_best_intent("photo please", intents)
    assert match.intent.id == "first"
    assert match.score == 2


def test_best_intent_below_threshold_is_no_match():
    intents = [_intent("maternity_wear", ["maternity wear"])]
    match = IR.find_best_intent("what do I wear for a maternity shoot", intents)
    assert match.intent is None
    assert match.score == 1


def test_best_intent_with_no_intents():
    match = IR.find_best_intent("hello", [])
    assert match.intent is None
    assert match.score == 0


def test_what_to_wear_scenario():
    intents = [_intent("what_to_wear", ["what to wear", "wear", "maternity"])]
    match = IR.find_best_intent("what do I wear for a maternity shoot", intents)
    assert match.intent.id == "what_to_wear"
    assert match.score == 4


def test_non_list_triggers_score_zero():
    intent = Intent.model_validate({"id": "odd", "triggers": "gift", "answer": "x"})
    assert intent.triggers == []
    assert IR.score_intent("gift", intent) == 0


# ------------------------------------------------------------
# Heuristic answers from the shipped KB
# ------------------------------------------------------------
def test_answer_package_help(shipped_kb):
    res = IR.answer("Which package do I pick? I am confused.", shipped_kb)
    assert res.matched_intent_id == "package_help"
    assert res.match_score == 6
    assert not res.escalated
    assert res.reply.startswith("Happy to help you choose!\n\n")
    assert res.route_url == shipped_kb.link_table["classic_portrait"]["studio"]
    assert len(res.followups) == 2


def test_answer_gift_cards_pattern(shipped_kb):
    res = IR.answer("Do you sell gift cards?", shipped_kb)
    assert res.matched_intent_id == "gift_cards"
    assert res.match_score == 3
    assert res.route_url == "https://motiontography.com/gift-cards.html"


def test_answer_package_route_string_entry(shipped_kb):
    res = IR.answer("Can I book a maternity session?", shipped_kb)
    assert res.matched_intent_id == "maternity"
    assert res.route_url == shipped_kb.link_table["maternity"]


def test_answer_no_match_escalates(shipped_kb):
    res = IR.answer("Do you offer drone videography?", shipped_kb)
    assert res.escalated
    assert res.matched_intent_id is None
    assert res.match_score == 0
    assert res.route_url is None
    assert res.followups == []
    assert res.escalation_reason == IR.REASON_NO_MATCH
    assert res.reply.startswith("I don't want to guess and give you the wrong info.")


def test_answer_empty_answer_escalates_but_keeps_intent(shipped_kb):
    res = IR.answer("Do you do mini sessions?", shipped_kb)
    assert res.escalated
    assert res.matched_intent_id == "mini_sessions"
    assert res.match_score == 6
    assert res.escalation_reason == IR.REASON_EMPTY_ANSWER
    assert res.reply == IR.build_escalation_reply(shipped_kb.business)


def test_answer_blank_list_answer_escalates():
    kb = KnowledgeBase.from_json(minimal_kb_dict(intents_and_answers=[
        {"id": "blank", "triggers": ["hello"], "answer": ["   ", "\n"]},
    ]))
    res = IR.answer("hello there", kb)
    assert res.escalated
    assert res.matched_intent_id == "blank"
    assert res.escalation_reason == IR.REASON_EMPTY_ANSWER
    assert res.reply == IR.build_escalation_reply(kb.business)


SAMPLE_MESSAGES = [
    "Which package do I pick? I am confused.",
    "Do you have gift cards?",
    "what do I wear for a maternity shoot",
    "How much is a LinkedIn headshot?",
    "asdkjhaskjdh",
    "",
]


def test_trigger_scores_are_bounded_and_additive(shipped_kb):
    for message in SAMPLE_MESSAGES:
        for intent in shipped_kb.intents:
            parts = [score_trigger(message, t) for t in intent.triggers]
            for p in parts:
                assert p in (0, 1, 2, 3)
            assert IR.score_intent(message, intent) == sum(parts)


def test_gift_card_scenario(shipped_kb):
    res = IR.answer("Do you have gift cards?", shipped_kb)
    assert res.matched_intent_id == "gift_cards"
    assert res.match_score == 3


def test_gibberish_escalates(shipped_kb):
    res = IR.answer("asdkjhaskjdh", shipped_kb)
    assert res.escalated
    assert res.matched_intent_id is None
    assert res.reply == IR.build_escalation_reply(shipped_kb.business)
