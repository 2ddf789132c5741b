from conftest import FakeElement, FakePage
from listings_finder.scrapers.house_rules import RULE_ROWS_JS, extract_house_rules, parse_house_rules

RAW_RULES = {
    "rows": [
        {"text": "Check-in after 3:00 PM"},
        {"text": "Checkout before 11:00 AM"},
        {"text": "Self check-in with lockbox"},
        {"text": "4 guests maximum"},
        {"text": "No pets"},
        {"text": "Quiet hours", "detail": "10:00 PM - 8:00 AM"},
        {"text": "No parties or events"},
        {"text": "No smoking"},
    ],
    "additionalRules": "  No shoes\n inside ",
    "beforeYouLeave": ["Turn things off", ""],
}


def test_parse_house_rules():
    rules = parse_house_rules(RAW_RULES)
    assert rules.check_in == "3:00 PM"
    assert rules.check_out == "11:00 AM"
    assert rules.self_check_in is True
    assert rules.max_guests == 4
    assert rules.pets is False
    assert rules.quiet_hours == "10:00 PM - 8:00 AM"
    assert rules.no_parties is True
    assert rules.no_commercial_photography is False
    assert rules.no_smoking is True
    assert rules.additional_rules == "No shoes inside"
    assert rules.before_you_leave == ["Turn things off"]


def test_pets_allowed_unless_forbidden():
    assert parse_house_rules({"rows": []}).pets is True


async def test_expand_failure_still_returns_rules():
    page = FakePage(
        scripts={RULE_ROWS_JS: RAW_RULES},
        elements={'button:has-text("Show more")': FakeElement(click_error=RuntimeError("covered"))},
    )
    rules = await extract_house_rules(page, "42")

    assert rules.max_guests == 4
    assert page.visited_urls() == ["https://www.airbnb.com/rooms/42/house-rules"]
