import pytest

from extraction.entity_extractor import (
    MAX_KEYWORDS,
    extract_actions,
    extract_all,
    extract_dates,
    extract_keywords,
    extract_locations,
    extract_people,
)
from task_triage.models import EntityBag


def test_empty_text_yields_empty_bag():
    empty = EntityBag()
    assert extract_all(None) == empty
    assert extract_all("") == empty
    assert extract_all(None).model_dump() == {
        "people": [], "dates": [], "locations": [], "actions": [], "keywords": [],
    }


def test_people_after_trigger_word():
    assert extract_people("Schedule urgent meeting with John today") == ["John"]
    assert extract_people("Review budget with Sarah Connor and call Mike") == ["Sarah Connor", "Mike"]


def test_people_trigger_is_case_insensitive_but_name_is_not():
    assert extract_people("WITH Anna") == ["Anna"]
    assert extract_people("meet with john") == []


def test_people_before_modal_verb():
    assert extract_people("Alice will send the report") == ["Alice"]
    assert extract_people("Tom needs to sign off") == ["Tom"]


def test_people_skips_calendar_words_and_dedupes():
    assert extract_people("Meet Monday with Bob") == ["Bob"]
    assert extract_people("Call John. John will confirm with John") == ["John"]


def test_dates_relative_and_clock_times():
    text = "Submit report tomorrow at 3:30 PM, review next Friday and this week"
    assert extract_dates(text) == ["tomorrow", "this week", "next friday", "3:30 pm"]


def test_dates_numeric_and_month_day():
    assert extract_dates("Due 12/25/2024 or March 15th") == ["12/25/2024", "march 15th"]


def test_dates_are_lower_cased_and_unique():
    assert extract_dates("today and TODAY and Today") == ["today"]


def test_clock_time_without_suffix_has_no_trailing_space():
    assert extract_dates("standup 9:15 daily") == ["9:15"]


def test_locations_named_site():
    assert extract_locations("Inspect equipment at the Main Warehouse") == ["Main Warehouse"]


def test_locations_room_and_floor():
    found = extract_locations("Meeting in Room 204 on Floor 3")
    assert "Room 204" in found
    assert "Floor 3" in found


def test_locations_drop_short_and_lowercase():
    assert extract_locations("go to Al") == []
    assert extract_locations("meet at the office") == []


def test_actions_from_closed_vocabulary():
    text = "Please review, approve and SEND the invoice. Review again!"
    assert extract_actions(text) == ["review", "approve", "send"]


def test_keywords_first_seen_without_stop_words():
    text = "The quarterly budget review needs budget approval from finance"
    assert extract_keywords(text) == [
        "quarterly", "budget", "review", "needs", "approval", "finance",
    ]
    assert extract_keywords("should would could these those") == []


def test_keywords_capped_in_order_of_appearance():
    words = [
        "alpha", "bravo", "charlie", "delta", "echo", "foxtrot",
        "golf", "hotel", "india", "juliet", "kilo", "lima",
    ]
    assert extract_keywords(" ".join(words)) == words[:MAX_KEYWORDS]


@pytest.mark.parametrize("text", [
    "Call John. Call John. Call John at the Main Office today today",
    "Fix fix FIX the server; server down since 10:00 and 10:00am",
    "Room 12 room 12 ROOM 12 next week next week",
])
def test_no_field_contains_duplicates(text):
    bag = extract_all(text)
    for field, values in bag.model_dump().items():
        assert len(values) == len(set(values)), field
