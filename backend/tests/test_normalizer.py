"""Tests for model output normalization and dietary repair."""

import json
import re

import pytest

from conftest import make_evaluation_payload, make_plan_payload
from fittrack.schemas.advisor import WEEKDAYS
from fittrack.services.errors import (
    IncompletePlanError,
    NoJsonFoundError,
    SchemaViolationError,
)
from fittrack.services.normalizer import (
    extract_json_text,
    normalize_evaluation,
    normalize_weekly_plan,
    parse_json_object,
    substitute_denylisted,
)
from fittrack.services.prompts import VEGAN_DENYLIST, VEGAN_REPLACEMENT


# =============================================================================
# JSON extraction
# =============================================================================


class TestExtractJson:
    """Tests for locating the JSON payload in raw model text."""

    @pytest.mark.parametrize(
        "wrapper",
        [
            "{payload}",
            "Sure! Here is your plan:\n{payload}\nLet me know if you need changes.",
            "```json\n{payload}\n```",
            "```\n{payload}\n```\n\nNotes: stay hydrated.",
        ],
    )
    def test_wrapped_json_parses_like_bare_json(self, wrapper):
        payload = json.dumps(make_evaluation_payload())
        raw = wrapper.replace("{payload}", payload)

        assert parse_json_object(raw) == json.loads(payload)

    def test_extracts_first_brace_to_last_brace(self):
        raw = 'text {"a": {"b": 1}} more text'
        assert extract_json_text(raw) == '{"a": {"b": 1}}'

    @pytest.mark.parametrize("raw", ["", "no json here", "} backwards {", "[1, 2, 3]"])
    def test_no_object_raises_no_json_found(self, raw):
        with pytest.raises(NoJsonFoundError):
            extract_json_text(raw)

    def test_invalid_json_raises_schema_violation(self):
        with pytest.raises(SchemaViolationError):
            parse_json_object('Here: {"overview": "unterminated}')

    def test_prose_between_two_objects_is_not_json(self):
        with pytest.raises(SchemaViolationError):
            parse_json_object('{"a": 1} and also {"b": 2}')


# =============================================================================
# Evaluation
# =============================================================================


class TestNormalizeEvaluation:
    """Tests for loose evaluation validation."""

    def test_full_payload(self):
        result = normalize_evaluation(json.dumps(make_evaluation_payload()))

        assert result.overview.startswith("Mild anemia")
        assert result.doctors[0].type == "government"
        assert result.further_diagnosis == ["HbA1c", "Iron studies"]

    def test_missing_fields_default_to_empty(self):
        result = normalize_evaluation('{"overview": "Looks fine."}')

        assert result.overview == "Looks fine."
        assert result.evaluation == ""
        assert result.doctors == []
        assert result.further_diagnosis == []

    def test_list_fields_flattened_to_text(self):
        result = normalize_evaluation('{"diet": ["Spinach", "Lentils"], "furtherDiagnosis": "HbA1c"}')

        assert result.diet == "Spinach, Lentils"
        assert result.further_diagnosis == ["HbA1c"]

    @pytest.mark.parametrize(
        "given, expected",
        [("Government", "government"), ("govt", "government"), ("Private", "private"), ("trust", "private")],
    )
    def test_doctor_type_normalized(self, given, expected):
        raw = json.dumps({"doctors": [{"name": "Dr. X", "type": given}]})
        assert normalize_evaluation(raw).doctors[0].type == expected

    def test_null_doctors_and_diagnosis_default_to_empty(self):
        payload = make_evaluation_payload()
        payload["doctors"] = None
        payload["furtherDiagnosis"] = None

        result = normalize_evaluation(json.dumps(payload))

        assert result.doctors == []
        assert result.further_diagnosis == []
        assert result.overview.startswith("Mild anemia")

    def test_null_doctor_entries_dropped(self):
        raw = json.dumps({"doctors": [None, {"name": "Dr. Y", "type": "private"}, None]})

        doctors = normalize_evaluation(raw).doctors

        assert [d.name for d in doctors] == ["Dr. Y"]

    def test_single_doctor_object_wrapped(self):
        raw = json.dumps({"doctors": {"name": "Dr. Z", "specialization": "Endocrinologist"}})

        doctors = normalize_evaluation(raw).doctors

        assert len(doctors) == 1
        assert doctors[0].specialization == "Endocrinologist"
        assert doctors[0].type == "private"

    def test_wrong_shape_raises_schema_violation(self):
        with pytest.raises(SchemaViolationError):
            normalize_evaluation('{"doctors": "see a doctor"}')

    def test_vegan_scrubs_diet_field(self):
        raw = json.dumps({"diet": "Drink warm milk with honey before bed."})
        result = normalize_evaluation(raw, vegan=True)

        assert "milk" not in result.diet.lower()
        assert "honey" not in result.diet.lower()


# =============================================================================
# Weekly plan
# =============================================================================


class TestNormalizeWeeklyPlan:
    """Tests for strict weekday coverage and repair."""

    def test_complete_plan(self):
        plan = normalize_weekly_plan(json.dumps(make_plan_payload()))

        assert list(plan.diet_plan) == list(WEEKDAYS)
        assert list(plan.workout_plan) == list(WEEKDAYS)
        assert plan.confidence == "medium"
        assert plan.workout_plan["Monday"].main_workout == "30 min bodyweight circuit"

    @pytest.mark.parametrize("mapping", ["dietPlan", "workoutPlan"])
    @pytest.mark.parametrize("missing_day", ["Sunday", "Wednesday", "Saturday"])
    def test_missing_day_is_incomplete(self, mapping, missing_day):
        payload = make_plan_payload()
        del payload[mapping][missing_day]

        with pytest.raises(IncompletePlanError):
            normalize_weekly_plan(json.dumps(payload))

    @pytest.mark.parametrize("mapping", ["dietPlan", "workoutPlan"])
    def test_missing_mapping_is_incomplete(self, mapping):
        payload = make_plan_payload()
        del payload[mapping]

        with pytest.raises(IncompletePlanError):
            normalize_weekly_plan(json.dumps(payload))

    def test_incomplete_is_a_schema_violation(self):
        assert issubclass(IncompletePlanError, SchemaViolationError)

    def test_weekday_keys_case_insensitive(self):
        payload = make_plan_payload()
        payload["dietPlan"] = {k.lower(): v for k, v in payload["dietPlan"].items()}
        payload["workoutPlan"] = {f" {k.upper()} ": v for k, v in payload["workoutPlan"].items()}

        plan = normalize_weekly_plan(json.dumps(payload))

        assert list(plan.diet_plan) == list(WEEKDAYS)
        assert list(plan.workout_plan) == list(WEEKDAYS)

    def test_short_mapping_keys_accepted(self):
        payload = make_plan_payload()
        raw = json.dumps({"diet": payload["dietPlan"], "workout": payload["workoutPlan"]})

        plan = normalize_weekly_plan(raw)

        assert len(plan.diet_plan) == 7

    @pytest.mark.parametrize("confidence", [None, "", "certain"])
    def test_confidence_defaults_to_high(self, confidence):
        payload = make_plan_payload()
        if confidence is None:
            del payload["confidence"]
        else:
            payload["confidence"] = confidence

        assert normalize_weekly_plan(json.dumps(payload)).confidence == "high"

    def test_flexible_workout_fields(self):
        payload = make_plan_payload()
        payload["workoutPlan"] = {
            day: {"activity": "Yoga", "duration": "45 min", "notes": "Go easy"} for day in WEEKDAYS
        }

        plan = normalize_weekly_plan(json.dumps(payload))

        assert plan.workout_plan["Friday"].activity == "Yoga"
        assert plan.workout_plan["Friday"].duration == "45 min"

    def test_day_with_wrong_shape_raises_schema_violation(self):
        payload = make_plan_payload()
        payload["dietPlan"]["Monday"] = "Fasting"

        with pytest.raises(SchemaViolationError):
            normalize_weekly_plan(json.dumps(payload))

    def test_fenced_plan(self):
        raw = "```json\n" + json.dumps(make_plan_payload()) + "\n```"
        assert normalize_weekly_plan(raw) == normalize_weekly_plan(json.dumps(make_plan_payload()))


# =============================================================================
# Vegan denylist substitution
# =============================================================================


def _whole_word_hits(text: str) -> list[str]:
    return [
        word for word in VEGAN_DENYLIST
        if re.search(rf"\b{re.escape(word)}\b", text, re.IGNORECASE)
    ]


class TestVeganSubstitution:
    """Tests for post-hoc removal of animal products."""

    @pytest.mark.parametrize(
        "text",
        [
            "Paneer tikka with mint chutney",
            "Scrambled EGGS and toast with Butter",
            "Grilled fish, steamed rice",
            "Greek yogurt parfait with honey",
            "Chicken curry; Milk; Ghee roti; cheese toast",
            "Buttermilk and curd rice",
            "Bacon and sausages with grilled ham",
            "Seafood platter; poultry stock; gelatin dessert",
        ],
    )
    def test_denylisted_words_removed(self, text):
        result = substitute_denylisted(text)

        assert _whole_word_hits(result) == []
        assert VEGAN_REPLACEMENT in result

    @pytest.mark.parametrize("text", ["Eggplant curry", "Buttery-smooth hummus", "Creamy tomato soup"])
    def test_words_containing_denylisted_substrings_untouched(self, text):
        assert substitute_denylisted(text) == text

    def test_vegan_plan_has_no_denylisted_words_anywhere(self):
        payload = make_plan_payload(meal="Masala omelette with 2 eggs and a glass of milk")
        for day in WEEKDAYS:
            payload["dietPlan"][day]["dinner"] = "Butter chicken with ghee naan"
            payload["dietPlan"][day]["juice"] = "Mango lassi with curd and honey"

        plan = normalize_weekly_plan(json.dumps(payload), vegan=True)

        for meals in plan.diet_plan.values():
            for value in meals.model_dump().values():
                assert _whole_word_hits(value) == []

    def test_non_vegan_plan_untouched(self):
        payload = make_plan_payload(meal="Boiled egg and toast")

        plan = normalize_weekly_plan(json.dumps(payload), vegan=False)

        assert plan.diet_plan["Sunday"].breakfast == "Boiled egg and toast"
