import importlib.util
import json
import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

_MISSING_PYDANTIC = importlib.util.find_spec("pydantic") is None

if not _MISSING_PYDANTIC:
    from agrigen.domain.errors import PipelineError, PipelineErrorKind, PipelineStage
    from agrigen.domain.normalizer import (
        FALLBACK_TEXT,
        align_calendar_months,
        clamp_confidence,
        normalize,
        parse_model_json,
    )
    from agrigen.domain.ordering import (
        activities_by_priority,
        priority_rank,
        severity_rank,
    )
    from agrigen.schemas.definitions import (
        ANNUAL_PLAN_SCHEMA,
        CALENDAR_MONTHS,
        CROP_DIAGNOSIS_SCHEMA,
        NO_TREATMENT_EN,
        WEATHER_ADVISORY_SCHEMA,
    )

GENERATED_AT = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _diagnose(payload, **kwargs):
    return normalize(
        json.dumps(payload, ensure_ascii=False),
        CROP_DIAGNOSIS_SCHEMA,
        kind="crop_diagnosis",
        generated_at=GENERATED_AT,
        field_defaults=kwargs.pop("field_defaults", {"detectedCrop_en": "Wheat"}),
        extras=kwargs.pop("extras", {"notes": ""}),
        **kwargs,
    )


def _advise(payload, **kwargs):
    return normalize(
        json.dumps(payload, ensure_ascii=False),
        WEATHER_ADVISORY_SCHEMA,
        kind="weather_advisory",
        generated_at=GENERATED_AT,
        extras={"location": "Multan"},
        **kwargs,
    )


@unittest.skipUnless(not _MISSING_PYDANTIC, "pydantic is not installed")
class ParseModelJsonTests(unittest.TestCase):
    def test_code_fence_is_stripped(self) -> None:
        payload = parse_model_json('```json\n{"summary_en": "ok"}\n```')
        self.assertEqual(payload, {"summary_en": "ok"})

    def test_invalid_json_is_a_validation_failure(self) -> None:
        with self.assertRaises(PipelineError) as ctx:
            parse_model_json("Sorry, I cannot help with that.")
        self.assertEqual(ctx.exception.stage, PipelineStage.VALIDATION)
        self.assertEqual(ctx.exception.kind, PipelineErrorKind.RESPONSE_PARSE_FAILURE)
        self.assertFalse(ctx.exception.retryable)
        self.assertNotIn("Sorry", ctx.exception.message)

    def test_json_array_is_rejected(self) -> None:
        with self.assertRaises(PipelineError):
            parse_model_json("[1, 2, 3]")


@unittest.skipUnless(not _MISSING_PYDANTIC, "pydantic is not installed")
class CropDiagnosisNormalizeTests(unittest.TestCase):
    def test_missing_confidence_defaults_to_zero(self) -> None:
        result = _diagnose({"detectedCrop_en": "Wheat", "healthStatus": "Healthy"})
        self.assertEqual(result.diseaseConfidence, 0)
        self.assertEqual(result.analysis.confidence, 0)
        self.assertEqual(result.analysis.uploadedAt, GENERATED_AT)

    def test_confidence_is_clamped_and_coerced(self) -> None:
        self.assertEqual(_diagnose({"diseaseConfidence": 140}).diseaseConfidence, 100)
        self.assertEqual(_diagnose({"diseaseConfidence": -5}).diseaseConfidence, 0)
        self.assertEqual(_diagnose({"diseaseConfidence": "85%"}).diseaseConfidence, 85)
        self.assertEqual(clamp_confidence(float("nan")), 0)
        self.assertEqual(clamp_confidence("high"), 0)

    def test_required_fields_are_defaulted(self) -> None:
        result = _diagnose({"healthStatus": "Healthy"})
        self.assertEqual(result.detectedCrop_en, "Wheat")
        self.assertEqual(result.detectedCrop, "Wheat")
        self.assertEqual(result.pestDisease_en, "None")
        self.assertEqual(result.severity, "None")
        self.assertEqual(result.affectedArea_en, "N/A")
        self.assertEqual(result.estimatedRecoveryTime_en, "N/A")
        self.assertEqual(
            [step.model_dump() for step in result.treatmentPlan_en], NO_TREATMENT_EN
        )
        self.assertEqual(result.preventiveMeasures, [])

    def test_english_only_text_gets_urdu_fallback_and_alias(self) -> None:
        result = _diagnose(
            {
                "detectedCrop_en": "Wheat",
                "pestDisease_en": "Leaf rust",
                "treatmentPlan_en": [
                    {"step": "Spray", "description": "Apply fungicide at 200 ml/acre."}
                ],
                "preventiveMeasures_en": ["Use resistant varieties"],
            }
        )
        self.assertEqual(result.pestDisease, "Leaf rust")
        self.assertEqual(result.pestDisease_ur, FALLBACK_TEXT["ur"])
        self.assertEqual(result.detectedCrop_ur, FALLBACK_TEXT["ur"])
        self.assertEqual(len(result.treatmentPlan_ur), 1)
        self.assertEqual(result.treatmentPlan_ur[0].step, FALLBACK_TEXT["ur"])
        self.assertEqual(result.preventiveMeasures_ur, [FALLBACK_TEXT["ur"]])

    def test_urdu_only_text_fills_english_side(self) -> None:
        result = _diagnose({"additionalNotes_ur": "پتوں پر دھبے"})
        self.assertEqual(result.additionalNotes_ur, "پتوں پر دھبے")
        self.assertEqual(result.additionalNotes_en, FALLBACK_TEXT["en"])
        self.assertEqual(result.additionalNotes, FALLBACK_TEXT["en"])

    def test_unknown_enum_value_is_kept(self) -> None:
        result = _diagnose({"healthStatus": "Stressed", "severity": "Extreme"})
        self.assertEqual(result.healthStatus, "Stressed")
        self.assertEqual(result.severity, "Extreme")
        self.assertEqual(severity_rank(result.severity), 0)

    def test_notes_are_copied_into_analysis(self) -> None:
        result = _diagnose({"healthStatus": "At Risk"}, extras={"notes": "after rain"})
        self.assertEqual(result.analysis.notes, "after rain")

    def test_same_input_gives_identical_result(self) -> None:
        payload = {"detectedCrop_en": "Wheat", "diseaseConfidence": 70}
        self.assertEqual(_diagnose(payload), _diagnose(payload))


@unittest.skipUnless(not _MISSING_PYDANTIC, "pydantic is not installed")
class WeatherAdvisoryNormalizeTests(unittest.TestCase):
    def test_sections_are_paired_and_defaulted(self) -> None:
        result = _advise(
            {
                "summary_en": "Hot and dry week ahead.",
                "summary_ur": "آنے والا ہفتہ گرم اور خشک ہے۔",
                "sections": [
                    {
                        "heading_en": "Irrigation",
                        "content_en": "Irrigate early in the morning.",
                        "subsections": [{"subheading_en": "Wheat", "text_en": "Skip."}],
                    }
                ],
                "alerts": [{"message_en": "Heatwave expected"}],
            }
        )
        section = result.sections[0]
        self.assertEqual(section.heading, "Irrigation")
        self.assertEqual(section.heading_ur, FALLBACK_TEXT["ur"])
        self.assertEqual(section.priority, "medium")
        self.assertEqual(section.subsections[0].text_ur, FALLBACK_TEXT["ur"])
        self.assertEqual(result.alerts[0].type, "info")
        self.assertEqual(result.alerts[0].message, "Heatwave expected")
        self.assertEqual(result.summary, "Hot and dry week ahead.")
        self.assertEqual(result.location, "Multan")
        self.assertEqual(result.generatedAt, GENERATED_AT)

    def test_canonical_only_value_becomes_english_side(self) -> None:
        result = _advise({"summary": "Mild weather."})
        self.assertEqual(result.summary_en, "Mild weather.")
        self.assertEqual(result.summary_ur, FALLBACK_TEXT["ur"])

    def test_response_below_field_threshold_is_rejected(self) -> None:
        with self.assertRaises(PipelineError) as ctx:
            _advise({"unrelated": "value"})
        self.assertEqual(ctx.exception.kind, PipelineErrorKind.RESPONSE_PARSE_FAILURE)

    def test_threshold_zero_accepts_placeholder_result(self) -> None:
        result = _advise({}, min_model_fields=0)
        self.assertEqual(result.summary, "")
        self.assertEqual(result.sections, [])


@unittest.skipUnless(not _MISSING_PYDANTIC, "pydantic is not installed")
class AnnualPlanNormalizeTests(unittest.TestCase):
    def test_months_are_aligned_to_calendar(self) -> None:
        entries = [
            {"month": "march", "activities": [{"title": "Weed"}]},
            {"month": "Jan", "activities": [{"title": "Irrigate"}]},
            {"month": "3", "activities": [{"title": "Fertilize"}]},
            {"month": "Rabi season", "activities": [{"title": "Dropped"}]},
        ]
        aligned = align_calendar_months(entries)
        self.assertEqual([entry["month"] for entry in aligned], list(CALENDAR_MONTHS))
        self.assertEqual(
            [activity["title"] for activity in aligned[2]["activities"]],
            ["Weed", "Fertilize"],
        )
        self.assertEqual(aligned[1]["activities"], [])

    def test_partial_plan_is_filled_with_defaults(self) -> None:
        raw = {
            "annualPlan": [
                {"month": "April", "activities": [{"title": "Harvest wheat", "priority": "High"}]},
            ]
        }
        result = normalize(
            json.dumps(raw),
            ANNUAL_PLAN_SCHEMA,
            kind="annual_plan",
            generated_at=GENERATED_AT,
            field_defaults={
                "farmInfo": {
                    "location": "Lahore",
                    "farmSize": "5 acres",
                    "soilType": "Loamy",
                    "primaryCrops": ["Wheat"],
                }
            },
        )
        self.assertEqual(len(result.annualPlan), 12)
        april = result.annualPlan[3]
        self.assertEqual(april.activities[0].status, "pending")
        self.assertEqual(april.activities[0].description, "")
        self.assertEqual(result.farmInfo.location, "Lahore")
        self.assertEqual(result.seasonalTips, [])

    def test_activities_sorted_by_priority_keep_calendar_order(self) -> None:
        raw = {
            "annualPlan": [
                {"month": "January", "activities": [{"title": "a", "priority": "Low"}]},
                {"month": "February", "activities": [{"title": "b", "priority": "High"}]},
                {"month": "March", "activities": [{"title": "c", "priority": "Someday"}]},
                {"month": "April", "activities": [{"title": "d", "priority": "High"}]},
            ]
        }
        result = normalize(
            json.dumps(raw), ANNUAL_PLAN_SCHEMA, kind="annual_plan", generated_at=GENERATED_AT
        )
        ordered = [activity.title for _, activity in activities_by_priority(result)]
        self.assertEqual(ordered, ["b", "d", "a", "c"])
        self.assertGreater(priority_rank("High"), priority_rank("Low"))
        self.assertEqual(priority_rank("Someday"), 0)


if __name__ == "__main__":
    unittest.main()
