"""
Test doubles for the two outbound collaborators of the generation pipeline.
"""

import json
from datetime import datetime, timezone

from agrigen.application.services.generation_invoker import InvocationResult, ProviderAttempt
from agrigen.infra.config import AppSettings
from agrigen.schemas.definitions import CALENDAR_MONTHS
from agrigen.schemas.models import ContextBundle, ContextSource


FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_NOW


def make_settings(**overrides) -> AppSettings:
    values = {
        "app_env": "test",
        "generation_providers": ["gemini"],
        "gemini_api_key": "test-key",
        "tavily_api_key": "tvly-test",
        "retry_max_attempts": 1,
        "retry_base_delay_seconds": 0.0,
        "request_timeout_seconds": 30.0,
    }
    values.update(overrides)
    return AppSettings(_env_file=None, **values)


class StubRetriever:
    def __init__(self, bundle=None, errors=None, config_error=None):
        self.bundle = bundle or ContextBundle(
            summary="Lahore has hot summers and a mild winter wheat season.",
            sources=(
                ContextSource(
                    title="Punjab crop calendar",
                    excerpt="Wheat is sown in November and harvested in April.",
                    url="https://example.org/punjab",
                ),
            ),
        )
        self.errors = list(errors or [])
        self.config_error = config_error
        self.calls = []

    def check_configured(self):
        if self.config_error is not None:
            raise self.config_error

    def retrieve(self, query, *, max_results, depth, timeout=None):
        self.calls.append({"query": query, "max_results": max_results, "depth": depth})
        if self.errors:
            raise self.errors.pop(0)
        return self.bundle


class StubInvoker:
    def __init__(self, text="{}", errors=None, provider="stub", config_error=None):
        self.text = text
        self.errors = list(errors or [])
        self.provider = provider
        self.config_error = config_error
        self.calls = []

    def check_configured(self):
        if self.config_error is not None:
            raise self.config_error

    def invoke(self, prompt, schema, media=None, *, schema_name="generation", timeout=None):
        self.calls.append(
            {"prompt": prompt, "schema": schema, "media": media, "schema_name": schema_name}
        )
        if self.errors:
            raise self.errors.pop(0)
        return InvocationResult(
            text=self.text,
            provider=self.provider,
            attempts=(ProviderAttempt(self.provider, True, 0),),
        )


def full_annual_plan_payload():
    return {
        "farmInfo": {
            "location": "Lahore",
            "farmSize": "5 acres",
            "soilType": "Loamy",
            "primaryCrops": ["Wheat"],
        },
        "annualPlan": [
            {
                "month": month,
                "activities": [
                    {
                        "title": f"{month} field work",
                        "description": "Inspect the wheat and irrigate if needed.",
                        "priority": "High" if index % 3 == 0 else "Medium",
                        "estimatedDuration": "2 days",
                        "status": "pending",
                    }
                ],
            }
            for index, month in enumerate(CALENDAR_MONTHS)
        ],
        "seasonalTips": [{"season": "Rabi", "tips": ["Sow wheat by mid November."]}],
        "criticalDates": [
            {
                "date": "November 15",
                "event": "Wheat sowing deadline",
                "description": "Late sowing reduces yield.",
            }
        ],
    }


def dumps(payload) -> str:
    return json.dumps(payload, ensure_ascii=False)
