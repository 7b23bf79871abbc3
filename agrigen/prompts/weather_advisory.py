from __future__ import annotations

from typing import List

from ..schemas.models import WeatherAdvisoryRequest


DEFAULT_ADVISORY_LOCATION = "the farm location"

URDU_SCRIPT_INSTRUCTION = (
    "IMPORTANT: Provide ALL content in BOTH English and Urdu script (اردو). "
    "Use proper Urdu script, NOT Roman Urdu."
)

URDU_SCRIPT_REMINDER = (
    "CRITICAL: All Urdu text MUST be in proper Urdu script (اردو رسم الخط), "
    "not Roman Urdu. Ensure proper Urdu grammar."
)

SUGGESTED_SECTIONS = (
    "Immediate Actions / فوری اقدامات (next 24-48 hours)",
    "Crop Protection & Management / فصل کی حفاظت اور انتظام",
    "Irrigation & Water Management / آبپاشی اور پانی کا انتظام",
    "Pest & Disease Prevention / کیڑے اور بیماریوں سے بچاؤ",
    "Soil Management / مٹی کا انتظام",
    "Crop-Specific Advice / فصل کے لیے خاص مشورے "
    "(wheat/گندم, rice/چاول, cotton/کپاس, vegetables/سبزیاں)",
    "Preparation for Forecast / پیشن گوئی کے لیے تیاری",
)


def _fmt(value) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _current_lines(request: WeatherAdvisoryRequest) -> List[str]:
    current = request.weatherData.current
    lines = [
        f"- Temperature: {_fmt(current.temperature)}°C",
        f"- Humidity: {_fmt(current.humidity)}%",
        f"- Wind Speed: {_fmt(current.windSpeed)} km/h",
        f"- Condition: {current.condition or 'N/A'}",
    ]
    if current.uv:
        lines.append(f"- UV Index: {_fmt(current.uv)}")
    if current.precip_mm is not None:
        lines.append(f"- Precipitation: {_fmt(current.precip_mm)} mm")
    return lines


def build_weather_advisory_prompt(request: WeatherAdvisoryRequest) -> str:
    weather = request.weatherData
    location = request.location or DEFAULT_ADVISORY_LOCATION
    forecast = "\n".join(
        f"{day.day}: {_fmt(day.temperature)}°C, {day.condition or 'N/A'}"
        for day in weather.forecast
    )
    sections = "\n".join(f"   - {item}" for item in SUGGESTED_SECTIONS)
    current = "\n".join(_current_lines(request))
    temp_range = weather.temperatureRange
    return f"""You are an expert agricultural advisor specializing in weather-based farming recommendations for Pakistani farmers.

Based on the following weather conditions for {location}, provide a comprehensive farming mitigation and action plan in BOTH English and Urdu:

CURRENT WEATHER:
{current}

3-DAY FORECAST:
{forecast or "Not available"}

TEMPERATURE RANGE: {_fmt(temp_range.min)}°C - {_fmt(temp_range.max)}°C

{URDU_SCRIPT_INSTRUCTION}
Every field ending in _en must have a matching field ending in _ur with the same meaning.

Provide a structured response with:

1. **Summary** (summary_en and summary_ur): Brief 2-3 sentence overview in both languages

2. **Sections**: Organize recommendations into 5-7 clear sections with:
   - heading_en: Section title in English
   - heading_ur: Section title in Urdu script
   - content_en: Detailed, actionable advice in English (3-5 sentences)
   - content_ur: Detailed, actionable advice in Urdu script (3-5 sentences)
   - Priority: "high", "medium", or "low"
   - Subsections (optional): For complex topics with:
     - subheading_en: Subsection title in English
     - subheading_ur: Subsection title in Urdu script
     - text_en: Content in English
     - text_ur: Content in Urdu script

   Suggested sections:
{sections}

3. **Alerts** (alerts): 0-3 critical warnings with:
   - Type: "warning" (critical), "caution" (important), or "info" (helpful)
   - message_en: Alert in English
   - message_ur: Alert in Urdu script

Keep all advice:
- Practical and immediately actionable
- Specific to Pakistani farming context
- Simple language, farmer-friendly
- Include specific timing and measurements
- Use proper Urdu agricultural terminology

{URDU_SCRIPT_REMINDER}"""
