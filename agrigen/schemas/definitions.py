"""
Declarative output schemas handed to the generative model.

Each request kind owns exactly one module-level ``SchemaNode`` tree. The trees
are built at import time and never mutated; the normalizer walks the same tree
to fill defaults, so descriptions here are only for the model while ``default``
and ``bilingual`` drive the repair step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


KIND_OBJECT = "object"
KIND_ARRAY = "array"
KIND_STRING = "string"
KIND_NUMBER = "number"
KIND_ENUM = "enum"

_NO_DEFAULT = object()


@dataclass(frozen=True)
class SchemaNode:
    kind: str
    description: str = ""
    properties: Tuple[Tuple[str, "SchemaNode"], ...] = ()
    required: frozenset = frozenset()
    items: Optional["SchemaNode"] = None
    enum: Tuple[str, ...] = ()
    default: Any = _NO_DEFAULT
    bilingual: Tuple[str, ...] = ()
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    _index: Dict[str, "SchemaNode"] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._index.update(dict(self.properties))

    @property
    def property_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.properties)

    def child(self, name: str) -> Optional["SchemaNode"]:
        return self._index.get(name)

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT

    def default_value(self) -> Any:
        """Deterministic placeholder used when the model omits this node."""
        if self.has_default:
            return _copy_default(self.default)
        if self.kind == KIND_OBJECT:
            return {name: node.default_value() for name, node in self.properties}
        if self.kind == KIND_ARRAY:
            return []
        if self.kind == KIND_NUMBER:
            return 0
        if self.kind == KIND_ENUM:
            return self.enum[-1] if self.enum else ""
        return ""

    def to_json_schema(self) -> Dict[str, Any]:
        if self.kind == KIND_OBJECT:
            payload: Dict[str, Any] = {
                "type": "object",
                "properties": {
                    name: node.to_json_schema() for name, node in self.properties
                },
            }
            required = [name for name in self.property_names if name in self.required]
            if required:
                payload["required"] = required
        elif self.kind == KIND_ARRAY:
            payload = {"type": "array", "items": self.items.to_json_schema()}
            if self.min_items is not None:
                payload["minItems"] = self.min_items
            if self.max_items is not None:
                payload["maxItems"] = self.max_items
        elif self.kind == KIND_ENUM:
            payload = {"type": "string", "enum": list(self.enum)}
        elif self.kind == KIND_NUMBER:
            payload = {"type": "number"}
        else:
            payload = {"type": "string"}
        if self.description:
            payload["description"] = self.description
        return payload


def _copy_default(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _copy_default(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_copy_default(item) for item in value]
    return value


def string(description: str = "", **kwargs: Any) -> SchemaNode:
    return SchemaNode(kind=KIND_STRING, description=description, **kwargs)


def number(description: str = "", **kwargs: Any) -> SchemaNode:
    return SchemaNode(kind=KIND_NUMBER, description=description, **kwargs)


def enum(values, description: str = "", **kwargs: Any) -> SchemaNode:
    return SchemaNode(kind=KIND_ENUM, description=description, enum=tuple(values), **kwargs)


def array(items: SchemaNode, description: str = "", **kwargs: Any) -> SchemaNode:
    return SchemaNode(kind=KIND_ARRAY, description=description, items=items, **kwargs)


def obj(
    properties,
    *,
    required=None,
    description: str = "",
    bilingual=(),
    **kwargs: Any,
) -> SchemaNode:
    props = tuple(properties)
    names = [name for name, _ in props]
    return SchemaNode(
        kind=KIND_OBJECT,
        description=description,
        properties=props,
        required=frozenset(names if required is None else required),
        bilingual=tuple(bilingual),
        **kwargs,
    )


def bilingual_pair(
    name: str,
    factory,
    en_description: str,
    ur_description: str,
    *,
    en_default: Any = _NO_DEFAULT,
    ur_default: Any = _NO_DEFAULT,
) -> Tuple[Tuple[str, SchemaNode], Tuple[str, SchemaNode]]:
    """Return ``(name_en, node), (name_ur, node)`` built by the same factory."""
    en_kwargs = {} if en_default is _NO_DEFAULT else {"default": en_default}
    ur_kwargs = {} if ur_default is _NO_DEFAULT else {"default": ur_default}
    return (
        (f"{name}_en", factory(en_description, **en_kwargs)),
        (f"{name}_ur", factory(ur_description, **ur_kwargs)),
    )


PRIORITY_LEVELS = ("High", "Medium", "Low")
ACTIVITY_STATUSES = ("pending", "completed")
ADVISORY_PRIORITIES = ("high", "medium", "low")
ALERT_TYPES = ("warning", "caution", "info")
HEALTH_STATUSES = ("Healthy", "At Risk", "Critical")
SEVERITY_LEVELS = ("None", "Mild", "Moderate", "Severe")
CALENDAR_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


# --- annual plan -----------------------------------------------------------

_ACTIVITY = obj(
    [
        ("title", string("Title of the farming activity")),
        ("description", string("Detailed description of what to do")),
        (
            "priority",
            enum(PRIORITY_LEVELS, "Priority level of the task", default="Medium"),
        ),
        ("estimatedDuration", string("How long the activity will take")),
        (
            "status",
            enum(ACTIVITY_STATUSES, "Current status of the activity", default="pending"),
        ),
    ]
)

ANNUAL_PLAN_SCHEMA = obj(
    [
        (
            "farmInfo",
            obj(
                [
                    ("location", string()),
                    ("farmSize", string()),
                    ("soilType", string()),
                    ("primaryCrops", array(string())),
                ]
            ),
        ),
        (
            "annualPlan",
            array(
                obj(
                    [
                        ("month", string("Month name (e.g., January, February)")),
                        ("activities", array(_ACTIVITY)),
                    ]
                ),
                "Exactly 12 entries, one per calendar month from January to December",
                min_items=12,
                max_items=12,
            ),
        ),
        (
            "seasonalTips",
            array(
                obj([("season", string()), ("tips", array(string()))]),
            ),
        ),
        (
            "criticalDates",
            array(
                obj(
                    [
                        ("date", string()),
                        ("event", string()),
                        ("description", string()),
                    ]
                ),
            ),
        ),
    ]
)


# --- weather advisory ------------------------------------------------------

_SUBSECTION = obj(
    [
        *bilingual_pair(
            "subheading",
            string,
            "Subsection title in English",
            "Subsection title in Urdu script",
        ),
        *bilingual_pair(
            "text",
            string,
            "Subsection content in English",
            "Subsection content in Urdu script",
        ),
    ],
    bilingual=("subheading", "text"),
)

_SECTION = obj(
    [
        *bilingual_pair(
            "heading",
            string,
            "Section heading in English (e.g., 'Immediate Actions', 'Irrigation Management')",
            "Section heading in Urdu script (e.g., 'فوری اقدامات', 'آبپاشی کا انتظام')",
        ),
        *bilingual_pair(
            "content",
            string,
            "Detailed content for this section with actionable advice in English",
            "Detailed content for this section with actionable advice in Urdu script",
        ),
        (
            "priority",
            enum(ADVISORY_PRIORITIES, "Priority level for this action", default="medium"),
        ),
        (
            "subsections",
            array(
                _SUBSECTION,
                "Optional nested subsections for more detailed information",
            ),
        ),
    ],
    required=("heading_en", "heading_ur", "content_en", "content_ur", "priority"),
    bilingual=("heading", "content"),
)

_ALERT = obj(
    [
        ("type", enum(ALERT_TYPES, "Alert severity level", default="info")),
        *bilingual_pair(
            "message",
            string,
            "Alert message in English",
            "Alert message in Urdu script",
        ),
    ],
    bilingual=("message",),
)

WEATHER_ADVISORY_SCHEMA = obj(
    [
        *bilingual_pair(
            "summary",
            string,
            "Brief overview of the weather conditions and overall farming outlook "
            "in English (2-3 sentences)",
            "Brief overview of the weather conditions and overall farming outlook "
            "in Urdu script (2-3 sentences)",
        ),
        (
            "sections",
            array(_SECTION, "Array of recommendation sections organized by topic"),
        ),
        (
            "alerts",
            array(_ALERT, "Critical alerts or warnings based on weather conditions"),
        ),
    ],
    bilingual=("summary",),
)


# --- crop diagnosis --------------------------------------------------------

_TREATMENT_STEP = obj(
    [
        ("step", string("Short name of the treatment step")),
        ("description", string("What the farmer should do, with quantities and timing")),
    ]
)

NO_TREATMENT_EN = [
    {
        "step": "No Treatment Required",
        "description": "Continue regular monitoring and maintenance.",
    }
]
NO_TREATMENT_UR = [
    {
        "step": "علاج کی ضرورت نہیں",
        "description": "باقاعدہ نگرانی اور دیکھ بھال جاری رکھیں۔",
    }
]


def _treatment_list(description: str, **kwargs: Any) -> SchemaNode:
    return array(_TREATMENT_STEP, description, **kwargs)


def _string_list(description: str, **kwargs: Any) -> SchemaNode:
    return array(string(), description, **kwargs)


CROP_DIAGNOSIS_SCHEMA = obj(
    [
        *bilingual_pair(
            "detectedCrop",
            string,
            "Crop visible in the photo, in English",
            "Crop visible in the photo, in Urdu script",
        ),
        (
            "healthStatus",
            enum(HEALTH_STATUSES, "Overall health of the crop", default="Healthy"),
        ),
        *bilingual_pair(
            "pestDisease",
            string,
            "Name of the detected pest or disease, or 'None', in English",
            "Name of the detected pest or disease, or 'کوئی نہیں', in Urdu script",
            en_default="None",
            ur_default="کوئی نہیں",
        ),
        (
            "diseaseConfidence",
            number("Confidence of the diagnosis as a percentage from 0 to 100"),
        ),
        (
            "severity",
            enum(SEVERITY_LEVELS, "Severity of the problem", default="None"),
        ),
        *bilingual_pair(
            "affectedArea",
            string,
            "Share or part of the plant/field affected, in English",
            "Share or part of the plant/field affected, in Urdu script",
            en_default="N/A",
            ur_default="دستیاب نہیں",
        ),
        *bilingual_pair(
            "treatmentPlan",
            _treatment_list,
            "Ordered treatment steps in English",
            "Ordered treatment steps in Urdu script",
            en_default=NO_TREATMENT_EN,
            ur_default=NO_TREATMENT_UR,
        ),
        *bilingual_pair(
            "preventiveMeasures",
            _string_list,
            "Preventive measures in English",
            "Preventive measures in Urdu script",
        ),
        *bilingual_pair(
            "estimatedRecoveryTime",
            string,
            "Expected recovery time in English",
            "Expected recovery time in Urdu script",
            en_default="N/A",
            ur_default="دستیاب نہیں",
        ),
        *bilingual_pair(
            "additionalNotes",
            string,
            "Any other observations in English",
            "Any other observations in Urdu script",
        ),
    ],
    bilingual=(
        "detectedCrop",
        "pestDisease",
        "affectedArea",
        "treatmentPlan",
        "preventiveMeasures",
        "estimatedRecoveryTime",
        "additionalNotes",
    ),
)

