from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes)):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


class _RequestBase(BaseModel):
    """Inbound request payload; presence checks happen in the pipeline."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ()

    def missing_required_fields(self) -> List[str]:
        return [name for name in self.REQUIRED_FIELDS if _is_blank(getattr(self, name))]


# --- requests --------------------------------------------------------------


class AnnualPlanRequest(_RequestBase):
    """Farm profile used to plan a full calendar year of activities."""

    REQUIRED_FIELDS = ("location", "farmSize", "soilType", "primaryCrops")

    kind: Literal["annual_plan"] = "annual_plan"
    location: Optional[str] = None
    farmSize: Optional[str] = Field(default=None, alias="farm_size")
    soilType: Optional[str] = Field(default=None, alias="soil_type")
    primaryCrops: List[str] = Field(default_factory=list, alias="primary_crops")
    experienceLevel: Optional[str] = Field(default=None, alias="experience_level")
    availableResources: Optional[str] = Field(
        default=None, alias="available_resources"
    )
    farmingGoals: Optional[str] = Field(default=None, alias="farming_goals")
    waterAvailability: Optional[str] = Field(default=None, alias="water_availability")
    farmingType: Optional[str] = Field(default=None, alias="farming_type")

    @field_validator("primaryCrops", mode="before")
    @classmethod
    def _split_crops(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        crops = []
        for item in value:
            crops.extend(part.strip() for part in str(item).split(",") if part.strip())
        return crops


class CropDiagnosisRequest(_RequestBase):
    """Crop photo plus the crop type declared by the farmer."""

    REQUIRED_FIELDS = ("image", "cropType")

    kind: Literal["crop_diagnosis"] = "crop_diagnosis"
    image: Optional[bytes] = Field(default=None, repr=False)
    mimeType: str = Field(default="image/jpeg", alias="mime_type")
    cropType: Optional[str] = Field(default=None, alias="crop_type")
    notes: Optional[str] = None

    def missing_required_fields(self) -> List[str]:
        missing = super().missing_required_fields()
        if "image" not in missing and not (self.mimeType or "").startswith("image/"):
            missing.append("image")
        return missing


class CurrentWeather(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    temperature: Optional[float] = None
    humidity: Optional[float] = None
    windSpeed: Optional[float] = Field(default=None, alias="wind_speed")
    condition: Optional[str] = None
    uv: Optional[float] = None
    precip_mm: Optional[float] = None


class ForecastDay(BaseModel):
    model_config = ConfigDict(extra="ignore")

    day: str = ""
    temperature: Optional[float] = None
    condition: Optional[str] = None


class TemperatureRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class WeatherSnapshot(BaseModel):
    """Current readings plus the short forecast shown on the weather screen."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    current: Optional[CurrentWeather] = None
    forecast: List[ForecastDay] = Field(default_factory=list)
    temperatureRange: TemperatureRange = Field(
        default_factory=TemperatureRange, alias="temperature_range"
    )


class WeatherAdvisoryRequest(_RequestBase):
    REQUIRED_FIELDS = ("weatherData",)

    kind: Literal["weather_advisory"] = "weather_advisory"
    weatherData: Optional[WeatherSnapshot] = Field(default=None, alias="weather_data")
    location: Optional[str] = None

    def missing_required_fields(self) -> List[str]:
        weather = self.weatherData
        if weather is None:
            return ["weatherData"]
        missing = []
        if weather.current is None:
            missing.append("weatherData.current")
        if not weather.forecast:
            missing.append("weatherData.forecast")
        if weather.temperatureRange.min is None or weather.temperatureRange.max is None:
            missing.append("weatherData.temperatureRange")
        return missing


GenerationRequest = Annotated[
    Union[AnnualPlanRequest, CropDiagnosisRequest, WeatherAdvisoryRequest],
    Field(discriminator="kind"),
]


# --- retrieved context -----------------------------------------------------


class ContextSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    excerpt: str = ""
    url: str = ""


class ContextBundle(BaseModel):
    """Search evidence gathered once per request and attached for audit."""

    model_config = ConfigDict(frozen=True)

    summary: str
    sources: tuple[ContextSource, ...] = ()


# --- results ---------------------------------------------------------------


class _ResultBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class FarmInfo(_ResultBase):
    location: str = ""
    farmSize: str = ""
    soilType: str = ""
    primaryCrops: List[str] = Field(default_factory=list)


class PlanActivity(_ResultBase):
    title: str
    description: str
    priority: str
    estimatedDuration: str
    status: str


class MonthlyPlan(_ResultBase):
    month: str
    activities: List[PlanActivity] = Field(default_factory=list)


class SeasonalTip(_ResultBase):
    season: str
    tips: List[str] = Field(default_factory=list)


class CriticalDate(_ResultBase):
    date: str
    event: str
    description: str


class AnnualPlanResult(_ResultBase):
    kind: Literal["annual_plan"] = "annual_plan"
    farmInfo: FarmInfo
    annualPlan: List[MonthlyPlan]
    seasonalTips: List[SeasonalTip] = Field(default_factory=list)
    criticalDates: List[CriticalDate] = Field(default_factory=list)
    generatedAt: datetime


class AdvisorySubsection(_ResultBase):
    subheading_en: str
    subheading_ur: str
    subheading: str
    text_en: str
    text_ur: str
    text: str


class AdvisorySection(_ResultBase):
    heading_en: str
    heading_ur: str
    heading: str
    content_en: str
    content_ur: str
    content: str
    priority: str
    subsections: List[AdvisorySubsection] = Field(default_factory=list)


class AdvisoryAlert(_ResultBase):
    type: str
    message_en: str
    message_ur: str
    message: str


class WeatherAdvisoryResult(_ResultBase):
    kind: Literal["weather_advisory"] = "weather_advisory"
    summary_en: str
    summary_ur: str
    summary: str
    sections: List[AdvisorySection] = Field(default_factory=list)
    alerts: List[AdvisoryAlert] = Field(default_factory=list)
    location: str = "Unknown"
    generatedAt: datetime


class TreatmentStep(_ResultBase):
    step: str
    description: str


class DiagnosisMetadata(_ResultBase):
    confidence: float
    uploadedAt: datetime
    notes: str = ""


class CropDiagnosisResult(_ResultBase):
    kind: Literal["crop_diagnosis"] = "crop_diagnosis"
    detectedCrop_en: str
    detectedCrop_ur: str
    detectedCrop: str
    healthStatus: str
    pestDisease_en: str
    pestDisease_ur: str
    pestDisease: str
    diseaseConfidence: float = Field(ge=0.0, le=100.0)
    severity: str
    affectedArea_en: str
    affectedArea_ur: str
    affectedArea: str
    treatmentPlan_en: List[TreatmentStep]
    treatmentPlan_ur: List[TreatmentStep]
    treatmentPlan: List[TreatmentStep]
    preventiveMeasures_en: List[str]
    preventiveMeasures_ur: List[str]
    preventiveMeasures: List[str]
    estimatedRecoveryTime_en: str
    estimatedRecoveryTime_ur: str
    estimatedRecoveryTime: str
    additionalNotes_en: str
    additionalNotes_ur: str
    additionalNotes: str
    analysis: DiagnosisMetadata
    generatedAt: datetime


GenerationResult = Union[AnnualPlanResult, CropDiagnosisResult, WeatherAdvisoryResult]


RESULT_MODELS: Dict[str, type] = {
    "annual_plan": AnnualPlanResult,
    "crop_diagnosis": CropDiagnosisResult,
    "weather_advisory": WeatherAdvisoryResult,
}
