from __future__ import annotations

from ..schemas.models import CropDiagnosisRequest
from .weather_advisory import URDU_SCRIPT_INSTRUCTION, URDU_SCRIPT_REMINDER


CROP_DIAGNOSIS_SYSTEM_PROMPT = (
    "You are an expert plant pathologist and agronomist helping Pakistani farmers "
    "diagnose crop health problems from field photos."
)


def build_crop_diagnosis_prompt(request: CropDiagnosisRequest) -> str:
    notes = (request.notes or "").strip() or "None provided"
    return f"""{CROP_DIAGNOSIS_SYSTEM_PROMPT}

Examine the attached photo. The farmer says the crop is: {request.cropType}
Farmer notes: {notes}

Determine:
1. The crop visible in the photo (detectedCrop_en / detectedCrop_ur)
2. Overall health: "Healthy", "At Risk", or "Critical" (healthStatus)
3. Any pest or disease present, or "None" (pestDisease_en / pestDisease_ur)
4. Your confidence in the diagnosis as a number from 0 to 100 (diseaseConfidence)
5. Severity: "None", "Mild", "Moderate", or "Severe" (severity)
6. Which part of the plant or field is affected (affectedArea_en / affectedArea_ur)
7. An ordered treatment plan, each step with a short name and a description including products, doses and timing (treatmentPlan_en / treatmentPlan_ur)
8. Preventive measures for the coming season (preventiveMeasures_en / preventiveMeasures_ur)
9. Estimated recovery time (estimatedRecoveryTime_en / estimatedRecoveryTime_ur)
10. Any other observations (additionalNotes_en / additionalNotes_ur)

If the photo does not show a crop or is too unclear, say so in additionalNotes and set diseaseConfidence to 0.
If the crop is healthy, use a single treatment step stating that no treatment is required.

{URDU_SCRIPT_INSTRUCTION}
Every field ending in _en must have a matching field ending in _ur with the same meaning and the same number of list items.
Prefer treatments and products that are available to smallholder farmers in Pakistan.

{URDU_SCRIPT_REMINDER}"""
