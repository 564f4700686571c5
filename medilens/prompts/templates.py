"""Prompt templates for prescription and lab-report analysis.

Templates are rendered with ``str.format``; literal JSON braces are doubled.
"""

OCR_PROMPT = """You are a prescription OCR expert.
Extract ALL readable text from the image exactly as it appears.
Return ONLY the raw text, preserving layout as much as possible.
Include:
- medicine names
- dosage
- frequency
- doctor name
- doctor degree (MBBS/MD/etc)
- BMDC or registration number
- signature labels
- hospital/clinic name
- date
- instructions
No explanations. No formatting. Only raw extracted text."""


EXTRACT_PROMPT = """Extract all structured medical data from the following OCR text.

Return ONLY valid JSON in this exact format (no markdown, no text):

{{
  "doctor": "doctor name or null",
  "hospital": "hospital/clinic name or null",
  "date": "date or null",
  "medicines": [
    {{
      "name": "medicine name",
      "dose": "dosage amount such as 500mg or null",
      "frequency": "how often to take such as 1+1+1 or once daily or null"
    }}
  ]
}}

If something is missing, return null for that field.

OCR text:
{ocr_text}"""


AUTHENTICITY_PROMPT = """Analyze this prescription for authenticity. Evaluate:

1. Doctor credentials (MBBS/MD/etc)
2. Presence of registration/BMDC/license number
3. Signature or signature placeholder
4. Layout professionalism and formatting consistency
5. Medication logic and dosage plausibility
6. Any signs of tampering or digital manipulation (font mismatches, alignment issues)
7. Unusual or dangerous medicine combinations

OCR text:
{ocr_text}

Extracted structured data:
{extracted_json}

Return ONLY valid JSON in this format:

{{
  "authenticity": "genuine" | "suspicious" | "fake",
  "reasons": ["reason 1", "reason 2", ...]
}}"""


INTERACTIONS_PROMPT = """Analyze these medications for potential harmful drug-drug interactions.
Consider only the medicine names provided.

Medicines:
{medicine_lines}

Return ONLY valid JSON in this format:
[
  {{
    "drug_a": "medicine name 1",
    "drug_b": "medicine name 2",
    "severity": "mild" | "moderate" | "severe",
    "description": "Short explanation of the interaction and risk"
  }}
]

If no significant interactions are found, return an empty array [].
Return ONLY JSON. No other text."""


LAB_REPORT_PROMPT = """You are a medical data analyst and nutrition expert. Analyze this blood test and medical lab report image VERY carefully.

CRITICAL INSTRUCTIONS:
1. Extract ALL test values with their reference ranges - be precise with numbers
2. Identify EVERY abnormality by comparing actual values to reference ranges
3. For EACH abnormality, determine severity and root cause
4. Generate DETAILED, SPECIFIC, ACTIONABLE diet recommendations tailored to the patient's specific test values
5. Return ONLY valid JSON with NO markdown, NO explanations, NO code blocks

Return this EXACT JSON structure:
{{
  "rawText": "all extracted text from the report",
  "analysis": {{
    "extractedData": {{
      "patientName": "patient name or null",
      "testDate": "test date (YYYY-MM-DD format) or null",
      "labName": "lab name or null",
      "doctorName": "doctor name or null",
      "testResults": [
        {{
          "testName": "test name (e.g., Hemoglobin)",
          "value": "numeric value or string",
          "normalRange": "normal range (e.g., 12.0-16.0)",
          "unit": "unit (e.g., g/dL)",
          "status": "normal or low or high or abnormal"
        }}
      ]
    }},
    "abnormalities": [
      {{
        "testName": "test name",
        "abnormality": "detailed description of what is abnormal",
        "severity": "mild or moderate or severe",
        "possibleCauses": ["cause1", "cause2", "cause3"]
      }}
    ],
    "dietRecommendations": [
      {{
        "category": "specific food category (e.g., Iron-rich foods, High fiber foods, Low sodium foods)",
        "foods": ["food1 (serving size)", "food2 (serving size)", "food3 (serving size)"],
        "servingFrequency": "how often to consume (e.g., daily, 2-3 times per week)",
        "dietaryTip": "specific preparation method or consumption tip",
        "benefits": "how these foods help the specific abnormality - 2-3 sentences",
        "reasonForAbnormality": "specific abnormality this addresses"
      }}
    ],
    "overallHealthAssessment": "health summary with dietary and lifestyle recommendations, including foods to AVOID"
  }}
}}

Requirements for dietRecommendations:
- At least 1 recommendation per abnormality identified
- At least 5 specific foods per category with serving sizes
- Include serving frequency, dietary tips and detailed benefits
- 3-5 different dietary categories based on the abnormalities found"""


def render_medicine_lines(medicines) -> str:
    """One ``- name (dose)`` line per medicine for the interactions prompt."""
    return "\n".join(f"- {m.name} ({m.dose or 'N/A'})" for m in medicines)
