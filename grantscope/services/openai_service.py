"""OpenAI wrapper for Form 990 structured extraction.

The model is asked for one fixed JSON shape. Anything that does not parse as
a JSON object is an AnalysisError; there is no partial recovery.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from openai import OpenAI, OpenAIError

from grantscope.errors import AnalysisError
from grantscope.models import Foundation, to_number

logger = logging.getLogger(__name__)

PLACEHOLDER_KEYS = {"", "your-api-key-here"}

SYSTEM_PROMPT = """You are a specialized assistant that extracts structured data from IRS Form 990 documents.

Extract the following information from the provided text:
1. Foundation name
2. EIN (Employer Identification Number)
3. Total assets
4. Total giving
5. Contact information (phone, address, website)
6. Key personnel (name and role)

IMPORTANT: For grantee information, look specifically for the section titled:
"3 Grants and Contributions Paid During the Year or Approved for Future Payment"

This section contains all the grant information. Extract the following for each grantee:
- Grantee name
- Grant amount
- Grant year (use the year from the form if not explicitly stated)
- Location (city and state)
- Purpose of grant

The grantee information is typically formatted in a table or list under this section.
Each grantee usually has their name, location, amount, and purpose listed.

Format your response as a JSON object with the following structure:
{
  "name": "Foundation Name",
  "ein": "12-3456789",
  "totalAssets": 1000000,
  "totalGiving": 500000,
  "contactInfo": {
    "phone": "(123) 456-7890",
    "address": "123 Main St, City, State 12345",
    "website": "https://www.foundation.org"
  },
  "keyPersonnel": [
    { "name": "John Smith", "role": "Executive Director" },
    { "name": "Jane Doe", "role": "Board Chair" }
  ],
  "grantees": [
    {
      "name": "Nonprofit Organization",
      "year": 2023,
      "location": { "city": "City", "state": "State" },
      "amount": 50000,
      "purpose": "Education"
    }
  ]
}

If you cannot find specific information, use null for that field. For numerical values, provide numbers without commas or currency symbols.

If you cannot find the "3 Grants and Contributions" section, look for any tables or lists that appear to contain grant information."""


SAMPLE_FOUNDATION: Dict[str, Any] = {
    "name": "TrustAge Foundation Inc.",
    "ein": "45-1234567",
    "totalAssets": 25000000,
    "totalGiving": 1200000,
    "contactInfo": {
        "phone": "(608) 555-7890",
        "address": "123 Main St, Madison, WI 53703",
        "website": "https://www.trustagefoundation.org",
    },
    "keyPersonnel": [
        {"name": "Jane Smith", "role": "Executive Director"},
        {"name": "Robert Johnson", "role": "Board Chair"},
        {"name": "Maria Garcia", "role": "Treasurer"},
    ],
    "grantees": [
        {"name": "Madison Community Center", "year": 2023,
         "location": {"city": "Madison", "state": "WI"}, "amount": 75000, "purpose": "Community Development"},
        {"name": "Wisconsin Education Fund", "year": 2023,
         "location": {"city": "Milwaukee", "state": "WI"}, "amount": 50000, "purpose": "Education"},
        {"name": "Midwest Healthcare Initiative", "year": 2023,
         "location": {"city": "Chicago", "state": "IL"}, "amount": 100000, "purpose": "Health"},
        {"name": "Arts for All", "year": 2023,
         "location": {"city": "Minneapolis", "state": "MN"}, "amount": 35000, "purpose": "Arts & Culture"},
        {"name": "Green Future Project", "year": 2023,
         "location": {"city": "Madison", "state": "WI"}, "amount": 45000, "purpose": "Environment"},
    ],
}


def client_ready(settings: Mapping[str, Any]) -> Tuple[bool, str]:
    key = (settings.get("OPENAI_API_KEY") or "").strip()
    if key in PLACEHOLDER_KEYS:
        return False, "OPENAI_API_KEY is missing"
    return True, ""


def model_name(settings: Mapping[str, Any]) -> str:
    return (settings.get("OPENAI_MODEL") or "").strip() or "gpt-4o"


def get_client(settings: Mapping[str, Any]):
    ok, _ = client_ready(settings)
    if not ok:
        return None
    return OpenAI(
        api_key=settings["OPENAI_API_KEY"].strip(),
        timeout=settings.get("OPENAI_TIMEOUT") or 60,
    )


def safe_json_loads(s: str) -> Dict[str, Any]:
    if not s:
        raise AnalysisError("Empty model output")

    text = s.strip()
    if text.startswith("```"):
        # Remove opening fence (```json or ```)
        lines = text.split("\n", 1)
        text = lines[1] if len(lines) > 1 else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3].strip()

    try:
        obj = json.loads(text)
    except ValueError as e:
        raise AnalysisError("Failed to parse OpenAI response as JSON") from e
    if not isinstance(obj, dict):
        raise AnalysisError("OpenAI response was not a JSON object")
    return obj


def grant_statistics(amounts: Iterable[Any]) -> Tuple[float, float]:
    """
    Mean and median of the valid amounts.

    Null and NaN values are ignored. The median is ``sorted[n // 2]`` with no
    interpolation for even counts. Both are 0 when nothing is valid.
    """
    parsed = (to_number(a) for a in amounts)
    valid: List[float] = [a for a in parsed if a is not None]
    if not valid:
        return 0, 0
    average = sum(valid) / len(valid)
    median = sorted(valid)[len(valid) // 2]
    return average, median


def apply_grant_statistics(result: Dict[str, Any]) -> Dict[str, Any]:
    grantees = result.get("grantees")
    if not isinstance(grantees, list) or not grantees:
        result["grantees"] = []
        result["averageGrantAmount"] = 0
        result["medianGrantAmount"] = 0
        return result
    amounts = [g.get("amount") for g in grantees if isinstance(g, dict)]
    result["averageGrantAmount"], result["medianGrantAmount"] = grant_statistics(amounts)
    return result


def normalize_foundation(result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Coerce a model reply into the Foundation wire shape.

    Grantee amounts are clamped at 0 and years fall back to the filing year,
    so the statistics are computed over the same values clients will see.
    Null amounts stay out of the statistics.
    """
    out = Foundation.from_dict(result).to_dict()
    out.pop("sample", None)
    raw = result.get("grantees")
    raw = raw if isinstance(raw, list) else []
    amounts = [to_number(g.get("amount")) for g in raw if isinstance(g, dict)]
    out["averageGrantAmount"], out["medianGrantAmount"] = grant_statistics(
        max(a, 0) for a in amounts if a is not None
    )
    return out


def sample_foundation() -> Dict[str, Any]:
    """Fixed demo foundation, tagged so it can never pass for a real extraction."""
    result = json.loads(json.dumps(SAMPLE_FOUNDATION))
    apply_grant_statistics(result)
    result["sample"] = True
    return result


def analyze_990(text: str, settings: Mapping[str, Any], client: Optional[Any] = None) -> Dict[str, Any]:
    """Ask the model for the structured foundation record and add grant statistics."""
    if client is None:
        ok, msg = client_ready(settings)
        if not ok:
            raise AnalysisError("OpenAI API key is not configured")
        client = get_client(settings)

    model = model_name(settings)
    logger.info("Calling OpenAI API with model: %s", model)
    try:
        res = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            temperature=settings.get("OPENAI_TEMPERATURE", 0.3),
            max_tokens=settings.get("OPENAI_MAX_TOKENS", 4000),
            response_format={"type": "json_object"},
        )
    except OpenAIError as e:
        logger.error("OpenAI API error: %s: %s", type(e).__name__, e)
        raise AnalysisError(f"Failed to analyze 990 form: {type(e).__name__}: {e}") from e

    content = (res.choices[0].message.content or "").strip()
    try:
        result = safe_json_loads(content)
    except AnalysisError:
        logger.error("Raw response: %s", content[:2000])
        raise

    try:
        return normalize_foundation(result)
    except (TypeError, ValueError, ArithmeticError) as e:
        raise AnalysisError(f"OpenAI response has an invalid foundation shape: {e}") from e
