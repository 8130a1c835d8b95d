"""
Canned payloads for degraded operation: fallback after exhausted retries,
and offline (test) mode.

Shape selection is an approximate heuristic, not a clinical rule:

1. a routing code registered in ``ROUTING_FALLBACK_SHAPES`` uses its shape;
2. a routing code passed in ``recommendation_codes``, or containing
   ``RECOMMENDATION``, uses the recommendation shape;
3. a string query mentioning a treatment keyword uses the recommendation
   shape;
4. everything else uses the record shape.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable
from typing import Any

from .config import (
    DEFAULT_RECOMMENDATION_APP_CODE,
    RECOMMENDATION_CODE_MARKER,
    TREATMENT_KEYWORDS,
)

RECORD_SHAPE = "record"
RECOMMENDATION_SHAPE = "recommendation"

FALLBACK_PAYLOADS: dict[str, dict[str, Any]] = {
    RECORD_SHAPE: {
        "hospitalNumber": "ZY202411056",
        "age": "62",
        "gender": "male",
        "diseaseType": "Adenocarcinoma of the descending colon",
        "pathology": (
            "Adenocarcinoma of the descending colon, moderately to poorly "
            "differentiated, invading the serosa"
        ),
        "labTests": "Complete blood count: WBC 7.2×10^9/L, RBC 3.8×10^12/L",
        "examinations": (
            "Contrast-enhanced abdominal CT: 5.6×4.2 cm mass in the "
            "descending colon"
        ),
        "geneticTests": "KRAS: codon 12 mutation (G12D)",
    },
    RECOMMENDATION_SHAPE: {
        "treatmentPlan": (
            "Given the KRAS mutation and no clear evidence of metastasis, "
            "radical tumour resection is recommended, followed by 6 months of "
            "adjuvant FOLFOX chemotherapy. Anti-EGFR targeted agents are not "
            "recommended because of the KRAS mutation status."
        ),
        "prognosis": (
            "Stage III adenocarcinoma of the descending colon with KRAS "
            "mutation. Five-year survival after surgery plus chemotherapy is "
            "roughly 50-60%. Regular follow-up for recurrence and metastasis "
            "is required."
        ),
        "nutritionPlan": (
            "High-protein, easily digestible diet before and after surgery, "
            "with protein intake of at least 1.2 g/kg body weight per day. "
            "Supplement B vitamins during chemotherapy, keep well hydrated, "
            "eat small frequent meals and avoid irritating foods."
        ),
    },
}

# Offline mode returns the record with laboratory results broken out by panel.
OFFLINE_LAB_TESTS: dict[str, str] = {
    "Complete blood count": "WBC 7.2×10^9/L, RBC 3.8×10^12/L",
    "Liver function": "ALT 32 U/L, AST 28 U/L",
    "Renal function": "BUN 5.2 mmol/L, Cr 68 μmol/L",
    "Electrolytes": "Na+ 141 mmol/L, K+ 4.2 mmol/L",
}

# Explicit routing-code → shape table; codes not listed use the rules above.
ROUTING_FALLBACK_SHAPES: dict[str, str] = {
    DEFAULT_RECOMMENDATION_APP_CODE: RECOMMENDATION_SHAPE,
}


def _mentions_treatment(query: Any) -> bool:
    if not isinstance(query, str):
        return False
    lowered = query.lower()
    return any(keyword in lowered for keyword in TREATMENT_KEYWORDS)


def _is_recommendation_code(routing_code: str, recommendation_codes: Iterable[str]) -> bool:
    return (
        routing_code in set(recommendation_codes)
        or RECOMMENDATION_CODE_MARKER in (routing_code or "").upper()
    )


def select_fallback_shape(
    routing_code: str,
    query: Any,
    recommendation_codes: Iterable[str] = (),
) -> str:
    """
    Choose which canned payload shape stands in for a failed call.

    Args:
        routing_code: Routing code of the failed call.
        query: Raw query of the failed call.
        recommendation_codes: Extra routing codes served by the
            recommendation application (usually from configuration).

    Returns:
        ``RECORD_SHAPE`` or ``RECOMMENDATION_SHAPE``.
    """
    if routing_code in ROUTING_FALLBACK_SHAPES:
        return ROUTING_FALLBACK_SHAPES[routing_code]
    if _is_recommendation_code(routing_code, recommendation_codes):
        return RECOMMENDATION_SHAPE
    if _mentions_treatment(query):
        return RECOMMENDATION_SHAPE
    return RECORD_SHAPE


def provide_fallback(
    routing_code: str,
    query: Any,
    recommendation_codes: Iterable[str] = (),
) -> str:
    """Return the serialized fallback payload for a failed call."""
    shape = select_fallback_shape(routing_code, query, recommendation_codes)
    return json.dumps(FALLBACK_PAYLOADS[shape], ensure_ascii=False)


def provide_offline_payload(
    routing_code: str,
    recommendation_codes: Iterable[str] = (),
) -> str:
    """
    Return the canned offline-mode payload for ``routing_code``.

    Unlike fallback selection, the query is not consulted: offline mode
    answers by application only.
    """
    if routing_code in ROUTING_FALLBACK_SHAPES:
        shape = ROUTING_FALLBACK_SHAPES[routing_code]
    elif _is_recommendation_code(routing_code, recommendation_codes):
        shape = RECOMMENDATION_SHAPE
    else:
        shape = RECORD_SHAPE

    payload = copy.deepcopy(FALLBACK_PAYLOADS[shape])
    if shape == RECORD_SHAPE:
        payload["labTests"] = dict(OFFLINE_LAB_TESTS)
    return json.dumps(payload, ensure_ascii=False)
