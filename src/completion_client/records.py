"""
Two-stage medical-record workflow and diagnostic reports.

Stage 1 sends the raw text of a record file to the record-parsing
application and recovers the patient information as a dict.  Stage 2 sends
that patient information to the recommendation application and recovers
the treatment plan, prognosis and nutrition plan.

Both stages go through :class:`ApiClient`, so they inherit caching, retry
and fallback; the returned ``degraded`` flag says whether any stage had to
fall back.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .client import ApiClient
from .config import RECOMMENDATION_REQUEST, describe_api_config
from .normalizer import build_file_query


def parse_medical_record(
    client: ApiClient,
    file_content: str,
    log=None,
) -> tuple[dict | None, bool]:
    """
    Extract structured patient information from medical-record text.

    Args:
        client: Configured completion client.
        file_content: Raw text of the record file.
        log: structlog-compatible logger; defaults to the client's logger.

    Returns:
        Tuple of (patient info dict or ``None`` when no object could be
        recovered, degraded flag).

    Raises:
        EmptySubmissionError: ``file_content`` is blank.
    """
    log = log if log is not None else client.log
    query = build_file_query(file_content)
    result = client.call_completion_detailed(client.config.parser_app_code, query)
    patient_info = client.extract_structured_from_text(result.content)

    if not isinstance(patient_info, dict):
        log.warning("record_parse_failed", source=result.source)
        return None, result.is_degraded

    log.info("record_parsed", fields=len(patient_info), source=result.source)
    return patient_info, result.is_degraded


def generate_recommendations(
    client: ApiClient,
    patient_info: dict[str, Any],
    log=None,
) -> tuple[dict | None, bool]:
    """
    Request treatment recommendations for parsed patient information.

    Args:
        client: Configured completion client.
        patient_info: Patient information, usually from
            :func:`parse_medical_record`.
        log: structlog-compatible logger; defaults to the client's logger.

    Returns:
        Tuple of (recommendations dict or ``None``, degraded flag).
    """
    log = log if log is not None else client.log
    # Keyed "patient", not "patientInfo", so the normalizer does not rewrap it
    # as a record-analysis request.
    query = {"patient": patient_info, "request": RECOMMENDATION_REQUEST}
    result = client.call_completion_detailed(client.config.recommendation_app_code, query)
    recommendations = client.extract_structured_from_text(result.content)

    if not isinstance(recommendations, dict):
        log.warning("recommendations_parse_failed", source=result.source)
        return None, result.is_degraded

    log.info("recommendations_generated", source=result.source)
    return recommendations, result.is_degraded


def process_record_file(client: ApiClient, path: Path | str, log=None) -> dict:
    """
    Run both stages for one record file.

    Recommendations are only requested when stage 1 produced patient
    information.

    Args:
        client: Configured completion client.
        path: Path to a UTF-8 text file holding the record.
        log: structlog-compatible logger; defaults to the client's logger.

    Returns:
        Dict with keys ``patientInfo`` (dict or None), ``recommendations``
        (dict or None) and ``degraded`` (bool).

    Raises:
        FileNotFoundError: ``path`` does not exist.
        EmptySubmissionError: The file is blank.
    """
    log = log if log is not None else client.log
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Medical record file not found: {path}")

    file_content = path.read_text(encoding="utf-8")
    log.info("record_file_loaded", path=str(path), length=len(file_content))

    patient_info, degraded = parse_medical_record(client, file_content, log=log)
    recommendations = None
    if patient_info is not None:
        recommendations, rec_degraded = generate_recommendations(client, patient_info, log=log)
        degraded = degraded or rec_degraded

    return {
        "patientInfo": patient_info,
        "recommendations": recommendations,
        "degraded": degraded,
    }


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def print_configuration_summary(client: ApiClient) -> dict[str, str]:
    """Print the masked client configuration and return it."""
    summary = describe_api_config(client.config)
    sep = "=" * 60
    print(f"\n{sep}")
    print("API CONFIGURATION")
    print(f"{sep}")
    print(f"  API key:                 {summary['api_key']}")
    print(f"  Endpoint:                {summary['endpoint']}")
    print(f"  Parser app code:         {summary['parser_app_code']}")
    print(f"  Recommendation app code: {summary['recommendation_app_code']}")
    print(f"  Test mode:               {summary['test_mode']}")
    print(f"{sep}\n")
    return summary


def print_cache_diagnostics(client: ApiClient) -> dict:
    """Print the cache size and keys of ``client`` and return the stats."""
    stats = client.get_cache_diagnostics()
    print(f"Cache entries: {stats['size']}")
    for key in stats["keys"]:
        print(f"  - {key}")
    return stats
