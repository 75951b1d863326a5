from typing import Dict, Iterable, Mapping

# credential, organization and environment headers passed through to the upstream API
ALLOWED_FORWARD_HEADERS = (
    "authorization",
    "x-api-key",
    "x-decernis-organization",
    "x-decernis-environment",
)

JOB_ID_HEADER = "x-regcheck-job-id"
INTERNAL_TOKEN_HEADER = "x-regcheck-internal-token"


def pick_headers(headers: Mapping[str, str], names: Iterable[str] = ALLOWED_FORWARD_HEADERS) -> Dict[str, str]:
    """Copy the allow-listed headers that are present and non-empty, keyed in lower case."""
    lowered = {k.lower(): v for k, v in headers.items()}
    return {name: lowered[name] for name in names if lowered.get(name)}
