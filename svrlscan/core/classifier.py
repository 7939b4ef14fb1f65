from __future__ import annotations
import re
from typing import Dict, List, Union
from xml.etree import ElementTree as ET

from .errors import ClassificationError
from .models import Finding, Severity

SVRL_NS = "http://purl.oclc.org/dsdl/svrl"

FAILED_ASSERT = "failed-assert"
FIRED_RULE = "fired-rule"
TEXT = "text"

# Marker inside a fired-rule id that routes the preceding assertions to warnings.
WARNING_RULE_MARKER = "warnings"

CONF_ID_RE = re.compile(r"CONF:(\d+(?:-\d+)*(?: through \d+(?:-\d+)*)?)")

RawResult = Union[bytes, str, ET.Element]


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def extract_conf_id(text: str) -> str:
    """Return the first ``CONF:`` conformance id in ``text``, or ``""``.

    ``"... (CONF:1198-5254)"`` gives ``"1198-5254"`` and
    ``"CONF:81-7300 through 81-7303"`` gives ``"81-7300 through 81-7303"``.
    """
    m = CONF_ID_RE.search(text or "")
    return m.group(1) if m else ""


def _assertion_severities(root: ET.Element) -> Dict[ET.Element, Severity]:
    # nearest following fired-rule sibling decides; none at all means error
    severities: Dict[ET.Element, Severity] = {}
    for parent in root.iter():
        upcoming = Severity.ERROR
        for child in reversed(list(parent)):
            name = _local_name(child.tag)
            if name == FIRED_RULE:
                if WARNING_RULE_MARKER in (child.get("id") or ""):
                    upcoming = Severity.WARNING
                else:
                    upcoming = Severity.ERROR
            elif name == FAILED_ASSERT:
                severities[child] = upcoming
    return severities


def _message_of(element: ET.Element) -> str:
    for child in element.iter():
        if child is not element and _local_name(child.tag) == TEXT:
            return "".join(child.itertext())
    return ""


def _parse(raw: RawResult) -> ET.Element:
    if isinstance(raw, ET.Element):
        return raw
    try:
        return ET.fromstring(raw)
    except ET.ParseError as exc:
        raise ClassificationError(f"Unreadable SVRL report: {exc}") from exc


def classify(raw: RawResult) -> List[Finding]:
    """Turn one SVRL report into findings, in document order.

    Each ``failed-assert`` becomes one :class:`Finding`. Severity comes from the
    first ``fired-rule`` sibling that follows the assertion: an id containing
    ``"warnings"`` makes it a warning, anything else (or no fired-rule at all)
    an error. When the assertion carries no ``id`` the conformance id is pulled
    out of the message text; if that fails too the id is left empty.

    Pure function, safe to call from many workers at once.
    """
    root = _parse(raw)
    severities = _assertion_severities(root)

    findings: List[Finding] = []
    for element in root.iter():
        if _local_name(element.tag) != FAILED_ASSERT:
            continue
        severity = severities.get(element, Severity.ERROR)

        message = _message_of(element)
        finding_id = element.get("id") or ""
        if not finding_id:
            finding_id = extract_conf_id(message)

        findings.append(
            Finding(
                id=finding_id,
                severity=severity,
                message=message,
                location=element.get("location") or "",
                test=element.get("test") or "",
            )
        )
    return findings
