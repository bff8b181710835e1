"""Metric name sanitization and extraction of labels embedded in dotted names."""
from dataclasses import dataclass, field
from typing import Dict, List
import logging

logger = logging.getLogger(__name__)

_ALLOWED_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789:_"
)
_LABEL_NAME_START = frozenset(
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ_"
)


@dataclass(frozen=True)
class LabelParsedName:
    """A metric identifier split into its stripped name and embedded labels."""
    name: str
    labels: Dict[str, str] = field(default_factory=dict)


def sanitize_metric_name(name: str) -> str:
    """Replace every character outside [A-Za-z0-9:_] with an underscore."""
    return "".join(c if c in _ALLOWED_CHARS else "_" for c in name)


def is_label_name(key: str) -> bool:
    """Whether `key` is a legal Prometheus label name."""
    return (
        bool(key)
        and key[0] in _LABEL_NAME_START
        and all(c in _ALLOWED_CHARS and c != ":" for c in key)
    )


def _parse_label_token(token: str):
    """Split a trimmed token on its first colon, or return None if unparseable."""
    key, sep, value = token.partition(":")
    if not sep or not key or not value:
        return None
    return key, value


def _collapse_dots(text: str) -> str:
    out: List[str] = []
    for c in text:
        if c == "." and out and out[-1] == ".":
            continue
        out.append(c)
    return "".join(out)


def extract_labels(identifier: str) -> LabelParsedName:
    """
    Extract `{key:value}` tokens from a dotted metric identifier.

    Tokens are removed from the name, the dots they leave behind are
    collapsed and a single leading and trailing dot is stripped, so
    `aa.{org:org-1}.bb` becomes `aa.bb` with labels `{"org": "org-1"}`.
    Tokens without a colon are dropped with a warning.

    Args:
        identifier: Name under which the metric is registered

    Returns:
        LabelParsedName with the cleaned name and the extracted labels
    """
    labels: Dict[str, str] = {}
    kept: List[str] = []
    pos = 0

    while True:
        start = identifier.find("{", pos)
        if start == -1:
            break
        end = identifier.find("}", start + 1)
        if end == -1:
            break
        if end == start + 1:
            # "{}" holds nothing to parse and is left in the name
            kept.append(identifier[pos:end + 1])
            pos = end + 1
            continue

        kept.append(identifier[pos:start])
        token = identifier[start + 1:end].strip()
        parsed = _parse_label_token(token)
        if parsed is None:
            logger.warning(
                f"Metric label '{token}' in '{identifier}' does not match "
                f"the expected key:value form, dropping it"
            )
        else:
            key, value = parsed
            logger.debug(f"Detected metric label: [{key}, {value}]")
            if not is_label_name(key):
                logger.warning(f"Metric label key '{key}' in '{identifier}' is not a valid Prometheus label name")
            labels[key] = value
        pos = end + 1

    kept.append(identifier[pos:])
    name = _collapse_dots("".join(kept))

    if name.startswith("."):
        name = name[1:]
    if name.endswith("."):
        name = name[:-1]

    logger.debug(f"Final metric after label extraction [{name}]")
    return LabelParsedName(name=name, labels=labels)
