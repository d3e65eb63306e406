#!/usr/bin/env python3
"""
Phone artifact SSID matching.

Phone artifacts run in hotspot mode and broadcast an SSID of the form
"PhoneArtifactXX", where XX is a two-digit random number. Only the first
occurrence of the prefix in a scan is considered; if several phones are in
range, the others are ignored for that cycle.
"""

import re

SUFFIX_LENGTH = 2

_SSID_FIELD = re.compile(r'E?SSID:\s*"?([^"\n]*)"?')


def _linearize(result):
    if isinstance(result, str):
        return result
    lines = getattr(result, 'lines', result)
    return '\n'.join(lines)


def find_target_network(result, prefix):
    """Return prefix + the two characters after its first occurrence, or None.

    ``result`` may be a ScanResult, a list of lines or plain text. A prefix
    followed by fewer than two characters is treated as not found.
    """
    if not prefix:
        raise ValueError("prefix must not be empty")

    text = _linearize(result)
    found = text.find(prefix)
    if found == -1:
        return None

    end = found + len(prefix) + SUFFIX_LENGTH
    if end > len(text):
        return None
    return text[found:end]


def extract_ssids(lines):
    """Network names listed in scan output lines, in order. Hidden networks are skipped."""
    ssids = []
    for line in lines:
        match = _SSID_FIELD.search(line)
        if match and match.group(1).strip():
            ssids.append(match.group(1).strip())
    return ssids
