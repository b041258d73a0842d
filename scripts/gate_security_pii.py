#!/usr/bin/env python3
"""Gate: security & PII check for chatsy source files.

Fails if:
- print( found in runtime code (src/**)
- A logger call formats its message with an f-string or %-interpolation
- A logger call names message text, prompts, API keys or raw contact
  identifiers without going through the redaction helpers

Usage:
    python scripts/gate_security_pii.py [ROOT ...]
"""

import re
import sys
from pathlib import Path

# Keywords that must not appear in logger calls without redaction
SENSITIVE_KEYWORDS = (
    "api_key",
    "apikey",
    "prompt",
    ".text",
    "raw_identifier",
    "contact_name",
    "payload",
    "generated_text",
)

# Pattern for print statements
PRINT_PATTERN = re.compile(r"\bprint\s*\(")

# Pattern for logger calls: logger.info/debug/warning/error/critical(...)
LOGGER_CALL_PATTERN = re.compile(
    r"logger\.(debug|info|warning|error|critical|exception)\s*\("
)

# Logger message built from runtime values
INTERPOLATED_LOG_PATTERN = re.compile(
    r"logger\.(debug|info|warning|error|critical|exception)\s*\(\s*(f[\"']|[\"'][^\"']*%s)"
)

# Patterns that indicate proper redaction usage
REDACTION_PATTERNS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
    "fingerprint",
)


def check_file(filepath: Path) -> list[str]:
    """Check a single file for violations. Returns list of error messages."""
    errors = []
    try:
        content = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []  # Skip binary files

    for lineno, line in enumerate(content.splitlines(), start=1):
        stripped = line.lstrip()

        # Skip comments
        if stripped.startswith("#"):
            continue

        code_part = line.split("#")[0] if "#" in line else line

        if PRINT_PATTERN.search(code_part):
            errors.append(f"{filepath}:{lineno}: print() not allowed in runtime code")

        if INTERPOLATED_LOG_PATTERN.search(code_part):
            errors.append(
                f"{filepath}:{lineno}: logger message must be a constant; "
                "pass values through extra_fields=safe_log_context(...)"
            )

        if LOGGER_CALL_PATTERN.search(code_part):
            line_lower = code_part.lower()
            for keyword in SENSITIVE_KEYWORDS:
                if keyword in line_lower:
                    has_redaction = any(rp in line for rp in REDACTION_PATTERNS)
                    if not has_redaction:
                        errors.append(
                            f"{filepath}:{lineno}: logger call with '{keyword}' "
                            "must use redaction (safe_log_context/redact_value)"
                        )

    return errors


def main(argv: list[str] | None = None) -> int:
    """Scan the given roots (default: the project's src/) and report violations."""
    args = sys.argv[1:] if argv is None else argv
    roots = [Path(arg) for arg in args] or [Path(__file__).resolve().parent.parent / "src"]

    missing = [root for root in roots if not root.exists()]
    if missing:
        sys.stderr.write(f"Error: not found: {', '.join(map(str, missing))}\n")
        return 1

    errors = [
        error
        for root in roots
        for pyfile in sorted(root.rglob("*.py"))
        for error in check_file(pyfile)
    ]
    if errors:
        sys.stderr.write(f"Security/PII gate FAILED: {len(errors)} violation(s)\n")
        sys.stderr.write("".join(f"  {error}\n" for error in errors))
        return 1

    sys.stdout.write("Security/PII gate PASSED\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
