"""PII redaction service."""
import re
from typing import List


class RedactionService:
    """Service for redacting registrant PII from text."""

    EMAIL_PATTERN = re.compile(
        r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'
    )

    # Indian mobile numbers, optionally prefixed with +91 / 0
    PHONE_PATTERN = re.compile(r'(?<!\d)(?:\+91[\s-]?|0)?[6-9]\d{4}[\s-]?\d{5}(?!\d)')

    # Railway PNRs are 10 digits; airline PNRs are 6 alphanumerics with a digit
    PNR_PATTERNS = [
        re.compile(r'(?<!\d)\d{10}(?!\d)'),
        re.compile(r'\bPNR[:\s#]*[A-Z0-9]{6,10}\b', re.IGNORECASE),
    ]

    def redact_email(self, text: str) -> str:
        """Redact email addresses."""
        return self.EMAIL_PATTERN.sub('[EMAIL_REDACTED]', text)

    def redact_phone(self, text: str) -> str:
        """Redact contact numbers."""
        return self.PHONE_PATTERN.sub('[PHONE_REDACTED]', text)

    def redact_pnr(self, text: str) -> str:
        """Redact booking references."""
        result = text
        for pattern in self.PNR_PATTERNS:
            result = pattern.sub('[PNR_REDACTED]', result)
        return result

    def redact_text(self, text: str) -> str:
        """Redact all PII from text."""
        if not isinstance(text, str):
            return text

        result = self.redact_email(text)
        result = self.redact_phone(result)
        result = self.redact_pnr(result)
        return result

    def redact_list(self, items: List[str]) -> List[str]:
        """Redact PII from a list of strings."""
        return [self.redact_text(item) for item in items]
