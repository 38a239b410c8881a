# univote/security/input_validator.py

import html
import math
import re

import bleach

from univote.errors import ValidationError

# Input validation and sanitization for everything that ends up in the stores and
# is rendered back by the portal (candidate profiles, election copy, account fields).


class InputValidator:
    def __init__(self):
        self.allowed_html_tags = ['b', 'i', 'em', 'strong', 'p', 'br']
        self.allowed_html_attributes = {}

        self.patterns = {
            'email': re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'),
            'username': re.compile(r'^[A-Za-z0-9_.-]{3,32}$'),
            'xss_script': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
            'xss_event': re.compile(r'\bon\w+\s*=', re.IGNORECASE),
        }

    def sanitize_string(self, input_str, max_length=255):
        if not isinstance(input_str, str):
            raise ValidationError("Expected a text value.")
        if len(input_str) > max_length:
            input_str = input_str[:max_length]

        sanitized = re.sub(self.patterns['xss_script'], '', input_str)
        sanitized = re.sub(self.patterns['xss_event'], '', sanitized)
        sanitized = bleach.clean(sanitized, tags=self.allowed_html_tags, attributes=self.allowed_html_attributes, strip=True)
        # bleach escapes bare ampersands and quotes; keep stored text unescaped
        return html.unescape(sanitized).strip()

    def sanitize_plain(self, input_str, max_length=255):
        """Like sanitize_string but with every tag stripped (names, titles)."""
        if not isinstance(input_str, str):
            raise ValidationError("Expected a text value.")
        cleaned = re.sub(self.patterns['xss_script'], '', input_str[:max_length])
        cleaned = bleach.clean(cleaned, tags=[], attributes={}, strip=True)
        return html.unescape(cleaned).strip()

    def required_text(self, data, field, message, max_length=255, plain=True):
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(message)
        sanitized = self.sanitize_plain(value, max_length) if plain else self.sanitize_string(value, max_length)
        if not sanitized:
            raise ValidationError(message)
        return sanitized

    def optional_text(self, data, field, max_length=255, plain=True, default=None):
        value = data.get(field)
        if value is None:
            return default
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be text.")
        return self.sanitize_plain(value, max_length) if plain else self.sanitize_string(value, max_length)

    def validate_email(self, email):
        return isinstance(email, str) and bool(self.patterns['email'].match(email))

    def validate_username(self, username):
        return isinstance(username, str) and bool(self.patterns['username'].match(username))

    def parse_non_negative_int(self, value, message):
        if isinstance(value, bool) or value is None:
            raise ValidationError(message)
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(message)
        if not math.isfinite(number) or number < 0 or number != int(number):
            raise ValidationError(message)
        return int(number)

    def parse_timestamp(self, value, field):
        """Unix seconds; falsy values mean "unset" and become 0."""
        if not value:
            return 0
        return self.parse_non_negative_int(value, f"{field} must be a unix timestamp in seconds.")

    def parse_eligibility(self, eligibility):
        if not isinstance(eligibility, dict):
            raise ValidationError("Eligibility must be an object with departments and years.")
        parsed = {}
        for key in ("departments", "years"):
            values = eligibility.get(key) or []
            if not isinstance(values, list):
                raise ValidationError(f"Eligibility {key} must be a list.")
            parsed[key] = [self.sanitize_plain(str(v), 64) for v in values if str(v).strip()]
        return parsed
