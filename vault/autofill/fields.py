"""
autofill/fields.py
------------------
Where to look for login fields on a page, and how to write into them.

Lookup order for the username field:
  1. the site's configured selector, if any
  2. USERNAME_HEURISTICS, a comma-joined CSS list (email inputs first)
  3. the first *visible* match from USERNAME_FALLBACKS, one selector at a
     time, skipping password and hidden inputs

SET_VALUE_SCRIPT runs inside the page. Assigning `.value` is not enough for
React-style inputs, so it uses the native HTMLInputElement setter and then
fires input/change/keyboard events.
"""

from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional

PLACEHOLDER_SITE_PATTERN = "example.com/login"

USERNAME_HEURISTICS = ",".join([
    "input#email",
    "input[id='email']",
    "input[type='email']",
    "input[name='email']",
    "input[autocomplete='email']",
    "input[name='username']",
    "input[autocomplete='username']",
    "input[aria-label*='email' i]",
    "input[placeholder*='email' i]",
    "input[id*='email']",
    "input[id*='user']",
    "input[name*='user']",
    "input[name*='login']",
])

PASSWORD_HEURISTICS = ",".join([
    "input[type='password']",
    "input[autocomplete='current-password']",
    "input[id*='pass']",
    "input[name*='pass']",
])

SUBMIT_HEURISTICS = ",".join([
    "button[type='submit']",
    "input[type='submit']",
    "form button:not([type])",
])

PASSWORD_FALLBACK = "input[type='password'], input[autocomplete='current-password']"

USERNAME_FALLBACKS = (
    "input#email",
    "input[id='email']",
    "input[type='email']",
    "input[name='email']",
    "input[autocomplete='email']",
    "input[name='username']",
    "input[autocomplete='username']",
    "input[aria-label*='email' i]",
    "input[placeholder*='email' i]",
    "input[type='text']",
)

SET_VALUE_SCRIPT = """
(input, value) => {
    const setter = Object.getOwnPropertyDescriptor(
        window.HTMLInputElement.prototype, 'value'
    )?.set;
    const write = (v) => { if (setter) { setter.call(input, v); } else { input.value = v; } };
    input.focus();
    input.value = '';
    write(value || '');
    input.dispatchEvent(new Event('input', { bubbles: true, cancelable: true }));
    input.dispatchEvent(new Event('change', { bubbles: true, cancelable: true }));
    for (const type of ['keydown', 'keypress', 'keyup']) {
        input.dispatchEvent(new KeyboardEvent(type, { bubbles: true, cancelable: true }));
    }
    if (input._valueTracker) { input._valueTracker.setValue(''); }
    write(value || '');
    input.dispatchEvent(new Event('input', { bubbles: true }));
    input.dispatchEvent(new Event('change', { bubbles: true }));
    return (input.value || '').length > 0;
}
"""

INPUT_TYPE_SCRIPT = "(el) => (el.getAttribute('type') || 'text').toLowerCase()"
IS_CONNECTED_SCRIPT = "(el) => el.isConnected"


@dataclass(frozen=True)
class SiteConfig:
    site_pattern: str = PLACEHOLDER_SITE_PATTERN
    username_selector: str = "input[name='username'], input[type='email']"
    password_selector: str = "input[name='password']"
    submit_selector: str = "button[type='submit'], input[type='submit']"

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["SiteConfig"]:
        if not data:
            return None
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and v is not None}
        return cls(**known)

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    def applies_to(self, url: str) -> bool:
        """The placeholder pattern is ignored; a real one must appear in the URL."""
        pattern = (self.site_pattern or "").strip()
        if not pattern or pattern == PLACEHOLDER_SITE_PATTERN:
            return True
        return pattern in url

    def username_selectors(self) -> str:
        return self.username_selector.strip() or USERNAME_HEURISTICS

    def password_selectors(self) -> str:
        return self.password_selector.strip() or PASSWORD_HEURISTICS

    def submit_selectors(self) -> str:
        return self.submit_selector.strip() or SUBMIT_HEURISTICS
