"""Email address canonicalization and password strength policies.

Canonicalization is RFC syntax validation via ``email-validator`` (the
same library behind pydantic's EmailStr). Normalization is an additional,
site-configurable transform applied on top; two addresses that normalize
identically are the same account.
"""

from collections.abc import Callable

from email_validator import EmailNotValidError, validate_email

# Returns None when the password is acceptable, otherwise the reason.
PasswordPolicy = Callable[[str], str | None]
EmailNormalizer = Callable[[str], str]


def canonicalize_email(raw: str) -> str | None:
    """Validate and canonicalize an email address.

    No DNS lookups are made; only syntax is checked.

    Args:
        raw: Address as typed by the user.

    Returns:
        Canonical address (domain lowercased, IDNA-normalized), or None if
        the address is not syntactically valid.
    """
    try:
        result = validate_email(raw.strip(), check_deliverability=False)
    except EmailNotValidError:
        return None
    return result.normalized


def lowercase_email(email: str) -> str:
    """Default normalizer: lowercase the entire address."""
    return email.lower()


class MinLengthPolicy:
    """Default password policy: reject passwords shorter than a minimum."""

    _NUMBER_WORDS = {1: "one", 2: "two", 3: "three", 4: "four", 5: "five"}

    def __init__(self, min_length: int = 3) -> None:
        self.min_length = min_length

    def __call__(self, password: str) -> str | None:
        if len(password) >= self.min_length:
            return None
        count = self._NUMBER_WORDS.get(self.min_length, str(self.min_length))
        return f"Password must be at least {count} characters"
