"""Input validation shared by sign-up and patient provisioning."""

from dataclasses import dataclass
from typing import Any, TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from elderwatch.config import Settings, settings
from elderwatch.core.exceptions import ValidationError

MAX_EMAIL_LENGTH = 255

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class PasswordPolicy:
    """Strength rules a password must satisfy."""

    min_length: int = 8
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_symbol: bool = True
    symbols: str = '!@#$%^&*(),.?":{}|<>'

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "PasswordPolicy":
        """Build the provisioning policy from application settings."""
        return cls(
            min_length=config.password_min_length,
            require_uppercase=config.password_require_uppercase,
            require_lowercase=config.password_require_lowercase,
            require_digit=config.password_require_digit,
            require_symbol=config.password_require_symbol,
            symbols=config.password_symbols,
        )

    def violations(self, password: str) -> list[str]:
        """Return a message for every rule the password breaks."""
        problems = []
        if len(password) < self.min_length:
            problems.append(f"Password must be at least {self.min_length} characters")
        if self.require_uppercase and not any(c.isupper() for c in password):
            problems.append("Password must contain at least one uppercase letter")
        if self.require_lowercase and not any(c.islower() for c in password):
            problems.append("Password must contain at least one lowercase letter")
        if self.require_digit and not any(c.isdigit() for c in password):
            problems.append("Password must contain at least one number")
        if self.require_symbol and not any(c in self.symbols for c in password):
            problems.append("Password must contain at least one special character")
        return problems


def normalize_email(email: str) -> str:
    """
    Validate an email address and return its canonical lower-case form.

    Raises:
        ValidationError: If the address is malformed or too long
    """
    email = email.strip()
    if len(email) > MAX_EMAIL_LENGTH:
        raise ValidationError("Email address is too long", field="email")

    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {e!s}", field="email") from e

    return result.normalized.lower()


def check_password(password: str, policy: PasswordPolicy) -> None:
    """
    Enforce a password policy.

    Raises:
        ValidationError: Naming ``password`` with the first broken rule
    """
    problems = policy.violations(password)
    if problems:
        raise ValidationError(problems[0], field="password")


def parse_metadata(model: type[ModelT], data: dict[str, Any] | None) -> ModelT:
    """
    Validate an untyped metadata mapping into its structured record.

    Raises:
        ValidationError: Naming ``metadata.<field>`` for the first bad entry
    """
    try:
        return model.model_validate(data or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(part) for part in first["loc"])
        field = f"metadata.{loc}" if loc else "metadata"
        raise ValidationError(f"Invalid {field}: {first['msg']}", field=field) from e
