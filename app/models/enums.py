"""Role and status enums; each value is the canonical label stored in the database."""

from enum import Enum


class UnknownLabelError(ValueError):
    """Raised when a text label maps to no known enum variant."""

    def __init__(self, enum_name: str, label: object) -> None:
        self.enum_name = enum_name
        self.label = label
        super().__init__(f"Unknown {enum_name} label: {label!r}")


class LabeledEnum(str, Enum):
    """String enum whose value is its persisted and client-visible label."""

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_label(cls, label: object):
        """Map a stored label back to its variant; unknown labels fail closed."""
        if isinstance(label, cls):
            return label
        try:
            return cls(label)
        except ValueError:
            raise UnknownLabelError(cls.__name__, label) from None


class RoleName(LabeledEnum):
    BUYER = "Buyer"
    ARTISAN = "Artisan"
    SUPPORT = "Support"
    ADMINISTRATOR = "Administrator"


class UserStatus(LabeledEnum):
    ACTIVE = "Active"
    BLOCKED = "Blocked"


DEFAULT_ROLE = RoleName.BUYER
