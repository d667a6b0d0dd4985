"""Column types shared by the ORM models."""

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

from app.models.enums import LabeledEnum


class LabelEnum(TypeDecorator):
    """
    Persist a LabeledEnum as its text label.

    Both directions go through LabeledEnum.from_label, so an unknown label
    raises UnknownLabelError on write and on read instead of defaulting.
    """

    impl = String
    cache_ok = True

    def __init__(self, enum_cls: type[LabeledEnum], length: int) -> None:
        super().__init__(length)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls.from_label(value).label

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls.from_label(value)
