from typing import Any, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from larder.core.errors import ValidationError

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class BatchFailureRead(BaseModel):
    unit_id: int
    error: str


class BatchReportRead(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    changed: int = 0
    cancelled: bool = False
    errors: list[BatchFailureRead] = Field(default_factory=list)

    def add_success(self, *, changed: bool = False) -> None:
        self.processed += 1
        self.succeeded += 1
        if changed:
            self.changed += 1

    def add_failure(self, unit_id: int, error: str) -> None:
        self.processed += 1
        self.failed += 1
        self.errors.append(BatchFailureRead(unit_id=unit_id, error=error))


def parse_payload(model: type[PayloadT], payload: PayloadT | dict[str, Any]) -> PayloadT:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ValidationError(messages) from exc
