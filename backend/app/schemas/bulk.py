from pydantic import BaseModel, Field


class BulkItemError(BaseModel):
    id: str
    message: str
    details: dict = Field(default_factory=dict)


class BulkOperationResult(BaseModel):
    succeeded: list[str] = Field(default_factory=list)
    failed: list[BulkItemError] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)
