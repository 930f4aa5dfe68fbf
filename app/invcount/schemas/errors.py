from pydantic import BaseModel, ConfigDict


class CountErrorDetails(BaseModel):
    """Context attached to count session errors.

    Only the keys relevant to the failure are present; anything else an error
    carries (unresolved item counts, batch row numbers) passes through as-is.
    """

    model_config = ConfigDict(extra="allow")

    message: str | None = None
    session_id: str | None = None
    item_id: str | None = None
    warehouse_id: str | None = None
    sku: str | None = None
    status: str | None = None
    target_status: str | None = None
    allowed_statuses: list[str] | None = None


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: CountErrorDetails | None = None
    trace_id: str | None = None


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None
    input: object | None = None
    ctx: dict | None = None


class ApiValidationErrorDetails(BaseModel):
    errors: list[ApiValidationErrorItem]


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | CountErrorDetails | None = None
