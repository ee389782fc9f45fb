# validation.py
"""Input schemas for every tool.

Each tool validates its raw arguments with one of the pydantic models below
before touching the network. Models that front Graph API edges with many
optional knobs allow extra fields so new API parameters can be passed
through without a schema change.
"""
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from config import FACEBOOK_BASE_URL
from errors import ValidationError

AD_ACCOUNT_PATTERN = r'^act_\d+$'
DATE_PATTERN = r'^\d{4}-\d{2}-\d{2}$'

DEFAULT_AD_ACCOUNT_FIELDS = [
    'id', 'name', 'account_status', 'currency', 'balance', 'amount_spent'
]


def _split_comma_list(value: Any) -> Any:
    """Accept "a,b" where a list of strings is expected."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(',') if item.strip()]
    return value


class TimeRange(BaseModel):
    since: str = Field(pattern=DATE_PATTERN)
    until: str = Field(pattern=DATE_PATTERN)


class FilterSpec(BaseModel):
    field: str
    operator: str
    value: Any


class AccountInsightsParams(BaseModel):
    model_config = ConfigDict(extra='allow')

    act_id: str = Field(pattern=AD_ACCOUNT_PATTERN)
    fields: List[str] = Field(min_length=1)
    level: Literal['account', 'campaign', 'adset', 'ad'] = 'account'
    date_preset: Optional[str] = None
    time_range: Optional[TimeRange] = None
    # null and absent are both accepted; the request builder treats them alike
    time_increment: Optional[Union[int, float, str]] = None
    breakdowns: Optional[List[str]] = None
    filtering: Optional[List[FilterSpec]] = None
    additional_params: Optional[Dict[str, str]] = None

    split_fields = field_validator('fields', 'breakdowns', mode='before')(_split_comma_list)

    @field_validator('level', mode='before')
    @classmethod
    def default_level(cls, value: Any) -> Any:
        return 'account' if value is None else value


class ListAdAccountsParams(BaseModel):
    limit: int = Field(default=100, ge=1, le=100)
    after: Optional[str] = None


class FetchPaginationParams(BaseModel):
    url: str

    @field_validator('url')
    @classmethod
    def graph_api_url(cls, value: str) -> str:
        if not value.startswith(FACEBOOK_BASE_URL + '/'):
            raise ValueError(f"must be a Graph API URL starting with {FACEBOOK_BASE_URL}/")
        return value


class AccountDetailsParams(BaseModel):
    act_id: str = Field(pattern=AD_ACCOUNT_PATTERN)
    fields: List[str] = Field(default_factory=lambda: list(DEFAULT_AD_ACCOUNT_FIELDS),
                              min_length=1)

    split_fields = field_validator('fields', mode='before')(_split_comma_list)


class AccountActivitiesParams(BaseModel):
    act_id: str = Field(pattern=AD_ACCOUNT_PATTERN)
    since: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    until: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    limit: int = Field(default=25, ge=1, le=100)
    fields: Optional[List[str]] = None

    split_fields = field_validator('fields', mode='before')(_split_comma_list)


class AdCreativesParams(BaseModel):
    act_id: str = Field(pattern=AD_ACCOUNT_PATTERN)
    limit: int = Field(default=25, ge=1, le=100)
    fields: Optional[List[str]] = None

    split_fields = field_validator('fields', mode='before')(_split_comma_list)


class LoginParams(BaseModel):
    user_id: Optional[str] = None


class EmptyParams(BaseModel):
    pass


def _describe(error: Dict[str, Any]) -> str:
    location = '.'.join(str(part) for part in error['loc']) or '<root>'
    return f"{location}: {error['msg']}"


def validate_parameters(schema: Type[BaseModel], args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate and coerce raw tool arguments against ``schema``.

    Returns a plain dict (extra fields included where the schema allows them).
    Raises ``errors.ValidationError`` listing every offending field.
    """
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise ValidationError(
            f"Invalid parameters: expected an object, got {type(args).__name__}"
        )

    try:
        validated = schema.model_validate(args)
    except PydanticValidationError as e:
        problems = e.errors()
        fields = sorted({str(p['loc'][0]) for p in problems if p['loc']})
        raise ValidationError(
            "Invalid parameters: " + '; '.join(_describe(p) for p in problems),
            fields=fields,
        )
    # Every declared field is present in the result; optional ones that were
    # not supplied come back as None and consumers drop them. Extra fields
    # (where allowed) are passed through with their values unchanged.
    return validated.model_dump()
