# tools.py
"""Read-only ad account tools, their declared schemas and the dispatcher.

Every data tool has the signature ``(args, access_token) -> envelope`` where
the envelope is ``{"content": [{"type": "text", "text": ...}]}``. Errors are
converted into the same envelope so protocol adapters never branch on them.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from auth_tools import facebook_check_auth, facebook_login, facebook_logout
from errors import UnknownToolError, create_error_response
from graph_api import GraphAPIClient
from insights import get_account_insights
from token_storage import AccessTokenProvider
from validation import (
    AccountActivitiesParams, AccountDetailsParams, AdCreativesParams,
    FetchPaginationParams, ListAdAccountsParams, validate_parameters,
)

logger = logging.getLogger(__name__)

AD_ACCOUNT_LIST_FIELDS = [
    'id', 'name', 'account_id', 'account_status', 'currency', 'timezone_name', 'amount_spent'
]
DEFAULT_ACTIVITY_FIELDS = [
    'event_time', 'event_type', 'translated_event_type', 'actor_name',
    'object_id', 'object_name', 'object_type', 'extra_data'
]
DEFAULT_CREATIVE_FIELDS = [
    'id', 'name', 'title', 'body', 'status', 'object_type',
    'image_url', 'thumbnail_url', 'video_id', 'call_to_action_type'
]

ACCOUNT_STATUS_NAMES = {
    1: 'ACTIVE',
    2: 'DISABLED',
    3: 'UNSETTLED',
    7: 'PENDING_RISK_REVIEW',
    8: 'PENDING_SETTLEMENT',
    9: 'IN_GRACE_PERIOD',
    100: 'PENDING_CLOSURE',
    101: 'CLOSED',
    201: 'ANY_ACTIVE',
    202: 'ANY_CLOSED',
}


@dataclass
class ToolCall:
    """A tool invocation normalized from any protocol surface."""

    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)
    tool_call_id: Optional[str] = None


def _text_response(text: str) -> Dict[str, Any]:
    return {'content': [{'type': 'text', 'text': text}]}


def _raw_json(data: Any) -> str:
    return f"```json\n{json.dumps(data, indent=2, ensure_ascii=False)}\n```"


def _paging_hint(data: Dict[str, Any]) -> str:
    next_url = (data.get('paging') or {}).get('next')
    if next_url:
        return f"\n\n➡️ More results available. Call facebook_fetch_pagination_url with:\n{next_url}"
    return ''


# --- Data tools ---

def list_ad_accounts(args: Optional[Dict[str, Any]], access_token: Optional[str]) -> Dict[str, Any]:
    """List the ad accounts the authenticated user can access."""
    try:
        validated = validate_parameters(ListAdAccountsParams, args)
        client = GraphAPIClient(access_token)
        params = {'fields': ','.join(AD_ACCOUNT_LIST_FIELDS), 'limit': str(validated['limit'])}
        if validated['after']:
            params['after'] = validated['after']
        data = client.make_request('/me/adaccounts', params)

        accounts = data.get('data') or []
        if not accounts:
            return _text_response("No ad accounts found for this Facebook user.\n\n" + _raw_json(data))

        lines = [f"💼 **Found {len(accounts)} ad account(s):**\n"]
        for i, account in enumerate(accounts, 1):
            status = ACCOUNT_STATUS_NAMES.get(account.get('account_status'), account.get('account_status'))
            lines.append(
                f"{i}. {account.get('name', 'N/A')} ({account.get('id', 'N/A')}) - "
                f"Status: {status}, Currency: {account.get('currency', 'N/A')}"
            )
        return _text_response('\n'.join(lines) + _paging_hint(data) + "\n\n" + _raw_json(data))
    except Exception as e:
        return create_error_response(e)


def fetch_pagination_url(args: Optional[Dict[str, Any]], access_token: Optional[str]) -> Dict[str, Any]:
    """Follow a ``paging.next`` / ``paging.previous`` URL from an earlier response."""
    try:
        validated = validate_parameters(FetchPaginationParams, args)
        client = GraphAPIClient(access_token)
        data = client.make_request_from_full_url(validated['url'])
        return _text_response(_raw_json(data) + _paging_hint(data))
    except Exception as e:
        return create_error_response(e)


def get_account_details(args: Optional[Dict[str, Any]], access_token: Optional[str]) -> Dict[str, Any]:
    try:
        validated = validate_parameters(AccountDetailsParams, args)
        client = GraphAPIClient(access_token)
        data = client.make_request(f"/{validated['act_id']}", {'fields': ','.join(validated['fields'])})

        lines = [f"🏦 **Ad Account {validated['act_id']}:**\n"]
        for key in validated['fields']:
            if key not in data:
                continue
            value = data[key]
            if key == 'account_status':
                value = ACCOUNT_STATUS_NAMES.get(value, value)
            lines.append(f"- {key}: {value}")
        return _text_response('\n'.join(lines) + "\n\n" + _raw_json(data))
    except Exception as e:
        return create_error_response(e)


def get_account_activities(args: Optional[Dict[str, Any]], access_token: Optional[str]) -> Dict[str, Any]:
    """Change history (budget, status, targeting updates, ...) of an ad account."""
    try:
        validated = validate_parameters(AccountActivitiesParams, args)
        client = GraphAPIClient(access_token)
        params = {
            'fields': ','.join(validated['fields'] or DEFAULT_ACTIVITY_FIELDS),
            'limit': str(validated['limit']),
        }
        if validated['since']:
            params['since'] = validated['since']
        if validated['until']:
            params['until'] = validated['until']
        data = client.make_request(f"/{validated['act_id']}/activities", params)

        activities = data.get('data') or []
        if not activities:
            return _text_response("No activities found for this period.\n\n" + _raw_json(data))

        lines = [f"📝 **{len(activities)} activit{'y' if len(activities) == 1 else 'ies'}:**\n"]
        for activity in activities:
            event = activity.get('translated_event_type') or activity.get('event_type', 'unknown event')
            target = activity.get('object_name') or activity.get('object_id', '')
            lines.append(
                f"- {activity.get('event_time', '?')}: {event} "
                f"({activity.get('object_type', '?')} {target}) by {activity.get('actor_name', 'unknown')}"
            )
        return _text_response('\n'.join(lines) + _paging_hint(data) + "\n\n" + _raw_json(data))
    except Exception as e:
        return create_error_response(e)


def get_ad_creatives(args: Optional[Dict[str, Any]], access_token: Optional[str]) -> Dict[str, Any]:
    try:
        validated = validate_parameters(AdCreativesParams, args)
        client = GraphAPIClient(access_token)
        data = client.make_request(f"/{validated['act_id']}/adcreatives", {
            'fields': ','.join(validated['fields'] or DEFAULT_CREATIVE_FIELDS),
            'limit': str(validated['limit']),
        })

        creatives = data.get('data') or []
        if not creatives:
            return _text_response("No ad creatives found.\n\n" + _raw_json(data))

        lines = [f"🎨 **{len(creatives)} ad creative(s):**\n"]
        for creative in creatives:
            lines.append(f"**{creative.get('name') or creative.get('id')}**")
            for key in ('title', 'body', 'status', 'image_url', 'thumbnail_url', 'video_id'):
                if creative.get(key):
                    lines.append(f"  - {key}: {creative[key]}")
        return _text_response('\n'.join(lines) + _paging_hint(data) + "\n\n" + _raw_json(data))
    except Exception as e:
        return create_error_response(e)


# --- Declared schemas ---

_AD_ACCOUNT_ID = {
    'type': 'string',
    'pattern': '^act_\\d+$',
    'description': 'Ad account ID (format: act_123456789)',
}
_NO_ARGS = {'type': 'object', 'properties': {}, 'required': []}

TOOL_SCHEMAS: Dict[str, Dict[str, Any]] = {
    'facebook_login': _NO_ARGS,
    'facebook_logout': _NO_ARGS,
    'facebook_check_auth': _NO_ARGS,
    'facebook_list_ad_accounts': {
        'type': 'object',
        'properties': {
            'limit': {'type': 'number', 'description': 'Accounts per page', 'default': 100, 'maximum': 100},
            'after': {'type': 'string', 'description': 'Pagination cursor from paging.cursors.after'},
        },
        'required': [],
    },
    'facebook_fetch_pagination_url': {
        'type': 'object',
        'properties': {
            'url': {'type': 'string', 'description': "A paging.next or paging.previous URL from an earlier response"},
        },
        'required': ['url'],
    },
    'facebook_get_details_of_ad_account': {
        'type': 'object',
        'properties': {
            'act_id': _AD_ACCOUNT_ID,
            'fields': {
                'type': 'array',
                'items': {'type': 'string'},
                'description': 'Fields to retrieve',
                'default': ['id', 'name', 'account_status', 'currency', 'balance', 'amount_spent'],
            },
        },
        'required': ['act_id'],
    },
    'facebook_get_adaccount_insights': {
        'type': 'object',
        'properties': {
            'act_id': _AD_ACCOUNT_ID,
            'fields': {
                'type': 'array',
                'items': {'type': 'string'},
                'minItems': 1,
                'description': "Metrics to retrieve (e.g., ['impressions', 'clicks', 'spend', 'cpm', 'ctr', 'actions'])",
            },
            'level': {
                'type': 'string',
                'enum': ['account', 'campaign', 'adset', 'ad'],
                'description': 'Reporting level',
                'default': 'account',
            },
            'date_preset': {
                'type': 'string',
                'description': 'Date range preset (e.g., today, yesterday, last_7d, last_30d, this_month, last_month)',
            },
            'time_range': {
                'type': 'object',
                'description': "Custom date range with 'since' and 'until' in YYYY-MM-DD format",
                'properties': {
                    'since': {'type': 'string'},
                    'until': {'type': 'string'},
                },
            },
            'time_increment': {
                'type': ['string', 'number', 'null'],
                'description': "Time bucketing: 'monthly', 'all_days' or a number of days (1-90). Defaults to 'monthly'",
            },
            'breakdowns': {
                'type': 'array',
                'items': {'type': 'string'},
                'description': "Breakdown dimensions (e.g., ['age', 'gender', 'country', 'device_platform'])",
            },
            'filtering': {
                'type': 'array',
                'description': 'Filter conditions for the data',
                'items': {
                    'type': 'object',
                    'properties': {
                        'field': {'type': 'string'},
                        'operator': {'type': 'string'},
                        'value': {'type': 'string'},
                    },
                },
            },
            'additional_params': {
                'type': 'object',
                'additionalProperties': {'type': 'string'},
                'description': 'Extra Graph API insights parameters forwarded verbatim',
            },
        },
        'required': ['act_id', 'fields'],
    },
    'facebook_get_activities_by_adaccount': {
        'type': 'object',
        'properties': {
            'act_id': _AD_ACCOUNT_ID,
            'since': {'type': 'string', 'description': 'Start date for activities in YYYY-MM-DD format'},
            'until': {'type': 'string', 'description': 'End date for activities in YYYY-MM-DD format'},
            'limit': {'type': 'number', 'description': 'Number of activities to retrieve', 'default': 25, 'maximum': 100},
        },
        'required': ['act_id'],
    },
    'facebook_get_ad_creatives': {
        'type': 'object',
        'properties': {
            'act_id': _AD_ACCOUNT_ID,
            'limit': {'type': 'number', 'description': 'Number of creatives to retrieve', 'default': 25, 'maximum': 100},
        },
        'required': ['act_id'],
    },
}

TOOL_DESCRIPTIONS: Dict[str, str] = {
    'facebook_login': 'Login to Facebook using OAuth to authenticate and access ad accounts',
    'facebook_logout': 'Log out of Facebook and remove the stored access token',
    'facebook_check_auth': 'Check whether a valid Facebook access token is available',
    'facebook_list_ad_accounts': 'List all Facebook ad accounts accessible to the authenticated user',
    'facebook_fetch_pagination_url': 'Fetch the next or previous page of a Facebook Graph API result',
    'facebook_get_details_of_ad_account': 'Get detailed information about a specific ad account including balance, currency, and status',
    'facebook_get_adaccount_insights': 'Get performance insights and metrics for ad accounts, campaigns, adsets, or individual ads',
    'facebook_get_activities_by_adaccount': 'Get activity logs and change history for a specific ad account',
    'facebook_get_ad_creatives': 'Get creative assets for ads including images, videos, and ad copy',
}


# --- Dispatch ---

AUTH_TOOLS: Dict[str, Callable[..., Dict[str, Any]]] = {
    'facebook_login': facebook_login,
    'facebook_logout': facebook_logout,
    'facebook_check_auth': facebook_check_auth,
}

DATA_TOOLS: Dict[str, Callable[..., Dict[str, Any]]] = {
    'facebook_list_ad_accounts': list_ad_accounts,
    'facebook_fetch_pagination_url': fetch_pagination_url,
    'facebook_get_details_of_ad_account': get_account_details,
    'facebook_get_adaccount_insights': get_account_insights,
    'facebook_get_activities_by_adaccount': get_account_activities,
    'facebook_get_ad_creatives': get_ad_creatives,
}


def get_tool_description(tool_name: str) -> str:
    return TOOL_DESCRIPTIONS.get(tool_name, tool_name)


def execute_tool_call(call: ToolCall, provider: AccessTokenProvider) -> Dict[str, Any]:
    """Run one normalized tool call. Every protocol surface ends up here."""
    logger.info("Tool call: %s", call.tool_name)

    if call.tool_name in AUTH_TOOLS:
        return AUTH_TOOLS[call.tool_name](call.args, provider)

    if call.tool_name in DATA_TOOLS:
        return DATA_TOOLS[call.tool_name](call.args, provider.get())

    if call.tool_name == '_list_tools':
        return _text_response(json.dumps(list(TOOL_SCHEMAS), indent=2))

    raise UnknownToolError(call.tool_name)
