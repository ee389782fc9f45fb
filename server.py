# server.py
from typing import Any, Dict, List, Optional, Union

import uvicorn
from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent

from adapters import MCPAdapter
from api import ROUTES, create_api_app
from config import MCP_SERVER_NAME, PORT, SERVER_MODE, configure_logging
from token_storage import AccessTokenProvider
from tools import execute_tool_call, get_tool_description

# Create an MCP server
mcp = FastMCP(MCP_SERVER_NAME)

# The process-wide token cache; passed explicitly into every tool call
TOKEN_PROVIDER = AccessTokenProvider()

_adapter = MCPAdapter()


def _call(tool_name: str, **arguments: Any) -> List[TextContent]:
    """Route an MCP tool invocation through the shared dispatcher."""
    args = {key: value for key, value in arguments.items() if value is not None}
    call = _adapter.parse_request({'name': tool_name, 'arguments': args})
    return _adapter.format_response(execute_tool_call(call, TOKEN_PROVIDER))


def _tool(name: str):
    return mcp.tool(name=name, description=get_tool_description(name), structured_output=False)


# --- Auth Tools ---

@_tool('facebook_login')
def facebook_login() -> List[TextContent]:
    return _call('facebook_login')


@_tool('facebook_logout')
def facebook_logout() -> List[TextContent]:
    return _call('facebook_logout')


@_tool('facebook_check_auth')
def facebook_check_auth() -> List[TextContent]:
    return _call('facebook_check_auth')


# --- Ad Account Tools ---

@_tool('facebook_list_ad_accounts')
def facebook_list_ad_accounts(limit: int = 100, after: Optional[str] = None) -> List[TextContent]:
    """List the ad accounts and their names associated with your Facebook account.

    Args:
        limit: Accounts per page (max 100).
        after: Pagination cursor from a previous response's 'paging.cursors.after'.
    """
    return _call('facebook_list_ad_accounts', limit=limit, after=after)


@_tool('facebook_fetch_pagination_url')
def facebook_fetch_pagination_url(url: str) -> List[TextContent]:
    """Fetch data from a Facebook Graph API pagination URL.

    Args:
        url: The complete pagination URL (e.g., from response['paging']['next']).
    """
    return _call('facebook_fetch_pagination_url', url=url)


@_tool('facebook_get_details_of_ad_account')
def facebook_get_details_of_ad_account(act_id: str, fields: Optional[List[str]] = None) -> List[TextContent]:
    """Get details of a specific ad account as per the fields provided.

    Args:
        act_id: The act ID of the ad account, example: act_1234567890
        fields: The fields to get from the ad account. If None, defaults are used:
                id, name, account_status, currency, balance, amount_spent.
    """
    return _call('facebook_get_details_of_ad_account', act_id=act_id, fields=fields)


@_tool('facebook_get_adaccount_insights')
def facebook_get_adaccount_insights(
    act_id: str,
    fields: List[str],
    level: str = 'account',
    date_preset: Optional[str] = None,
    time_range: Optional[Dict[str, str]] = None,
    time_increment: Optional[Union[int, float, str]] = None,
    breakdowns: Optional[List[str]] = None,
    filtering: Optional[List[Dict[str, Any]]] = None,
    additional_params: Optional[Dict[str, str]] = None,
) -> List[TextContent]:
    """Retrieves performance insights for a specified Facebook ad account.

    Args:
        act_id (str): The target ad account ID, prefixed with 'act_', e.g., 'act_1234567890'.
        fields (List[str]): Metrics to retrieve, e.g. 'spend', 'impressions', 'clicks',
            'ctr', 'cpc', 'cpm', 'actions'. Requesting 'actions' also requests 'conversions'.
        level (str): 'account', 'campaign', 'adset' or 'ad'. Default: 'account'.
        date_preset (Optional[str]): A predefined relative time range such as
            'last_7d', 'last_30d', 'this_month' or 'last_month'.
        time_range (Optional[Dict[str, str]]): {'since': 'YYYY-MM-DD', 'until': 'YYYY-MM-DD'}.
        time_increment (str | number): 'monthly', 'all_days' or a number of days (1-90).
            Omitted or null means 'monthly'.
        breakdowns (Optional[List[str]]): e.g. 'age', 'gender', 'country', 'publisher_platform'.
        filtering (Optional[List[dict]]): Filter objects with 'field', 'operator' and 'value'.
        additional_params (Optional[Dict[str, str]]): Any other insights edge
            parameter, forwarded verbatim (e.g. {'action_attribution_windows': '7d_click'}).
    """
    return _call(
        'facebook_get_adaccount_insights',
        act_id=act_id,
        fields=fields,
        level=level,
        date_preset=date_preset,
        time_range=time_range,
        time_increment=time_increment,
        breakdowns=breakdowns,
        filtering=filtering,
        additional_params=additional_params,
    )


# --- Activity & Creative Tools ---

@_tool('facebook_get_activities_by_adaccount')
def facebook_get_activities_by_adaccount(
    act_id: str,
    since: Optional[str] = None,
    until: Optional[str] = None,
    limit: int = 25,
) -> List[TextContent]:
    """Retrieves activities (change history) for a Facebook ad account.

    Args:
        act_id (str): The ID of the ad account, prefixed with 'act_'.
        since (Optional[str]): Start date in YYYY-MM-DD format.
        until (Optional[str]): End date in YYYY-MM-DD format.
        limit (int): Maximum number of activities to return (max 100).
    """
    return _call('facebook_get_activities_by_adaccount', act_id=act_id, since=since, until=until, limit=limit)


@_tool('facebook_get_ad_creatives')
def facebook_get_ad_creatives(act_id: str, limit: int = 25) -> List[TextContent]:
    """Retrieves the ad creatives (images, videos, copy) of an ad account.

    Args:
        act_id (str): The ID of the ad account, prefixed with 'act_'.
        limit (int): Number of creatives to retrieve (max 100).
    """
    return _call('facebook_get_ad_creatives', act_id=act_id, limit=limit)


def main():
    configure_logging()

    if SERVER_MODE == 'api':
        uvicorn.run(create_api_app(TOKEN_PROVIDER), host='0.0.0.0', port=PORT)
    elif SERVER_MODE == 'both':
        app = mcp.streamable_http_app()
        app.router.routes.extend(ROUTES)
        app.state.token_provider = TOKEN_PROVIDER
        uvicorn.run(app, host='0.0.0.0', port=PORT)
    else:
        mcp.run(transport='stdio')


if __name__ == "__main__":
    main()
