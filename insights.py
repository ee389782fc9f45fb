# insights.py
"""Account insights: request building and report formatting.

``get_account_insights`` is the tool function. It validates the raw
arguments, turns them into the flat query parameters the insights edge
expects, makes a single Graph API call and renders the rows as a readable
report. The debug trace and the raw upstream payload are always appended to
the report so a calling model can see exactly what was asked and answered.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from errors import create_error_response
from graph_api import GraphAPIClient
from validation import AccountInsightsParams, validate_parameters

logger = logging.getLogger(__name__)

DEFAULT_TIME_INCREMENT = 'monthly'

BREAKDOWN_CANDIDATES = [
    'date_start',
    'date_stop',
    'placement',
    'age',
    'gender',
    'country',
    'region',
    'device_platform',
    'publisher_platform',
    'platform_position',
    'impression_device',
    'product_id',
    'dma',
]

# Entity name columns used to label rows in the simple report, per level
ENTITY_NAME_FIELDS = {
    'campaign': 'campaign_name',
    'adset': 'adset_name',
    'ad': 'ad_name',
    'account': 'account_name',
}

# Keys consumed by the builder itself; everything else is forwarded as-is
_CONSUMED_KEYS = ('act_id', 'fields', 'level', 'period', 'time_increment',
                  'time_range', 'additional_params')


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(',', ':'))


def _to_query_value(value: Any) -> str:
    if isinstance(value, list):
        return ','.join(_to_query_value(item) for item in value)
    if isinstance(value, dict):
        return _compact_json(value)
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def resolve_time_increment(time_increment: Any, period: Optional[str] = None) -> Any:
    """None and a missing value both collapse to the monthly default."""
    final_time_increment = time_increment if time_increment is not None else DEFAULT_TIME_INCREMENT
    if not final_time_increment and period == 'month':
        final_time_increment = DEFAULT_TIME_INCREMENT
    return final_time_increment


def enhance_fields(fields: List[str]) -> Tuple[List[str], Dict[str, Any]]:
    """Request ``conversions`` alongside ``actions`` unless already asked for."""
    enhanced_fields = list(fields)
    debug_info = {
        'originalFields': list(fields),
        'includesActions': 'actions' in fields,
        'includesConversions': 'conversions' in fields,
        'addedConversions': False,
    }
    if 'actions' in fields and 'conversions' not in fields:
        enhanced_fields.append('conversions')
        debug_info['addedConversions'] = True
    return enhanced_fields, debug_info


def build_insights_params(validated_args: Dict[str, Any]) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """Build the query parameters for ``GET /{act_id}/insights``.

    Returns ``(params, debug_info)``. ``params`` is a flat string map: keys
    with a None value are dropped and lists are comma-joined in one final
    pass after every other step has run.
    """
    fields = validated_args['fields']
    level = validated_args.get('level')
    period = validated_args.get('period')
    time_range = validated_args.get('time_range')
    other_params = {k: v for k, v in validated_args.items() if k not in _CONSUMED_KEYS}
    requested_extras = validated_args.get('additional_params') or {}
    # keys the builder owns are never overridden
    additional_params = {k: v for k, v in requested_extras.items() if k not in _CONSUMED_KEYS}
    ignored = sorted(set(requested_extras) - set(additional_params))
    if ignored:
        logger.warning("Ignoring additional_params keys owned by the builder: %s", ', '.join(ignored))

    enhanced_fields, debug_info = enhance_fields(fields)
    final_time_increment = resolve_time_increment(validated_args.get('time_increment'), period)

    insights_params: Dict[str, Any] = {
        'fields': ','.join(enhanced_fields),
        'level': level or 'account',
        'time_increment': final_time_increment or None,
    }
    insights_params.update(other_params)
    insights_params.update(additional_params)

    if time_range:
        insights_params['time_range'] = _compact_json(time_range)

    if isinstance(insights_params.get('filtering'), list):
        insights_params['filtering'] = _compact_json(insights_params['filtering'])

    params = {
        key: _to_query_value(value)
        for key, value in insights_params.items()
        if value is not None
    }
    return params, debug_info


# --- Formatting ---

def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def format_row_metrics(row: Dict[str, Any], indent: str = '') -> str:
    text = ''
    if not row:
        return text
    if row.get('spend') is not None:
        text += f"{indent}💰 Spend: ${_to_float(row['spend']):.2f}\n"
    if row.get('impressions') is not None:
        text += f"{indent}👁️ Impressions: {int(_to_float(row['impressions'])):,}\n"
    if row.get('clicks') is not None:
        text += f"{indent}🖱️ Clicks: {int(_to_float(row['clicks'])):,}\n"
    if row.get('ctr') is not None:
        text += f"{indent}📊 CTR: {_to_float(row['ctr']):.2f}%\n"
    if row.get('cpc') is not None:
        text += f"{indent}💸 CPC: ${_to_float(row['cpc']):.2f}\n"
    if row.get('cpm') is not None:
        text += f"{indent}📈 CPM: ${_to_float(row['cpm']):.2f}\n"
    return text


def summarize_conversions(rows: List[Dict[str, Any]]) -> Dict[str, float]:
    """Sum ``conversions`` per action type, then fill gaps from ``actions``.

    An ``actions`` entry never overrides a type that already has a value.
    """
    conversions: Dict[str, float] = {}
    for row in rows:
        if isinstance(row.get('conversions'), list):
            for entry in row['conversions']:
                action_type = entry.get('action_type')
                if not action_type:
                    continue
                conversions[action_type] = conversions.get(action_type, 0) + _to_float(entry.get('value'))
        if isinstance(row.get('actions'), list):
            for entry in row['actions']:
                action_type = entry.get('action_type')
                if not action_type:
                    continue
                if not conversions.get(action_type):
                    conversions[action_type] = conversions.get(action_type, 0) + _to_float(entry.get('value'))
    return conversions


def get_conversion_summary(rows: List[Dict[str, Any]]) -> Optional[str]:
    summary = ', '.join(
        f"{action_type}: {_format_number(value)}"
        for action_type, value in summarize_conversions(rows).items()
        if value > 0
    )
    return summary or None


def _format_row_block(label: str, row: Dict[str, Any]) -> str:
    text = f"**{label}:**\n"
    text += format_row_metrics(row, '  ')
    conversions = get_conversion_summary([row])
    if conversions:
        text += f"  🎯 **Conversions:** {conversions}\n"
    return text + '\n'


def _sorted_by_start(insights_data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(insights_data, key=lambda row: row.get('date_start') or '')


def format_monthly_breakdown(insights_data: List[Dict[str, Any]]) -> str:
    response_text = "📆 **Month-wise Performance Breakdown:**\n\n"
    for row in _sorted_by_start(insights_data):
        start = (row.get('date_start') or '')[:7]
        end = (row.get('date_stop') or row.get('date_start') or '')[:7]
        label = start if start == end else f"{start} → {end}"
        response_text += _format_row_block(label, row)
    return response_text


def format_time_based_breakdown(insights_data: List[Dict[str, Any]]) -> str:
    response_text = "📅 **Time-Based Performance Breakdown:**\n\n"
    for row in _sorted_by_start(insights_data):
        start = row.get('date_start') or ''
        end = row.get('date_stop') or start
        label = start if start == end else f"{start} → {end}"
        response_text += _format_row_block(label, row)
    return response_text


def detect_breakdown_fields(insights_data: List[Dict[str, Any]]) -> List[str]:
    if not insights_data:
        return []
    first_row = insights_data[0]
    return [field for field in BREAKDOWN_CANDIDATES if field in first_row]


def _simple_row_label(row: Dict[str, Any], level: str, dimensions: List[str], index: int) -> str:
    parts = []
    name = row.get(ENTITY_NAME_FIELDS.get(level, ''))
    if name:
        parts.append(str(name))
    parts.extend(f"{dim}: {row[dim]}" for dim in dimensions if row.get(dim) is not None)
    return ' | '.join(parts) if parts else f"Row {index}"


def format_simple_insights(insights_data: List[Dict[str, Any]], level: str = 'account',
                           breakdown_fields: Optional[List[str]] = None) -> str:
    dimensions = [f for f in (breakdown_fields or []) if f not in ('date_start', 'date_stop')]
    response_text = f"📊 **Performance Summary ({level} level):**\n\n"
    for index, row in enumerate(insights_data, start=1):
        label = _simple_row_label(row, level, dimensions, index)
        response_text += _format_row_block(label, row)
    return response_text


def format_insights_with_breakdowns(insights_data: List[Dict[str, Any]], level: str,
                                    request_params: Dict[str, Any]) -> str:
    breakdown_fields = detect_breakdown_fields(insights_data)
    if 'date_start' in breakdown_fields and request_params.get('time_increment') == DEFAULT_TIME_INCREMENT:
        return format_monthly_breakdown(insights_data)
    if 'date_start' in breakdown_fields:
        return format_time_based_breakdown(insights_data)
    return format_simple_insights(insights_data, level, breakdown_fields)


def _json_block(title: str, payload: Any) -> str:
    return f"\n\n**{title}:**\n```json\n{json.dumps(payload, indent=2, ensure_ascii=False)}\n```"


def format_insights_response(insights_data: Dict[str, Any], level: str,
                             request_params: Dict[str, Any], final_time_increment: Any,
                             debug_info: Dict[str, Any]) -> str:
    rows = insights_data.get('data') or []
    if rows:
        if final_time_increment == DEFAULT_TIME_INCREMENT:
            response_text = format_monthly_breakdown(rows)
        else:
            response_text = format_insights_with_breakdowns(rows, level, request_params)
    else:
        response_text = "No insights data found."

    response_text += _json_block('Debug Info', debug_info)
    response_text += _json_block('Raw API Response', insights_data)
    return response_text


def get_account_insights(args: Optional[Dict[str, Any]], access_token: Optional[str]) -> Dict[str, Any]:
    """Tool: performance insights for an ad account.

    Returns the MCP-style ``{"content": [{"type": "text", "text": ...}]}``
    envelope on success and on failure alike.
    """
    try:
        validated_args = validate_parameters(AccountInsightsParams, args)
        client = GraphAPIClient(access_token)

        params, debug_info = build_insights_params(validated_args)
        final_time_increment = resolve_time_increment(
            validated_args.get('time_increment'), validated_args.get('period')
        )
        logger.info("Fetching insights for %s (fields=%s, time_increment=%s)",
                    validated_args['act_id'], params['fields'], final_time_increment)

        insights_data = client.make_request(f"/{validated_args['act_id']}/insights", params)

        response_text = format_insights_response(
            insights_data,
            validated_args.get('level') or 'account',
            validated_args,
            final_time_increment,
            debug_info,
        )
        return {
            'content': [
                {
                    'type': 'text',
                    'text': response_text,
                }
            ]
        }
    except Exception as e:
        return create_error_response(e)
