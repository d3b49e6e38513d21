"""
Savings line charts rendered by a QuickChart-compatible server.

The server receives a Chart.js config and returns a PNG, which is handed
back as a data URI so it can be embedded straight into an email body.
"""

import base64
import logging
from typing import List, Optional

import requests
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_COLOR = '#2563eb'
DEFAULT_API_URL = 'http://localhost:3400/chart'
REQUEST_TIMEOUT = 10

_FONT = {'family': 'Arial, sans-serif'}


def build_line_chart_config(labels: List[str], values: List[float], color: str = DEFAULT_COLOR) -> dict:
    return {
        'type': 'line',
        'data': {
            'labels': labels,
            'datasets': [{
                'label': 'Birikim',
                'data': values,
                'fill': False,
                'borderColor': color,
                'backgroundColor': color,
                'borderWidth': 3,
                'pointRadius': 5,
                'pointBackgroundColor': color,
                'pointHoverRadius': 7,
                'tension': 0.2,
            }],
        },
        'options': {
            'responsive': False,
            'plugins': {
                'legend': {'display': True, 'labels': {'font': dict(_FONT, size=14)}},
                'title': {'display': False},
            },
            'scales': {
                'x': {'ticks': {'font': dict(_FONT, size=13)}},
                'y': {'ticks': {'font': dict(_FONT, size=13)}},
            },
        },
    }


def generate_savings_line_chart(labels: List[str], values: List[float], color: str = DEFAULT_COLOR,
                                api_url: Optional[str] = None) -> Optional[str]:
    """
    Render a savings progression chart.

    Returns:
        'data:image/png;base64,...' or None when the inputs don't line up
        or the chart server is unreachable
    """
    if len(labels) != len(values) or not labels:
        return None

    if api_url is None:
        api_url = current_app.config.get('QUICKCHART_URL') if has_app_context() else None
        api_url = api_url or DEFAULT_API_URL

    payload = {
        'width': 700,
        'height': 320,
        'format': 'png',
        'devicePixelRatio': 2,
        'chart': build_line_chart_config(labels, [float(value) for value in values], color),
    }

    try:
        response = requests.post(api_url, json=payload, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"QuickChart request failed: {str(e)}")
        return None

    if not response.ok:
        logger.warning(f"QuickChart responded with status {response.status_code}")
        return None

    return f"data:image/png;base64,{base64.b64encode(response.content).decode('ascii')}"
