from unittest.mock import MagicMock, patch

import pytest
import requests

from services.chart_service import build_line_chart_config, generate_savings_line_chart
from services.market_service import clear_market_cache, get_market_snapshot

RATES = {'TRY': {'USD': 32.1, 'EUR': 34.9}, 'USD': {'EUR': 1.087}}


class TestSavingsChart:
    def test_config_shape(self):
        config = build_line_chart_config(['Geçen Ay', 'Bugün'], [100.0, 150.0], color='#000000')
        dataset = config['data']['datasets'][0]
        assert config['type'] == 'line'
        assert dataset['data'] == [100.0, 150.0]
        assert dataset['borderColor'] == '#000000'

    def test_returns_data_uri(self, app):
        with patch('services.chart_service.requests.post') as post:
            post.return_value = MagicMock(ok=True, content=b'PNG')
            image = generate_savings_line_chart(['Geçen Ay', 'Bugün'], [100, 150])

        assert image == 'data:image/png;base64,UE5H'
        url = post.call_args.args[0]
        payload = post.call_args.kwargs['json']
        assert url == 'http://chart.test/chart'
        assert (payload['width'], payload['height'], payload['format']) == (700, 320, 'png')

    def test_mismatched_input_skips_request(self, app):
        with patch('services.chart_service.requests.post') as post:
            assert generate_savings_line_chart(['Bugün'], [1, 2]) is None
            assert generate_savings_line_chart([], []) is None
        post.assert_not_called()

    def test_server_errors_give_none(self, app):
        with patch('services.chart_service.requests.post') as post:
            post.return_value = MagicMock(ok=False, status_code=500)
            assert generate_savings_line_chart(['a'], [1]) is None

            post.side_effect = requests.ConnectionError('down')
            assert generate_savings_line_chart(['a'], [1]) is None


def fake_rates_response(url, params=None, timeout=None):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        'date': '2024-03-05',
        'rates': {params['to']: RATES[params['to']][params['from']]},
    }
    return response


class TestMarketSnapshot:
    @pytest.fixture(autouse=True)
    def empty_cache(self):
        clear_market_cache()
        yield
        clear_market_cache()

    def test_snapshot_and_cache(self, app):
        with patch('services.market_service.requests.get', side_effect=fake_rates_response) as get:
            snapshot = get_market_snapshot()
            assert get_market_snapshot() == snapshot

        assert snapshot == {'date': '2024-03-05', 'usd_try': 32.1, 'eur_try': 34.9, 'eur_usd': 1.087}
        assert get.call_count == 3
        assert get.call_args_list[0].args[0] == 'http://rates.test/latest'

    def test_failure_returns_none_and_is_not_cached(self, app):
        with patch('services.market_service.requests.get', side_effect=requests.Timeout('slow')):
            assert get_market_snapshot() is None

        with patch('services.market_service.requests.get', side_effect=fake_rates_response) as get:
            assert get_market_snapshot() is not None
        assert get.call_count == 3
