import json
from unittest.mock import AsyncMock, patch

import pytest

from discovery.main import main
from discovery.models import DiscoveryResult


def stub_discoverer(mock_class, results):
    instance = mock_class.return_value
    instance.discover_many = AsyncMock(return_value=results)
    return instance


class TestMain:
    @pytest.mark.asyncio
    @patch('discovery.main.SmartLinkDiscoverer')
    async def test_json_output(self, mock_class, capsys):
        instance = stub_discoverer(mock_class, [
            DiscoveryResult({'https://example.com/posts/b-post', 'https://example.com/posts/a-post'},
                            ['CheapPath: static extraction found 2 URLs'], True, 12),
        ])

        code = await main(['https://example.com/', '--links', '2', '--json'])

        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload['https://example.com/']['urls'] == [
            'https://example.com/posts/a-post', 'https://example.com/posts/b-post']
        instance.discover_many.assert_awaited_once_with(['https://example.com/'], 2)
        instance.close.assert_called_once()

    @pytest.mark.asyncio
    @patch('discovery.main.SmartLinkDiscoverer')
    async def test_flags_reach_config(self, mock_class, capsys):
        stub_discoverer(mock_class, [DiscoveryResult(set(), [], False, 5)])

        code = await main(['https://example.com/', '--strict', '--headful', '--attempts', '4',
                           '--parallel', '2', '--user', 'qa', '--password', 'pw'])

        config = mock_class.call_args.args[0]
        assert code == 1
        assert config.min_success_urls == 2
        assert config.headless is False
        assert config.max_attempts == 4
        assert config.max_concurrent_sessions == 2
        assert (config.auth.username, config.auth.password) == ('qa', 'pw')
        assert 'failed, 0 URLs' in capsys.readouterr().out
