import threading
from unittest.mock import Mock, patch

import pytest
import requests

from discovery.exceptions import NetworkError
from discovery.fetcher import HttpFetcher


def fake_session():
    session = Mock()
    session.headers = {}
    return session


class TestSessions:
    @patch('discovery.fetcher.requests.Session')
    def test_one_session_per_thread(self, mock_session):
        mock_session.side_effect = fake_session
        fetcher = HttpFetcher(user_agent='agent/1.0')
        seen = []

        thread = threading.Thread(target=lambda: seen.append(fetcher.session))
        thread.start()
        thread.join()

        assert fetcher.session is fetcher.session
        assert seen[0] is not fetcher.session
        assert mock_session.call_count == 2
        assert seen[0].headers['User-Agent'] == 'agent/1.0'

    @patch('discovery.fetcher.requests.Session')
    def test_close_closes_every_session(self, mock_session):
        mock_session.side_effect = fake_session
        fetcher = HttpFetcher()
        main_session = fetcher.session
        worker = []
        thread = threading.Thread(target=lambda: worker.append(fetcher.session))
        thread.start()
        thread.join()

        fetcher.close()

        main_session.close.assert_called_once()
        worker[0].close.assert_called_once()


class TestFetchText:
    @patch('discovery.fetcher.requests.Session')
    def test_returns_body(self, mock_session):
        session = fake_session()
        session.get.return_value = Mock(text='<html></html>')
        mock_session.return_value = session

        assert HttpFetcher(timeout_ms=2000).fetch_text('https://example.com/') == '<html></html>'
        session.get.assert_called_once_with('https://example.com/', timeout=2.0, allow_redirects=True)

    @patch('discovery.fetcher.requests.Session')
    def test_timeout_becomes_network_error(self, mock_session):
        session = fake_session()
        session.get.side_effect = requests.exceptions.Timeout()
        mock_session.return_value = session

        with pytest.raises(NetworkError) as error:
            HttpFetcher(timeout_ms=1500).fetch_text('https://example.com/')

        assert error.value.reason == 'timed out after 1.5s'
