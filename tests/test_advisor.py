import json
from unittest.mock import MagicMock

import pytest
import requests

from shrinkwrap.compression import HttpSuggester, Suggestion, SuggestionError
from shrinkwrap.compression.advisor import SUGGESTION_PROMPT, parse_suggestion


@pytest.mark.parametrize('raw, expected', [
    (70, 70),
    (150, 100),
    (0, 1),
    (-20, 1),
    (72.4, 72),
    ('72.4', 72),
    (99.6, 100),
])
def test_parse_suggestion_clamps_and_rounds(raw, expected):
    suggestion = parse_suggestion({'targetSizePercentage': raw, 'reasoning': ' photo '})
    assert suggestion == Suggestion(percentage=expected, reasoning='photo')


@pytest.mark.parametrize('payload', [
    {},
    {'targetSizePercentage': None},
    {'targetSizePercentage': True},
    {'targetSizePercentage': 'seventy'},
    {'targetSizePercentage': 'nan'},
    {'targetSizePercentage': float('inf')},
    {'targetSizePercentage': [70]},
    [70],
    'seventy',
])
def test_parse_suggestion_rejects_bad_payloads(payload):
    with pytest.raises(SuggestionError):
        parse_suggestion(payload)


def test_missing_reasoning_is_empty():
    assert parse_suggestion({'targetSizePercentage': 40}).reasoning == ''
    assert parse_suggestion({'targetSizePercentage': 40, 'reasoning': None}).reasoning == ''


def make_session(content=None, body=None):
    response = MagicMock()
    if body is None:
        body = {'choices': [{'message': {'content': content}}]}
    response.json.return_value = body
    session = MagicMock()
    session.post.return_value = response
    return session


class TestHttpSuggester:

    def test_posts_image_and_parses_reply(self):
        session = make_session(json.dumps({
            'targetSizePercentage': 65,
            'reasoning': 'Photograph with fine texture',
        }))
        suggester = HttpSuggester('secret', endpoint='http://llm.local/v1/chat',
                                  model='vision-1', timeout=5, session=session)

        suggestion = suggester.suggest(b'\xff\xd8abc', 'image/jpeg')

        assert suggestion == Suggestion(65, 'Photograph with fine texture')
        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == 'http://llm.local/v1/chat'
        assert kwargs['timeout'] == 5
        assert kwargs['headers']['Authorization'] == 'Bearer secret'
        body = kwargs['json']
        assert body['model'] == 'vision-1'
        assert body['response_format'] == {'type': 'json_object'}
        text, image = body['messages'][0]['content']
        assert text['text'] == SUGGESTION_PROMPT
        assert image['image_url']['url'] == 'data:image/jpeg;base64,/9hhYmM='

    def test_no_auth_header_without_key(self):
        session = make_session(json.dumps({'targetSizePercentage': 50}))
        HttpSuggester(None, session=session).suggest(b'x', 'image/png')

        assert 'Authorization' not in session.post.call_args.kwargs['headers']

    def test_out_of_range_reply_is_clamped(self):
        session = make_session(json.dumps({'targetSizePercentage': 250}))
        assert HttpSuggester('k', session=session).suggest(b'x', 'image/png').percentage == 100

    def test_http_error(self):
        session = make_session()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

        with pytest.raises(SuggestionError, match="500"):
            HttpSuggester('k', session=session).suggest(b'x', 'image/jpeg')

    def test_connection_error(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(SuggestionError):
            HttpSuggester('k', session=session).suggest(b'x', 'image/jpeg')

    def test_timeout(self):
        session = MagicMock()
        session.post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(SuggestionError):
            HttpSuggester('k', session=session).suggest(b'x', 'image/jpeg')

    @pytest.mark.parametrize('body', [
        {},
        {'choices': []},
        {'choices': [{'message': {}}]},
    ])
    def test_unexpected_response_shape(self, body):
        with pytest.raises(SuggestionError):
            HttpSuggester('k', session=make_session(body=body)).suggest(b'x', 'image/jpeg')

    @pytest.mark.parametrize('content', ['not json', None, '{"reasoning": "no number"}'])
    def test_unusable_content(self, content):
        with pytest.raises(SuggestionError):
            HttpSuggester('k', session=make_session(content)).suggest(b'x', 'image/jpeg')
