import json

import pytest

from shrinkwrap.settings import AppSettings, get_default_settings, load_settings, save_settings


def test_defaults():
    settings = get_default_settings()
    assert settings.default_target_percentage == 80
    assert settings.chroma_subsampling == 2
    assert not settings.use_mozjpeg
    assert settings.log_file == 'shrinkwrap.log'


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / 'absent.json') == get_default_settings()


def test_round_trip(tmp_path):
    path = tmp_path / 'settings.json'
    settings = AppSettings(default_target_percentage=45, use_mozjpeg=True,
                           suggester_model='vision-large')

    assert save_settings(settings, path)
    assert load_settings(path) == settings


@pytest.mark.parametrize('content', [
    '{not json',
    '[1, 2, 3]',
    '{"default_target_percentage": 0}',
    '{"chroma_subsampling": 7}',
    '{"default_target_percentage": "high"}',
])
def test_unusable_file_gives_defaults(tmp_path, content):
    path = tmp_path / 'settings.json'
    path.write_text(content, encoding='utf-8')

    assert load_settings(path) == get_default_settings()


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'default_target_percentage': 60, 'theme': 'dark'}),
                    encoding='utf-8')

    assert load_settings(path).default_target_percentage == 60


def test_save_to_unwritable_location(tmp_path):
    assert not save_settings(get_default_settings(), tmp_path / 'missing' / 'settings.json')


@pytest.mark.parametrize('kwargs', [
    {'default_target_percentage': 101},
    {'chroma_subsampling': -1},
])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        AppSettings(**kwargs)


def test_api_key_comes_from_environment(monkeypatch):
    settings = AppSettings(suggester_api_key_env='TEST_SHRINKWRAP_KEY')

    monkeypatch.delenv('TEST_SHRINKWRAP_KEY', raising=False)
    assert settings.suggester_api_key is None

    monkeypatch.setenv('TEST_SHRINKWRAP_KEY', 'abc123')
    assert settings.suggester_api_key == 'abc123'
