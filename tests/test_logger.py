import logging

import pytest

from shrinkwrap.logger import close_logger, get_logger, log_separator, setup_file_logging


@pytest.fixture
def log_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    close_logger()


def test_log_file_has_header_and_messages(log_dir):
    path = setup_file_logging('test.log')

    get_logger('engine').info("searching photo.jpg")
    log_separator()
    get_logger().debug("not written at INFO")
    close_logger()

    assert path == log_dir / 'test.log'
    text = path.read_text(encoding='utf-8')
    assert text.startswith('=' * 70)
    assert 'SHRINKWRAP - LOG FILE' in text
    assert 'shrinkwrap.engine: searching photo.jpg' in text
    assert 'not written at INFO' not in text


def test_log_is_overwritten_each_run(log_dir):
    setup_file_logging('run.log')
    get_logger().info("first run")
    close_logger()

    path = setup_file_logging('run.log')
    get_logger().info("second run")
    close_logger()

    text = path.read_text(encoding='utf-8')
    assert 'second run' in text
    assert 'first run' not in text


def test_debug_level(log_dir):
    path = setup_file_logging('debug.log', level=logging.DEBUG)
    get_logger('engine').debug("trial 0")
    close_logger()

    assert 'trial 0' in path.read_text(encoding='utf-8')


def test_close_detaches_handler(log_dir):
    setup_file_logging('test.log')
    close_logger()

    assert not any(isinstance(h, logging.FileHandler) for h in get_logger().handlers)
