import json

import pytest

from todosync.logging import StructuredLogger, configure_logging, get_logger


def _json_lines(out: str) -> list[dict]:
    return [json.loads(line) for line in out.strip().split('\n') if line]


def test_structured_logger_json_format(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_operation('test_operation', param1='value1', param2=42)

    [entry] = _json_lines(capsys.readouterr().out)
    assert entry['message'] == 'Operation: test_operation'
    assert entry['operation'] == 'test_operation'
    assert entry['param1'] == 'value1'
    assert entry['param2'] == 42
    assert entry['level'] == 'INFO'
    assert 'timestamp' in entry


def test_issue_action_dry_run_message(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_issue_action('create', 'a2V5', 12, dry_run=True)

    [entry] = _json_lines(capsys.readouterr().out)
    assert entry['message'] == 'issue create a2V5 #12 [DRY]'
    assert entry['operation'] == 'issue_create'
    assert entry['issue_number'] == 12


def test_plain_text_format(capsys):
    logger = StructuredLogger(name='test', json_logging=False, level='INFO')
    logger.info('hello world')

    out = capsys.readouterr().out
    assert 'INFO hello world' in out


def test_level_filters_debug(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.debug('hidden')
    assert capsys.readouterr().out == ''


def test_timed_operation_logs_performance_and_errors(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    with logger.timed_operation('work', batch=1):
        pass
    with pytest.raises(ValueError):
        with logger.timed_operation('boom'):
            raise ValueError('bad')

    entries = _json_lines(capsys.readouterr().out)
    assert [e['operation'] for e in entries[:2]] == ['work_start', 'work']
    assert 'duration_ms' in entries[1]
    assert entries[-1]['level'] == 'ERROR'
    assert entries[-1]['error'] == 'bad'


def test_configure_logging_replaces_global():
    logger = configure_logging(json_logging=True, level='DEBUG')
    assert get_logger() is logger


def test_stderr_stream_leaves_stdout_clean(capsys):
    logger = StructuredLogger(name='test', json_logging=True, level='WARNING', stream='stderr')
    logger.warning('duplicate annotation key ignored', key='a2V5')

    captured = capsys.readouterr()
    assert captured.out == ''
    [entry] = _json_lines(captured.err)
    assert entry['key'] == 'a2V5'


def test_unknown_stream_is_rejected():
    with pytest.raises(ValueError):
        StructuredLogger(name='test', stream='syslog')
