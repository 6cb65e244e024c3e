import json
import logging
from unittest.mock import Mock

import pytest

from auraluxe.crosscutting.logging import (
    SecretMasker, StructuredFormatter, CorrelationContext,
    setup_logging, get_logger, log_with_fields,
    log_search_start, log_provider_failure, log_search_complete, log_error,
    request_id_var, user_id_var
)


def make_record(message='Test message', fields=None):
    record = Mock()
    record.levelname = 'INFO'
    record.name = 'test_logger'
    record.getMessage.return_value = message
    record.module = 'test_module'
    record.funcName = 'test_function'
    record.lineno = 42
    record.exc_info = None
    record.fields = fields
    return record


class ListHandler(logging.Handler):
    """Collects formatted records."""

    def __init__(self):
        super().__init__()
        self.setFormatter(StructuredFormatter())
        self.lines = []

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


class TestSecretMasker:
    """Tests for secret masking functionality."""

    def setup_method(self):
        self.masker = SecretMasker()

    def test_mask_token(self):
        masked = self.masker.mask_secrets("API token: abc123def456ghi789")
        assert masked == "API token: abc1**********i789"

    def test_mask_api_key_query_parameter(self):
        text = "GET /2.0/?method=track.search&api_key=0123456789abcdef0123&format=json"
        masked = self.masker.mask_secrets(text)

        assert "0123456789abcdef0123" not in masked
        assert "api_key: 0123************0123" in masked

    def test_mask_youtube_key_config_entry(self):
        masked = self.masker.mask_secrets("youtube_api_key=AIzaSyA1234567890abcdefgh")
        assert masked == "youtube_api_key: AIza*****************efgh"

    def test_short_secret_is_left_alone(self):
        assert self.masker.mask_secrets("token: abc123") == "token: abc123"

    def test_no_secrets_in_text(self):
        text = "Search completed with 20 tracks"
        assert self.masker.mask_secrets(text) == text

    def test_empty_text(self):
        assert self.masker.mask_secrets("") == ""
        assert self.masker.mask_secrets(None) is None

    def test_mask_dict_recurses(self):
        data = {'outer': {'url': 'key=abcdefghijklmnop'}, 'list': ['token=abcdefghijklmnop', 3]}
        masked = self.masker.mask_dict(data)

        assert masked['outer']['url'] == 'key: abcd********mnop'
        assert masked['list'][0] == 'token: abcd********mnop'
        assert masked['list'][1] == 3


class TestStructuredFormatter:
    """Tests for structured logging formatter."""

    def setup_method(self):
        self.formatter = StructuredFormatter()

    def test_format_basic_log(self):
        data = json.loads(self.formatter.format(make_record()))

        assert data['level'] == 'INFO'
        assert data['logger'] == 'test_logger'
        assert data['message'] == 'Test message'
        assert data['line'] == 42
        assert data['ts'].endswith('Z')
        assert 'requestId' not in data

    def test_format_with_correlation(self):
        with CorrelationContext(request_id='req-1', user_id='u1', provider='deezer', stage='search'):
            data = json.loads(self.formatter.format(make_record()))

        assert data['requestId'] == 'req-1'
        assert data['userId'] == 'u1'
        assert data['provider'] == 'deezer'
        assert data['stage'] == 'search'

    def test_format_masks_message(self):
        data = json.loads(self.formatter.format(make_record('API token: secret123456')))
        assert data['message'] == 'API token: secr****3456'

    def test_format_with_fields(self):
        data = json.loads(self.formatter.format(make_record(fields={'query': 'imagine', 'limit': 20})))
        assert data['fields'] == {'query': 'imagine', 'limit': 20}


class TestCorrelationContext:
    """Tests for correlation context restoration."""

    def test_nested_contexts_restore_outer_values(self):
        with CorrelationContext(request_id='outer', user_id='u1'):
            with CorrelationContext(request_id='inner'):
                assert request_id_var.get() == 'inner'
                assert user_id_var.get() == 'u1'
            assert request_id_var.get() == 'outer'
        assert request_id_var.get() is None
        assert user_id_var.get() is None

    def test_context_restored_on_exception(self):
        with pytest.raises(RuntimeError):
            with CorrelationContext(request_id='req'):
                raise RuntimeError("boom")
        assert request_id_var.get() is None


class TestLoggingHelpers:
    """Tests for structured logging helpers."""

    def setup_method(self):
        self.logger = logging.getLogger('auraluxe.tests.helpers')
        self.logger.setLevel(logging.DEBUG)
        self.handler = ListHandler()
        self.logger.addHandler(self.handler)

    def teardown_method(self):
        self.logger.removeHandler(self.handler)

    def test_log_with_fields_respects_level(self):
        self.logger.setLevel(logging.WARNING)
        log_with_fields(self.logger, 'INFO', 'hidden', {'a': 1})
        log_with_fields(self.logger, 'ERROR', 'shown', {'a': 1}, b=2)

        assert [line['message'] for line in self.handler.lines] == ['shown']
        assert self.handler.lines[0]['fields'] == {'a': 1, 'b': 2}

    def test_search_lifecycle(self):
        log_search_start(self.logger, 'req-9', 'imagine', 20, ['deezer', 'itunes'], per_provider=10)
        log_search_complete(self.logger, 'req-9', 20, 25, 130)

        start, complete = self.handler.lines
        assert start['requestId'] == 'req-9'
        assert start['stage'] == 'search_start'
        assert start['fields']['providers'] == ['deezer', 'itunes']
        assert start['fields']['per_provider'] == 10
        assert complete['stage'] == 'search_complete'
        assert complete['fields']['total'] == 25

    def test_provider_failure(self):
        log_provider_failure(self.logger, 'lastfm', 'search', TimeoutError('slow'))

        line = self.handler.lines[0]
        assert line['level'] == 'WARNING'
        assert line['provider'] == 'lastfm'
        assert line['fields']['error_type'] == 'TimeoutError'
        assert line['fields']['operation'] == 'search'

    def test_log_error(self):
        log_error(self.logger, 'Failed', ValueError('bad'), route='/api/music/search')

        line = self.handler.lines[0]
        assert line['level'] == 'ERROR'
        assert line['fields']['error_message'] == 'bad'
        assert line['fields']['route'] == '/api/music/search'


def test_setup_logging_configures_package_logger(tmp_path):
    log_file = tmp_path / 'auraluxe.log'
    logger = setup_logging('DEBUG', str(log_file))
    try:
        assert logger.name == 'auraluxe'
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert all(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers)
        assert get_logger().name == 'auraluxe'
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
