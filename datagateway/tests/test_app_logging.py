"""Tests for :mod:`datagateway.app_logging`."""

import json
import logging
from io import StringIO
from unittest import TestCase

from datagateway import app_logging


class TestSetupLogger(TestCase):
    """Tests for :func:`app_logging.setup_logger`."""

    def setUp(self):
        self.root = logging.getLogger()
        self.level = self.root.level

    def tearDown(self):
        self.root.setLevel(self.level)

    def test_installs_one_handler(self):
        """Repeated setup changes the level but adds no handlers."""
        handler = app_logging.setup_logger(logging.INFO)
        count = len(self.root.handlers)
        self.assertIs(app_logging.setup_logger('DEBUG'), handler)
        self.assertEqual(len(self.root.handlers), count)
        self.assertEqual(self.root.level, logging.DEBUG)
        self.assertIn(handler, self.root.handlers)

    def test_reinstalls_removed_handler(self):
        """A handler removed from the root logger is replaced."""
        handler = app_logging.setup_logger()
        self.root.removeHandler(handler)
        replacement = app_logging.setup_logger()
        self.assertIsNot(replacement, handler)
        self.assertIn(replacement, self.root.handlers)

    def test_json_records(self):
        """Records are JSON with renamed level and time fields."""
        handler = app_logging.setup_logger()
        stream = StringIO()
        original = handler.setStream(stream)
        try:
            logging.getLogger('datagateway.test').warning('sent %i bytes', 22)
        finally:
            handler.setStream(original)
        record = json.loads(stream.getvalue().splitlines()[-1])
        self.assertEqual(record['message'], 'sent 22 bytes')
        self.assertEqual(record['level'], 'WARNING')
        self.assertEqual(record['name'], 'datagateway.test')
        self.assertIn('timestamp', record)
