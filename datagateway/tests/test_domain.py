"""Tests for :mod:`datagateway.domain`."""

import random
import string
from datetime import datetime, timedelta
from unittest import TestCase

from pytz import UTC

from datagateway import domain


def random_segment(alphabet: str = string.ascii_letters + string.digits + '_.',
                   length: int = 12) -> str:
    return ''.join(random.choice(alphabet) for _ in range(length))


class TestParseFilePath(TestCase):
    """Tests for :func:`domain.parse_file_path`."""

    def test_valid_path(self):
        """A well-formed path is decomposed into its parts."""
        f = domain.parse_file_path(
            'sage-job/imagesampler-top/000048B02D15BC7C/'
            '1638576647406523064-sample.jpg'
        )
        self.assertEqual(f.job_id, 'sage-job')
        self.assertEqual(f.task_id, 'imagesampler-top')
        self.assertEqual(f.node_id, '000048B02D15BC7C')
        self.assertEqual(f.filename, '1638576647406523064-sample.jpg')
        self.assertEqual(
            f.timestamp,
            datetime(2021, 12, 4, 0, 10, 47, 406523, tzinfo=UTC)
        )

    def test_filename_with_dashes(self):
        """Only the first dash separates the timestamp from the name."""
        f = domain.parse_file_path('j/t/n/1000-my-file-name.tar.gz')
        self.assertEqual(f.filename, '1000-my-file-name.tar.gz')
        self.assertEqual(f.timestamp, domain.EPOCH + timedelta(microseconds=1))

    def test_leading_dash_is_the_separator(self):
        """The first dash ends the timestamp, so it cannot be negative."""
        for filename in ['-1000000000-x', '-abc', '-']:
            with self.assertRaises(domain.InvalidTimestamp, msg=filename) \
                    as ctx:
                domain.parse_file_path(f'j/t/n/{filename}')
            self.assertIn('failed to extract timestamp from filename',
                          str(ctx.exception))

    def test_explicit_plus_sign(self):
        f = domain.parse_file_path('j/t/n/+1000000000-x')
        self.assertEqual(f.timestamp, domain.EPOCH + timedelta(seconds=1))

    def test_int64_bounds(self):
        """The full signed 64-bit range is accepted, and nothing beyond."""
        domain.parse_file_path(f'j/t/n/{domain.INT64_MAX}-x')
        self.assertEqual(
            domain.parse_nanosecond_timestamp(str(domain.INT64_MIN)),
            domain.from_nanoseconds(domain.INT64_MIN)
        )
        with self.assertRaises(domain.InvalidTimestamp):
            domain.parse_file_path(f'j/t/n/{domain.INT64_MAX + 1}-x')
        with self.assertRaises(domain.InvalidTimestamp):
            domain.parse_nanosecond_timestamp(str(domain.INT64_MIN - 1))

    def test_wrong_number_of_segments(self):
        """Anything but four segments is an invalid path."""
        for path in ['', 'j', 'j/t', 'j/t/n', 'j/t/n/1-x/y', 'a/j/t/n/1-x',
                     '/j/t/n/1-x']:
            with self.assertRaises(domain.InvalidPath, msg=path):
                domain.parse_file_path(path)

    def test_empty_segments(self):
        """Every segment must be nonempty."""
        cases = {
            '/t/n/1-x': 'job must be nonempty',
            'j//n/1-x': 'task must be nonempty',
            'j/t//1-x': 'node must be nonempty',
            'j/t/n/': 'filename must be nonempty',
        }
        for path, message in cases.items():
            with self.assertRaises(domain.EmptySegment) as ctx:
                domain.parse_file_path(path)
            self.assertEqual(str(ctx.exception), message)

    def test_missing_separator(self):
        """The filename must have a dash after the timestamp."""
        with self.assertRaises(domain.MissingTimestampSeparator) as ctx:
            domain.parse_file_path('j/t/n/1638576647406523064.jpg')
        self.assertIn('failed to extract timestamp from filename',
                      str(ctx.exception))

    def test_invalid_timestamps(self):
        """The timestamp must be a plain base-10 integer."""
        for prefix in ['', 'abc', '12a', '1.5', ' 12', '1_000', '--1', '0x10',
                       '+', '-', '١٢٣']:
            with self.assertRaises(domain.InvalidTimestamp, msg=prefix):
                domain.parse_file_path(f'j/t/n/{prefix}-x')

    def test_errors_are_value_errors(self):
        """All parse errors share a base class."""
        for path in ['j/t', 'j/t/n/', 'j/t/n/x', 'j/t/n/x-y']:
            with self.assertRaises(domain.InvalidFileID):
                domain.parse_file_path(path)
            with self.assertRaises(ValueError):
                domain.parse_file_path(path)

    def test_random_valid_paths(self):
        """Every well-formed path round-trips through the parser."""
        for _ in range(1000):
            job, task, node = (random_segment() for _ in range(3))
            name = random_segment(string.ascii_letters + '-.', 8)
            nsec = 1000 * random.randint(0, domain.INT64_MAX // 1000)
            filename = f'{nsec}-{name}'
            f = domain.parse_file_path(f'{job}/{task}/{node}/{filename}')
            self.assertEqual(
                f,
                domain.StorageFile(job, task, node, filename,
                                   domain.from_nanoseconds(nsec))
            )
            self.assertEqual(domain.to_nanoseconds(f.timestamp), nsec)


class TestTimestamps(TestCase):
    """Tests for nanosecond timestamp conversion."""

    def test_round_trip(self):
        """Datetimes at microsecond precision survive conversion."""
        now = datetime.now(UTC)
        self.assertEqual(domain.from_nanoseconds(domain.to_nanoseconds(now)),
                         now)

    def test_sub_microsecond_precision_truncated(self):
        """Nanoseconds beyond microsecond precision are dropped."""
        self.assertEqual(domain.from_nanoseconds(1999),
                         domain.EPOCH + timedelta(microseconds=1))


class TestAuthorizerConfig(TestCase):
    """Tests for :class:`domain.AuthorizerConfig`."""

    def test_create_normalizes_nodes(self):
        """Node IDs are lowercased and the table is read-only."""
        policy = domain.NodePolicy('ABCDEF', restricted=False)
        config = domain.AuthorizerConfig.create(nodes={'ABCDEF': policy})
        self.assertEqual(dict(config.nodes), {'abcdef': policy})
        with self.assertRaises(TypeError):
            config.nodes['other'] = policy   # type: ignore

    def test_create_drops_empty_substrings(self):
        """An empty substring would restrict every task."""
        config = domain.AuthorizerConfig.create(
            restricted_task_substrings=['', 'audiosampler', '']
        )
        self.assertEqual(config.restricted_task_substrings, ('audiosampler',))

    def test_with_nodes(self):
        """Replacing the nodes keeps the rest of the snapshot."""
        credential = domain.Credential('user', 'secret')
        config = domain.AuthorizerConfig.create(
            credentials=[credential],
            nodes={'a': domain.NodePolicy('a')},
            restricted_task_substrings=['x']
        )
        updated = config.with_nodes({'B': domain.NodePolicy('b')})
        self.assertEqual(updated.credentials, (credential,))
        self.assertEqual(updated.restricted_task_substrings, ('x',))
        self.assertEqual(list(updated.nodes), ['b'])
        self.assertEqual(list(config.nodes), ['a'])

    def test_credential_repr_hides_password(self):
        """Passwords do not end up in logs."""
        self.assertNotIn('secret', repr(domain.Credential('user', 'secret')))

    def test_unknown_node_defaults(self):
        """A bare node policy is restricted and never commissioned."""
        policy = domain.NodePolicy('abc')
        self.assertTrue(policy.restricted)
        self.assertIsNone(policy.commission_date)
