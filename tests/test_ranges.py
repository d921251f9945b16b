"""Tests for range metadata, grid structure analysis and small helpers."""

import numpy as np
import pytest

from cd3field.fields.errors import BadStructure
from cd3field.fields.ranges import RangeInfo, analyse_columns
from cd3field.fields.utility import nearly_equal, run_length, soft_contains, tokenize, truncate_name


class TestRangeInfo:
    """Tests for the RangeInfo record."""

    def test_spanning(self):
        r = RangeInfo.spanning(-1.0, 1.0, 5)
        assert r == RangeInfo(-1.0, 1.0, 0.5, 5, True)
        np.testing.assert_allclose(r.coords(), [-1.0, -0.5, 0.0, 0.5, 1.0])

    def test_single_is_inactive(self):
        r = RangeInfo.single(2.5)
        assert not r.is_active
        assert r.count == 1
        np.testing.assert_array_equal(r.coords(), [2.5])

    def test_validate_passes_through(self):
        r = RangeInfo(0.0, 1.0, 0.5, 3, True)
        assert r.validate(0) is r

    @pytest.mark.parametrize("bad", [
        RangeInfo(1.0, 1.0, 0.5, 3, True),
        RangeInfo(2.0, 1.0, 0.5, 3, True),
        RangeInfo(0.0, 1.0, 0.0, 3, True),
        RangeInfo(0.0, 1.0, -0.5, 3, True),
        RangeInfo(0.0, 0.0, 0.0, 0, False),
    ])
    def test_validate_rejects(self, bad):
        with pytest.raises(BadStructure) as info:
            bad.validate(1, path='f.bin')
        assert info.value.axis == 1
        assert info.value.path == 'f.bin'


class TestAnalyseColumns:
    """Recovering the grid shape from coordinate columns."""

    def test_full_3d(self):
        xs, ys, zs = np.linspace(0, 1, 3), np.linspace(-2, 2, 5), np.linspace(10, 13, 4)
        zz, yy, xx = np.meshgrid(zs, ys, xs, indexing='ij')
        ranges = analyse_columns([xx.ravel(), yy.ravel(), zz.ravel()])

        assert [r.count for r in ranges] == [3, 5, 4]
        assert all(r.active for r in ranges)
        assert ranges[1].min == -2.0 and ranges[1].max == 2.0
        assert ranges[0].step == pytest.approx(0.5)
        assert ranges[2].step == pytest.approx(1.0)

    def test_inactive_middle_axis(self):
        xs, zs = np.linspace(0, 2, 5), np.linspace(0, 4, 3)
        zz, xx = np.meshgrid(zs, xs, indexing='ij')
        ranges = analyse_columns([xx.ravel(), np.zeros(xx.size), zz.ravel()])

        assert [r.count for r in ranges] == [5, 1, 3]
        assert [r.active for r in ranges] == [True, False, True]
        assert ranges[1].step == 0.0


class TestHelpers:
    """Tolerant comparisons and tokenizing."""

    @pytest.mark.parametrize("a,b,expected", [
        (1.0, 1.0, True),
        (0.0, 0.0, True),
        (1.0, 1.0 + 1e-9, True),
        (1.0, 1.001, False),
        (0.0, 1e-12, False),
        (-2.0, -2.0000001, True),
    ])
    def test_nearly_equal(self, a, b, expected):
        assert nearly_equal(a, b) is expected

    def test_soft_contains_inside(self):
        assert soft_contains([0, 0, 0], [1, 1, 1], [0.2, 0.2, 0.2], [0.8, 0.8, 0.8])

    def test_soft_contains_tolerates_tiny_overhang(self):
        # Overhang below tol*|c| is accepted
        assert soft_contains([0, 0, 0], [100, 100, 100], [0, 0, 0], [100.00001, 100, 100])

    def test_soft_contains_rejects_overhang(self):
        assert not soft_contains([0, 0, 0], [1, 1, 1], [0.5, 0.5, 0.5], [1.1, 0.9, 0.9])
        assert not soft_contains([0, 0, 0], [1, 1, 1], [-0.1, 0.5, 0.5], [0.9, 0.9, 0.9])

    def test_soft_contains_absolute_near_zero(self):
        # Near zero the slack is tol itself
        assert soft_contains([0, 0, 0], [1, 1, 1], [-5e-7, 0, 0], [1, 1, 1])
        assert not soft_contains([0, 0, 0], [1, 1, 1], [-5e-6, 0, 0], [1, 1, 1])

    @pytest.mark.parametrize("line,tokens", [
        ("field a.bin", ["field", "a.bin"]),
        ("  cfield\tb.bin  \n", ["cfield", "b.bin"]),
        ("end, b.bin", ["end", "b.bin"]),
        ("\n", []),
    ])
    def test_tokenize(self, line, tokens):
        assert tokenize(line) == tokens

    def test_truncate_name(self):
        assert truncate_name('x' * 100) == 'x' * 63
        assert truncate_name(None) == ''
        assert truncate_name('short') == 'short'
        # Limit is in bytes, partial characters are dropped
        assert truncate_name('\u00e9' * 40) == '\u00e9' * 31
        assert truncate_name('a' + '\u20ac' * 30, nbyte=8) == 'a\u20ac\u20ac'

    def test_run_length(self):
        assert run_length(np.array([1.0, 1.0, 1.0, 2.0, 1.0])) == 3
        assert run_length(np.array([5.0, 5.0])) == 2
        assert run_length(np.array([])) == 0

    def test_run_length_with_tolerance(self):
        values = np.array([0.1, 0.1 + 1e-14, 0.1, 0.2])
        assert run_length(values) == 1
        assert run_length(values, rtol=1e-9, atol=1e-12) == 3
