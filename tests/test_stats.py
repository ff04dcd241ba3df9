"""Tests for the output statistics."""

import numpy as np

from discord_entropy.conditioning import derive_seed, expand
from discord_entropy.stats import (
    chi_squared_uniformity,
    compression_ratio,
    full_report,
    min_entropy,
    serial_correlation,
    shannon_entropy,
)


class TestShannon:
    def test_uniform(self):
        data = np.tile(np.arange(256, dtype=np.uint8), 10)
        h = shannon_entropy(data)
        assert 7.9 < h <= 8.0

    def test_constant(self):
        assert shannon_entropy(bytes(100)) < 0.01

    def test_empty(self):
        assert shannon_entropy(b"") == 0.0


class TestMinEntropy:
    def test_uniform(self):
        data = np.tile(np.arange(256, dtype=np.uint8), 10)
        assert min_entropy(data) > 7.9

    def test_biased(self):
        data = np.array([0] * 900 + [1] * 100, dtype=np.uint8)
        assert min_entropy(data) < 1.0


class TestCompression:
    def test_chain_output_incompressible(self):
        r = compression_ratio(expand(derive_seed(b"compress"), 10000))
        assert r > 0.95

    def test_constant_compressible(self):
        assert compression_ratio(bytes(10000)) < 0.05


class TestUniformity:
    def test_constant_not_uniform(self):
        assert chi_squared_uniformity(bytes(5000))["uniform"] is False

    def test_serial_correlation_constant(self):
        assert serial_correlation(bytes(100)) == 0.0


class TestFullReport:
    def test_chain_output_grades_well(self):
        r = full_report(expand(derive_seed(b"hello"), 20000), "hello")
        assert r["grade"] in "AB"
        assert r["samples"] == 20000
        assert r["shannon_entropy"] > 7.9

    def test_constant_grades_badly(self):
        r = full_report(bytes(5000))
        assert r["grade"] in "DF"
