"""Pass geometry and dataset determinism.

Verifies that:
  1. Per-pass group counts follow ceil(count / (L·I)) clamped to [1, groups_max].
  2. The pass count never exceeds ceil(log_{L·I}(n)).
  3. Repeated runs with the same inputs give the same passes and value.
  4. The synthetic dataset depends only on (size, seed).
"""

import random

import pytest
import torch

from maxreduce import MaxReducer, ReductionConfig
from maxreduce.config import PLANTED_VALUE, VALUE_HIGH, VALUE_LOW
from maxreduce.dataset import generate_dataset
from maxreduce.engine import group_count_for, max_pass_bound, plan_passes
from utils import random_data


# =====================================================================
#  Geometry
# =====================================================================


class TestGeometry:
    @pytest.mark.parametrize(
        "count, expected",
        [
            (1, 1),
            (2, 1),
            (2048, 1),
            (2049, 2),
            (1_000_000, 489),
            (16_777_216, 1024),   # 8192 before the cap
        ],
    )
    def test_group_count_default_geometry(self, count, expected):
        assert group_count_for(count, 256, 8, 1024) == expected

    def test_large_dataset_plan(self):
        steps = plan_passes(16_777_216, ReductionConfig())
        assert steps == [(16_777_216, 1024), (1024, 1)]

    def test_million_plan(self):
        assert plan_passes(1_000_000, ReductionConfig()) == [(1_000_000, 489), (489, 1)]

    def test_trivial_plans(self):
        cfg = ReductionConfig()
        assert plan_passes(1, cfg) == []
        assert plan_passes(2, cfg) == [(2, 1)]

    def test_each_pass_shrinks(self):
        cfg = ReductionConfig(local_size=4, groups_max=1024, items_per_thread=2)
        steps = plan_passes(1000, cfg)
        assert [groups for _, groups in steps] == [125, 16, 2, 1]
        for count, groups in steps:
            assert groups < count

    @pytest.mark.parametrize(
        "cfg",
        [
            ReductionConfig(),
            ReductionConfig(local_size=4, items_per_thread=2),
            ReductionConfig(local_size=2, groups_max=3, items_per_thread=1),
            ReductionConfig(local_size=64, groups_max=7, items_per_thread=3),
        ],
        ids=["default", "tiny", "capped", "odd"],
    )
    def test_pass_count_bound(self, cfg):
        rng = random.Random(0)
        sizes = [1, 2, 3, 255, 2048, 2049, 65_536, 16_777_216]
        sizes += [rng.randrange(2, 10_000_000) for _ in range(50)]
        for n in sizes:
            assert len(plan_passes(n, cfg)) <= max_pass_bound(n, cfg), n

    def test_bound_values(self):
        cfg = ReductionConfig()
        assert max_pass_bound(1, cfg) == 0
        assert max_pass_bound(2048, cfg) == 1
        assert max_pass_bound(2049, cfg) == 2
        assert max_pass_bound(2048 ** 2, cfg) == 2


# =====================================================================
#  Run-to-run determinism
# =====================================================================


class TestRepeatability:
    def test_same_inputs_same_passes(self, backend):
        data = random_data(3_000_000)
        cfg = ReductionConfig(local_size=64, groups_max=512, items_per_thread=8)
        reducer = MaxReducer(cfg, backend=backend)
        first = reducer.reduce(data)
        second = reducer.reduce(data)
        assert first.pass_count == second.pass_count == len(plan_passes(len(data), cfg))
        assert first.value == second.value

    def test_profiler_reset_between_runs(self, backend):
        reducer = MaxReducer(backend=backend)
        reducer.reduce(random_data(100_000))
        result = reducer.reduce(random_data(10))
        assert result.pass_count == 1


# =====================================================================
#  Dataset
# =====================================================================


class TestDataset:
    def test_same_seed_bitwise_identical(self):
        assert torch.equal(generate_dataset(10_000, seed=7), generate_dataset(10_000, seed=7))

    def test_seed_matters(self):
        assert not torch.equal(generate_dataset(10_000, seed=1), generate_dataset(10_000, seed=2))

    def test_global_rng_isolation(self):
        clean = generate_dataset(1000, seed=3)
        torch.rand(5000)
        random.random()
        assert torch.equal(clean, generate_dataset(1000, seed=3))

    def test_planted_at_midpoint(self):
        data = generate_dataset(1001)
        assert data[500].item() == PLANTED_VALUE
        assert data.argmax().item() == 500

    def test_value_range(self):
        data = generate_dataset(50_000, planted=None)
        assert data.dtype == torch.float32
        assert data.min().item() >= VALUE_LOW
        assert data.max().item() < VALUE_HIGH

    def test_empty(self):
        assert generate_dataset(0).numel() == 0

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError):
            generate_dataset(-1)
