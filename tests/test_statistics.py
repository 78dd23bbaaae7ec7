import math
import random

import pytest
import torch

from iirstats.statistics import Statistics
from iirstats.summation import SummationType


@pytest.fixture
def gauss_stream():
    rng = random.Random(1234)
    return [rng.gauss(5.0, 2.0) for _ in range(500)]


def test_empty_engine():
    stats = Statistics()
    assert stats.n == 0
    assert stats.weight == 0.0
    assert stats.mean == 0.0
    assert stats.min == math.inf
    assert stats.max == -math.inf
    assert stats.variance == 0.0
    assert stats.pop_variance == 0.0
    assert stats.std_dev == 0.0
    assert stats.sample_weight == 0.0
    assert stats.describe() == "unavail"
    assert str(stats) == "unavail"


def test_describe_format():
    stats = Statistics()
    stats.add(1.0)
    assert stats.describe() == "ave=1.0 min=1.0 max=1.0"

    # Second sample: delta = 2, weight = 2, mean = 2, m2 = 2 * (3 - 2) = 2
    # weight2 = 2, sample weight = 2 - 2 / 2 = 1, variance = 2
    stats.add(3.0)
    assert stats.describe() == "ave=2.0 std=1.4142135623730951 min=1.0 max=3.0"


def test_integer_samples():
    stats = Statistics(sample_dtype="int32")
    assert stats.min == torch.iinfo(torch.int32).max
    assert stats.max == torch.iinfo(torch.int32).min

    stats.add(1)
    stats.add(3)
    assert stats.min == 1
    assert stats.max == 3
    assert isinstance(stats.min, int)
    assert stats.describe() == "ave=2.0 std=1.4142135623730951 min=1 max=3"


@pytest.mark.parametrize("summation", list(SummationType))
@pytest.mark.parametrize("alpha", [0.5, 0.9, 1.0, 1.5])
@pytest.mark.parametrize("value", [0.1, -3.25, 1e6])
def test_constant_stream(summation, alpha, value):
    stats = Statistics(alpha=alpha, summation=summation)
    for _ in range(100):
        stats.add(value)

    assert stats.n == 100
    assert stats.mean == pytest.approx(value)
    assert stats.variance == pytest.approx(0.0, abs=1e-12)
    assert stats.pop_variance == pytest.approx(0.0, abs=1e-12)
    assert stats.min == value
    assert stats.max == value


def test_welford_equivalence(gauss_stream):
    stats = Statistics(alpha=1.0)
    stats.extend(gauss_stream)

    x = torch.tensor(gauss_stream, dtype=torch.float64)
    n = x.numel()
    mean = x.sum() / n
    var = ((x - mean) ** 2).sum() / (n - 1)
    pop_var = ((x - mean) ** 2).sum() / n

    assert stats.weight == float(n)
    assert stats.sample_weight == float(n - 1)
    assert stats.mean == pytest.approx(mean.item(), rel=1e-12)
    assert stats.variance == pytest.approx(var.item(), rel=1e-10)
    assert stats.pop_variance == pytest.approx(pop_var.item(), rel=1e-10)
    assert stats.std_dev == pytest.approx(math.sqrt(var.item()), rel=1e-10)
    assert stats.min == min(gauss_stream)
    assert stats.max == max(gauss_stream)


def test_weight_closed_form_example():
    stats = Statistics(alpha=0.5)
    for v in [4.0, 2.0, 7.0]:
        stats.add(v)
    # 1 + 0.5 + 0.25
    assert stats.weight == 1.75
    # 1 + 0.25 + 0.0625
    assert stats.weight2 == 1.3125


@pytest.mark.parametrize("alpha", [0.5, 0.9, 0.999])
@pytest.mark.parametrize("k", [1, 5, 50])
def test_weight_closed_form(alpha, k):
    stats = Statistics(alpha=alpha)
    for i in range(k):
        stats.add(float(i))

    expected = sum(alpha ** (k - i) for i in range(1, k + 1))
    assert stats.weight == pytest.approx(expected, rel=1e-12)

    # constant alpha: sample weight == (weight - 1) * 2 / (1 + alpha)
    if k > 1:
        assert stats.sample_weight == pytest.approx(
            (stats.weight - 1.0) * 2.0 / (1.0 + alpha), rel=1e-12
        )


def test_nan_sample():
    stats = Statistics()
    stats.add(1.0)
    stats.add(2.0)
    stats.add(math.nan)

    assert stats.n == 3
    assert stats.min == 1.0
    assert stats.max == 2.0
    assert math.isnan(stats.mean)
    assert math.isnan(stats.variance)
    assert stats.describe().startswith("ave=nan std=nan")
    assert stats.describe().endswith("min=1.0 max=2.0")

    stats.add(10.0)
    assert stats.max == 10.0
    assert math.isnan(stats.mean)


def test_leading_nan_does_not_set_extrema():
    stats = Statistics()
    stats.add(math.nan)
    assert stats.min == math.inf
    assert stats.max == -math.inf

    stats.add(5.0)
    assert stats.min == 5.0
    assert stats.max == 5.0


@pytest.mark.parametrize("summation", list(SummationType))
def test_reset_reproduces_fresh_instance(gauss_stream, summation):
    stats = Statistics(alpha=0.9, summation=summation)
    stats.extend(gauss_stream)
    stats.reset()

    assert stats.n == 0
    assert stats.describe() == "unavail"
    assert stats.alpha == 0.9
    assert stats.min == math.inf
    assert stats.max == -math.inf

    fresh = Statistics(alpha=0.9, summation=summation)
    stats.extend(gauss_stream[:100])
    fresh.extend(gauss_stream[:100])
    assert stats.mean == fresh.mean
    assert stats.variance == fresh.variance
    assert stats.pop_variance == fresh.pop_variance
    assert stats.weight == fresh.weight
    assert stats.describe() == fresh.describe()


def test_set_alpha_does_not_reweight_history():
    stats = Statistics(alpha=1.0)
    stats.add(1.0)
    stats.add(2.0)
    stats.set_alpha(0.5)
    assert stats.weight == 2.0
    assert stats.alpha == 0.5

    stats.add(3.0)
    # 1 + 0.5 * 2
    assert stats.weight == 2.0
    # 1 + 0.25 * 2
    assert stats.weight2 == 1.5


def test_alpha_above_one_is_not_clamped():
    # Temporary reliability boost; stability downstream is the caller's concern.
    stats = Statistics(alpha=0.9)
    for v in [1.0, 2.0, 3.0]:
        stats.add(v)
    w = stats.weight
    stats.set_alpha(2.0)
    stats.add(10.0)

    assert stats.alpha == 2.0
    assert stats.weight == pytest.approx(1.0 + 2.0 * w)
    assert math.isfinite(stats.variance)
    assert stats.variance > 0.0


def test_from_values_tensor():
    stats = Statistics.from_values(torch.tensor([[1.0, 2.0], [3.0, 4.0]]))
    assert stats.n == 4
    assert stats.mean == pytest.approx(2.5)
    assert stats.variance == pytest.approx(5.0 / 3.0)
    assert stats.pop_variance == pytest.approx(1.25)
    assert stats.pop_std_dev == pytest.approx(math.sqrt(1.25))
    assert stats.min == 1.0
    assert stats.max == 4.0


def test_float32_accumulation(gauss_stream):
    stats32 = Statistics(alpha=0.99, accum_dtype="float32")
    stats64 = Statistics(alpha=0.99)
    stats32.extend(gauss_stream)
    stats64.extend(gauss_stream)

    # every stored quantity is representable in float32
    for v in (stats32.mean, stats32.weight, stats32.variance):
        assert torch.tensor(v, dtype=torch.float32).item() == v

    assert stats32.mean == pytest.approx(stats64.mean, rel=1e-5)
    assert stats32.variance == pytest.approx(stats64.variance, rel=1e-3)
    assert stats32.weight == pytest.approx(stats64.weight, rel=1e-4)


def test_float32_samples_are_rounded():
    stats = Statistics(sample_dtype="float32")
    stats.add(0.1)
    f32 = torch.tensor(0.1, dtype=torch.float32).item()
    assert stats.min == f32
    assert stats.mean == f32


def test_policies_agree_on_ordinary_streams(gauss_stream):
    kahan = Statistics(alpha=0.999, summation=SummationType.kahan)
    neumaier = Statistics(alpha=0.999, summation=SummationType.neumaier)
    kahan.extend(gauss_stream)
    neumaier.extend(gauss_stream)

    assert kahan.mean == pytest.approx(neumaier.mean, rel=1e-13)
    assert kahan.variance == pytest.approx(neumaier.variance, rel=1e-12)


def test_integer_accumulation_rejected():
    with pytest.raises(ValueError):
        Statistics(accum_dtype="int64")
    with pytest.raises(ValueError):
        Statistics(sample_dtype="not_a_dtype")


@pytest.mark.parametrize("alpha, accum_dtype", [(1e-17, "float64"), (1e-8, "float32")])
def test_tiny_alpha_zero_divisor(alpha, accum_dtype):
    # weight and weight2 both round to 1, so the sample weight is exactly 0
    stats = Statistics(alpha=alpha, accum_dtype=accum_dtype)
    stats.add(1.0)
    stats.add(2.0)
    assert stats.weight == 1.0
    assert stats.sample_weight == 0.0
    # m2 is 0 as well, and 0 / 0 is NaN
    assert math.isnan(stats.variance)
    assert math.isnan(stats.std_dev)
    assert stats.pop_variance == 0.0
    assert stats.describe() == "ave=2.0 std=nan min=1.0 max=2.0"


def test_std_dev_of_negative_rounding_residue():
    stats = Statistics.from_values([1.0, 2.0])
    stats._m2 = -1e-18
    assert stats.variance < 0.0
    assert stats.std_dev == 0.0
    assert stats.pop_std_dev == 0.0

    stats._m2 = math.nan
    assert math.isnan(stats.std_dev)
