import math

import numpy


def recorder(recorder_type=None, simulation_count=None):
    if recorder_type is None or recorder_type == "distribution":
        return DistributionRecorder(simulation_count=simulation_count)
    elif recorder_type == "bags":
        return BagRecorder(simulation_count=simulation_count)
    elif recorder_type == "trial":
        return TrialRecorder()
    else:
        raise ValueError(f"Unknown recorder type: {recorder_type}")


class Recorder:
    def __init__(self, simulation_count=None):
        self.__simulation_count = simulation_count
        self.__return_record = None
        self.__rows = []
        self.__i = 0

    def __call__(self, **kwargs):
        tmp_record = numpy.asarray(self.filter_function(**kwargs), dtype=float)
        if self.__simulation_count is None:
            self.__rows.append(tmp_record.copy())
        else:
            if self.__return_record is None:
                self.__return_record = numpy.empty((self.__simulation_count,) + tmp_record.shape)
            if self.__i >= self.__simulation_count:
                raise IndexError(f"Recorder is full ({self.__simulation_count} rows)")
            self.__return_record[self.__i] = tmp_record
        self.__i += 1

    def filter_function(self, **kwargs):
        raise NotImplementedError

    def __len__(self):
        return self.__i

    @property
    def record(self):
        if self.__simulation_count is None:
            if not self.__rows:
                return None
            return numpy.stack(self.__rows)
        if self.__return_record is None:
            return None
        return self.__return_record[:self.__i]


class DistributionRecorder(Recorder):
    """Keeps the distribution at every step of a propagation.

    Row ``k`` of :attr:`record` is the distribution after ``k`` steps.
    """

    def filter_function(self, **kwargs):
        return kwargs["distribution"]

    def expectations(self, values):
        return self.record @ numpy.asarray(values, dtype=float)


class BagRecorder(Recorder):
    """Keeps ``[sum(bag_a), sum(bag_b)]`` after every swap of a trial."""

    def filter_function(self, **kwargs):
        return [sum(kwargs["bag_a"]), sum(kwargs["bag_b"])]

    @property
    def totals(self):
        return self.record.sum(axis=1)


class TrialRecorder:
    """Running count, sum and sum of squares of per-trial results."""

    def __init__(self, count=0, total=0.0, total_squares=0.0):
        self.__count = count
        self.__total = total
        self.__total_squares = total_squares

    def __call__(self, value=None, **kwargs):
        if value is None:
            value = sum(kwargs["bag_a"])
        self.__count += 1
        self.__total += value
        self.__total_squares += value * value

    def merge(self, other):
        return TrialRecorder(
            count=self.__count + other.count,
            total=self.__total + other.total,
            total_squares=self.__total_squares + other.total_squares,
        )

    def __add__(self, other):
        return self.merge(other)

    def __len__(self):
        return self.__count

    @property
    def count(self) -> int:
        return self.__count

    @property
    def total(self) -> float:
        return self.__total

    @property
    def total_squares(self) -> float:
        return self.__total_squares

    @property
    def mean(self) -> float:
        if self.__count == 0:
            raise ZeroDivisionError("No trials recorded")
        return self.__total / self.__count

    @property
    def variance(self) -> float:
        # unbiased sample variance
        if self.__count < 2:
            return 0.0
        mean = self.mean
        var = (self.__total_squares - self.__count * mean * mean) / (self.__count - 1)
        return max(var, 0.0)

    @property
    def standard_error(self) -> float:
        if self.__count == 0:
            raise ZeroDivisionError("No trials recorded")
        return math.sqrt(self.variance / self.__count)

    def keys(self):
        return ["count", "total", "total_squares", "mean", "variance", "standard_error"]

    def __getitem__(self, key):
        if key not in self.keys():
            raise ValueError(f"Unknown key: {key}")
        return getattr(self, key)
