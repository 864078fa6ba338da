import numpy as np
from typing import Dict
from dataclasses import dataclass, field

from .errors import InvalidDateError


@dataclass()
class DateUniverse:
    """
    Contiguous span of days backing a business calendar :
        1. Non-lazy fields (built at init):
            - Start and end date : np.datetime64
            - Contiguous days : np.ndarray
        2. Lazy fields (built on demand and cached):
            - Weekday as int (Monday=1, Sunday=7) : np.ndarray
            - Year : np.ndarray
            - Month (1 to 12) : np.ndarray

    All dates are stored as np.datetime64[D]; inputs are expected to be already converted.
    """
    start: np.datetime64
    end: np.datetime64

    days: np.ndarray = field(init=False)
    _cache: Dict[str, np.ndarray] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.start64 = np.datetime64(self.start, "D")
        self.end64 = np.datetime64(self.end, "D")
        if self.end64 < self.start64:
            raise InvalidDateError(f"Universe end {self.end64} is before start {self.start64}.")

        n_days = int((self.end64 - self.start64) / np.timedelta64(1, "D")) + 1
        self.days = self.start64 + np.arange(n_days, dtype="int64").astype("timedelta64[D]")

    def __len__(self) -> int:
        return int(self.days.shape[0])

    def locate(self, d64: np.datetime64) -> int:
        """Return index i such that days[i] == d64. Raises InvalidDateError if outside."""
        i = int((d64 - self.start64) / np.timedelta64(1, "D"))
        if i < 0 or i >= len(self):
            raise InvalidDateError(f"Date {d64} outside universe [{self.start64}, {self.end64}]")
        return i

    @property
    def weekday(self) -> np.ndarray:
        key = "weekday"
        if key not in self._cache:
            days_int = self.days.astype("datetime64[D]").astype("int64")
            wd = ((days_int + 3) % 7 + 1).astype("uint8")
            self._cache[key] = wd
        return self._cache[key]

    @property
    def year(self) -> np.ndarray:
        key = "year"
        if key not in self._cache:
            y = self.days.astype("datetime64[Y]").astype("int64") + 1970
            self._cache[key] = y.astype("int32")
        return self._cache[key]

    @property
    def month(self) -> np.ndarray:
        key = "month"
        if key not in self._cache:
            months = self.days.astype("datetime64[M]")
            years_as_months = self.days.astype("datetime64[Y]").astype("datetime64[M]")
            m = (months - years_as_months).astype("int64") + 1
            self._cache[key] = m.astype("uint8")
        return self._cache[key]

