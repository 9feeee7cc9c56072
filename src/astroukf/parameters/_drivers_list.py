"""Ordered collections of parameter drivers and merged columns.

Several physical drivers may stand for the same estimated scalar (for
example the same ``"J2"`` coefficient exposed by two force models).  A
:class:`ParameterDriversList` merges same-named drivers into one
:class:`DelegatingDriver` column that owns the list of physical sinks and
writes every change back to all of them.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError
from astroukf.parameters._driver import ParameterDriver


class DelegatingDriver:
    """One estimated column backed by one or more physical drivers.

    Reads come from the first sink; writes go to every sink, each of
    which applies its own bounds.

    Args:
        driver: First physical driver of the column.
    """

    __slots__ = ("_sinks",)

    def __init__(self, driver: ParameterDriver) -> None:
        self._sinks: list[ParameterDriver] = [driver]

    def add_sink(self, driver: ParameterDriver) -> None:
        """Attach another physical driver and align it with the column.

        The new sink takes the column's current value, and shares its
        reference date when it has none of its own.

        Raises:
            ConfigurationError: If the name differs, or the selection
                state conflicts with the column's.
        """
        if driver.name != self.name:
            raise ConfigurationError(f"cannot merge driver {driver.name!r} into column {self.name!r}")
        if any(sink is driver for sink in self._sinks):
            return
        if driver.selected != self.selected:
            raise ConfigurationError(
                f"conflicting selection for parameter {self.name!r}: "
                f"column selected={self.selected}, new driver selected={driver.selected}"
            )
        driver.value = self.value
        if driver.reference_date is None:
            driver.reference_date = self.reference_date
        self._sinks.append(driver)

    @property
    def raw_drivers(self) -> list[ParameterDriver]:
        """Physical drivers written by this column."""
        return list(self._sinks)

    @property
    def name(self) -> str:
        return self._sinks[0].name

    @property
    def scale(self) -> float:
        return self._sinks[0].scale

    @property
    def reference_value(self) -> float:
        return self._sinks[0].reference_value

    @reference_value.setter
    def reference_value(self, value: float) -> None:
        for sink in self._sinks:
            sink.reference_value = value

    @property
    def min_value(self) -> float:
        return self._sinks[0].min_value

    @property
    def max_value(self) -> float:
        return self._sinks[0].max_value

    @property
    def value(self) -> float:
        return self._sinks[0].value

    @value.setter
    def value(self, value: float) -> None:
        for sink in self._sinks:
            sink.value = value

    @property
    def normalized_value(self) -> float:
        return self._sinks[0].normalized_value

    @normalized_value.setter
    def normalized_value(self, normalized: float) -> None:
        for sink in self._sinks:
            sink.normalized_value = normalized

    @property
    def reference_date(self) -> Epoch | None:
        return self._sinks[0].reference_date

    @reference_date.setter
    def reference_date(self, date: Epoch | None) -> None:
        for sink in self._sinks:
            sink.reference_date = date

    @property
    def selected(self) -> bool:
        return self._sinks[0].selected

    @selected.setter
    def selected(self, selected: bool) -> None:
        for sink in self._sinks:
            sink.selected = selected

    def __repr__(self) -> str:
        return f"DelegatingDriver({self.name!r}, value={self.value!r}, sinks={len(self._sinks)})"


class ParameterDriversList:
    """Insertion-ordered collection of parameter columns.

    Adding a driver whose name is already present merges it into the
    existing column.  Lookup by name is a dictionary access.

    Args:
        drivers: Optional initial drivers, added in order.

    Examples:
        ```python
        from astroukf.parameters import ParameterDriver, ParameterDriversList
        drivers = ParameterDriversList()
        drivers.add(ParameterDriver("J2", 1.08e-3, 1e-6))
        drivers.add(ParameterDriver("J2", 1.08e-3, 1e-6))   # merged
        len(drivers)    # 1
        ```
    """

    def __init__(self, drivers=()) -> None:
        self._columns: dict[str, DelegatingDriver] = {}
        for driver in drivers:
            self.add(driver)

    def add(self, driver: ParameterDriver | DelegatingDriver) -> None:
        """Add a driver, merging it with a same-named column if present.

        Raises:
            ConfigurationError: If a same-named column has a different
                selection state.
        """
        sinks = driver.raw_drivers if isinstance(driver, DelegatingDriver) else [driver]
        for sink in sinks:
            column = self._columns.get(sink.name)
            if column is None:
                self._columns[sink.name] = DelegatingDriver(sink)
            else:
                column.add_sink(sink)

    def find_by_name(self, name: str) -> DelegatingDriver | None:
        return self._columns.get(name)

    @property
    def drivers(self) -> list[DelegatingDriver]:
        """Columns in order."""
        return list(self._columns.values())

    @property
    def names(self) -> list[str]:
        return list(self._columns)

    @property
    def nb_params(self) -> int:
        """Number of selected columns."""
        return sum(1 for column in self._columns.values() if column.selected)

    def selected(self) -> ParameterDriversList:
        """New list holding only the selected columns, same order."""
        return self.filter(lambda column: column.selected)

    def filter(self, predicate: Callable[[DelegatingDriver], bool]) -> ParameterDriversList:
        result = ParameterDriversList()
        for column in self._columns.values():
            if predicate(column):
                result._columns[column.name] = column
        return result

    def sort(self, key: Callable[[DelegatingDriver], object] | None = None) -> None:
        """Reorder columns in place, lexicographically by name by default."""
        key = (lambda column: column.name) if key is None else key
        self._columns = {column.name: column for column in sorted(self._columns.values(), key=key)}

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[DelegatingDriver]:
        return iter(list(self._columns.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __repr__(self) -> str:
        return f"ParameterDriversList({self.names})"
