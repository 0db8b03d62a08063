from dataclasses import dataclass

from dbfac.hydrator import Hydrator


@dataclass
class Person:
    name: str
    age: int


class UpperHydrator(Hydrator):
    def hydrate(self, data, model=dict):
        return {key: str(value).upper() for key, value in data.items()}


def test_rows_without_model_are_untouched():
    rows = [{"name": "john doe", "age": 27}]

    assert Hydrator()._make(None)(rows) is rows


def test_rows_to_model():
    factory = Hydrator()._make(Person)

    assert factory({"name": "john doe", "age": 27}) == Person("john doe", 27)
    assert factory([{"name": "jane doe", "age": 25}]) == [
        Person("jane doe", 25)
    ]


def test_scalar_model():
    assert Hydrator().hydrate({"count": 2}, model=int) == 2


def test_custom_hydrator_in_stream_factory():
    factory = UpperHydrator()._make(dict)

    assert factory({"name": "gimli"}) == {"name": "GIMLI"}
