"""Example round-trip of heterogeneous shapes known only through their interface."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import polyserde
from polyserde import Polymorphic
from polyserde.plugins import LoggingPlugin
from polyserde.plugins.manager import register_hooks


class Shape(Polymorphic, capability="Shape"):
    def area(self) -> float:
        raise NotImplementedError


@dataclass
class Circle(Shape):
    radius: float

    def area(self) -> float:
        return math.pi * self.radius**2


@dataclass
class Rectangle(Shape):
    width: float
    height: float

    def area(self) -> float:
        return self.width * self.height


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    register_hooks(LoggingPlugin(level=logging.INFO))
    polyserde.freeze()

    shapes: list[Shape] = [Circle(1.0), Rectangle(2.0, 3.0)]
    wire = [shape.dumps() for shape in shapes]
    for data in wire:
        print(data.decode())

    restored = [Shape.loads(data) for data in wire]
    print(f"total area = {sum(shape.area() for shape in restored):.2f}")

    try:
        Shape.loads(b'[999999,"hello world"]')
    except polyserde.UnknownKeyError as e:
        print(f"rejected: {e}")


if __name__ == "__main__":
    main()
